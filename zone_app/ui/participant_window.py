"""Qt main window showing the live competition to one participant."""

from __future__ import annotations

import logging

from PySide6.QtWebEngineWidgets import QWebEngineView
from PySide6.QtWidgets import (
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QListWidget,
    QListWidgetItem,
    QMainWindow,
    QProgressBar,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from zone_app.constants.about import APP_ABOUT_TEXT, APP_NAME, APP_VERSION, HELP_TEXT
from zone_app.constants.competition_constants import MAX_OPTION_COUNT, PODIUM_SIZE
from zone_app.constants.ui_constants import (
    AWAITING_CLOSE_MESSAGE,
    CORRECT_ANSWER_TEMPLATE,
    LEADERBOARD_STATS_TEMPLATE,
    LEADERBOARD_TITLE,
    NO_ACTIVE_ROUND_MESSAGE,
    OPTION_LETTERS,
    PRESENCE_TEMPLATE,
    ROUND_COMPLETED_MESSAGE,
    SCORE_HEADER_TEMPLATE,
    SUBMISSION_FAILED_TITLE,
    TIME_EXPIRED_MESSAGE,
    WAITING_FOR_QUESTION_MESSAGE,
    WINDOW_TITLE,
    WRONG_ANSWER_MESSAGE,
)
from zone_app.core.session_controller import CompetitionSessionController, SessionPhase, SessionState
from zone_app.styling.color_palette import Theme
from zone_app.styling.styles import Styles
from zone_app.ui.dialog_helpers import show_info, show_warning
from zone_app.ui.question_renderer import render_question_with_options
from zone_app.ui.session_timers import SessionTimers

logger = logging.getLogger(__name__)

_MEDALS = ("🥇", "🥈", "🥉")


class ParticipantMainWindow(QMainWindow):
    """Renders ``SessionState`` snapshots and forwards option clicks to the controller."""

    def __init__(
        self,
        controller: CompetitionSessionController,
        game_font_size: int = 14,
        theme: Theme = Theme.LIGHT,
    ) -> None:
        super().__init__()
        self.setWindowTitle(WINDOW_TITLE)
        self.controller = controller
        self._game_font_size = game_font_size
        self._theme = theme
        self._rendered_question_key: tuple[str, str, int | None, int | None] | None = None
        self._countdown_total: int | None = None

        self._build_ui()
        self.setStyleSheet(Styles.get_main_window_style(self._theme))

        self.timers = SessionTimers(controller, self)
        self.timers.state_changed.connect(self.refresh_view)

    def start(self) -> None:
        self.controller.start()
        self.timers.start()
        self.refresh_view()

    def _build_ui(self) -> None:
        central_widget = QWidget(self)
        self.setCentralWidget(central_widget)
        root_layout = QVBoxLayout()
        central_widget.setLayout(root_layout)

        header_row = QHBoxLayout()
        self.score_label = QLabel("", self)
        self.score_label.setStyleSheet(Styles.get_header_label_style())
        header_row.addWidget(self.score_label)
        self.badges_label = QLabel("", self)
        header_row.addWidget(self.badges_label)
        self.presence_label = QLabel("", self)
        header_row.addWidget(self.presence_label)
        header_row.addStretch()
        self.help_button = QPushButton("Help", self)
        self.help_button.clicked.connect(self._handle_help)
        header_row.addWidget(self.help_button)
        self.about_button = QPushButton(f"About {APP_NAME}", self)
        self.about_button.clicked.connect(self._handle_about)
        header_row.addWidget(self.about_button)
        root_layout.addLayout(header_row)

        self.status_label = QLabel("", self)
        self.status_label.setWordWrap(True)
        root_layout.addWidget(self.status_label)

        timer_row = QHBoxLayout()
        self.time_limit_label = QLabel("", self)
        self.time_limit_label.setVisible(False)
        timer_row.addWidget(self.time_limit_label)
        self.time_limit_progress = QProgressBar(self)
        self.time_limit_progress.setTextVisible(False)
        self.time_limit_progress.setVisible(False)
        timer_row.addWidget(self.time_limit_progress, stretch=1)
        root_layout.addLayout(timer_row)

        content_row = QHBoxLayout()
        question_column = QVBoxLayout()
        self.question_view = QWebEngineView(self)
        question_column.addWidget(self.question_view, stretch=1)

        options_row = QHBoxLayout()
        self.option_buttons: list[QPushButton] = []
        for idx in range(MAX_OPTION_COUNT):
            button = QPushButton(OPTION_LETTERS[idx], self)
            button.setCheckable(True)
            button.setVisible(False)
            button.clicked.connect(lambda _checked=False, option=idx: self._handle_option_clicked(option))
            self.option_buttons.append(button)
            options_row.addWidget(button)
        question_column.addLayout(options_row)
        content_row.addLayout(question_column, stretch=3)

        self.leaderboard_group = QGroupBox(LEADERBOARD_TITLE, self)
        self.leaderboard_group.setMinimumWidth(240)
        leaderboard_layout = QVBoxLayout()
        self.leaderboard_group.setLayout(leaderboard_layout)
        self.leaderboard_list = QListWidget(self)
        leaderboard_layout.addWidget(self.leaderboard_list)
        content_row.addWidget(self.leaderboard_group, stretch=1)
        root_layout.addLayout(content_row, stretch=1)

    # --- Rendering ---

    def refresh_view(self) -> None:
        state = self.controller.state
        self._render_header(state)
        self._render_status(state)
        self._render_countdown(state)
        self._render_question(state)
        self._render_options(state)
        self._render_leaderboard(state)

    def _render_header(self, state: SessionState) -> None:
        score = state.score
        rank = str(score.rank) if score.rank > 0 else "-"
        self.score_label.setText(
            SCORE_HEADER_TEMPLATE.format(score=score.total_score, rank=rank, streak=score.current_streak)
        )
        self.badges_label.setText(" ".join(badge.icon for badge in state.badges))
        self.badges_label.setToolTip("\n".join(f"{badge.icon} {badge.name}" for badge in state.badges))
        presence = state.presence
        self.presence_label.setVisible(presence is not None)
        if presence is not None:
            self.presence_label.setText(
                PRESENCE_TEMPLATE.format(online=presence.online_count, answering=presence.answering_count)
            )

    def _render_status(self, state: SessionState) -> None:
        is_correct: bool | None = None
        if state.phase is SessionPhase.NO_ACTIVE_ROUND:
            text = NO_ACTIVE_ROUND_MESSAGE
        elif state.phase is SessionPhase.ROUND_COMPLETED:
            text = ROUND_COMPLETED_MESSAGE
        elif state.phase is SessionPhase.ROUND_ACTIVE:
            text = WAITING_FOR_QUESTION_MESSAGE
        elif state.phase is SessionPhase.AWAITING_CLOSE:
            text = AWAITING_CLOSE_MESSAGE if state.response else TIME_EXPIRED_MESSAGE
        elif state.phase is SessionPhase.RESULTS_SHOWN and state.response is not None:
            is_correct = state.response.is_correct
            text = self._celebration_text(state)
        elif state.active_round is not None:
            active = state.active_round
            text = f"{active.name} · {round(active.progress * 100)}% complete"
        else:
            text = ""
        if state.last_error:
            text = f"{text}\n{state.last_error}" if text else state.last_error
        self.status_label.setText(text)
        self.status_label.setStyleSheet(Styles.get_outcome_style(is_correct, self._theme))

    @staticmethod
    def _celebration_text(state: SessionState) -> str:
        response = state.response
        if response is None:
            return ""
        if response.is_correct:
            return CORRECT_ANSWER_TEMPLATE.format(points=response.points_earned, streak=state.score.current_streak)
        return WRONG_ANSWER_MESSAGE

    def _render_countdown(self, state: SessionState) -> None:
        question = state.question
        remaining = state.remaining_seconds
        show = question is not None and question.is_active and remaining is not None
        self.time_limit_label.setVisible(show)
        self.time_limit_progress.setVisible(show)
        if not show:
            self._countdown_total = None
            return
        if self._countdown_total is None or remaining > self._countdown_total:
            self._countdown_total = max(remaining, 1)
        self.time_limit_progress.setRange(0, self._countdown_total)
        self.time_limit_progress.setValue(remaining)
        self.time_limit_label.setText(f"{remaining}s" if remaining > 0 else TIME_EXPIRED_MESSAGE)
        self.time_limit_label.setStyleSheet(Styles.get_countdown_style(remaining, self._theme))

    def _render_question(self, state: SessionState) -> None:
        question = state.question
        selected = state.response.selected_option if state.response else None
        if question is None:
            key = None
        else:
            key = (question.id, question.status.value, state.revealed_correct_index, selected)
        if key == self._rendered_question_key:
            return
        self._rendered_question_key = key
        if question is None:
            self.question_view.setHtml("")
            return
        html = render_question_with_options(
            question.prompt,
            question.options,
            self._game_font_size,
            correct_index=state.revealed_correct_index,
            selected_index=selected,
        )
        self.question_view.setHtml(html)

    def _render_options(self, state: SessionState) -> None:
        question = state.question
        option_count = len(question.options) if question else 0
        can_answer = state.phase is SessionPhase.QUESTION_OPEN
        selected = state.response.selected_option if state.response else None
        for idx, button in enumerate(self.option_buttons):
            button.setVisible(idx < option_count)
            button.setEnabled(can_answer)
            button.setChecked(idx == selected)

    def _render_leaderboard(self, state: SessionState) -> None:
        stats = state.stats
        if stats is not None and stats.participant_count > 0:
            self.leaderboard_group.setTitle(
                LEADERBOARD_STATS_TEMPLATE.format(
                    title=LEADERBOARD_TITLE,
                    players=stats.participant_count,
                    average=stats.average_score,
                    highest=stats.highest_score,
                )
            )
        else:
            self.leaderboard_group.setTitle(LEADERBOARD_TITLE)
        self.leaderboard_list.clear()
        for position, entry in enumerate(state.leaderboard):
            medal = _MEDALS[position] if position < min(PODIUM_SIZE, len(_MEDALS)) else f"{entry.rank}."
            text = f"{medal} {entry.name} · {entry.score}"
            if entry.streak > 1:
                text += f" 🔥{entry.streak}"
            item = QListWidgetItem(text)
            if entry.is_current_user:
                font = item.font()
                font.setBold(True)
                item.setFont(font)
            self.leaderboard_list.addItem(item)

    # --- Actions ---

    def _handle_option_clicked(self, option_index: int) -> None:
        result = self.controller.submit_answer(option_index)
        if result.retryable:
            show_warning(self, SUBMISSION_FAILED_TITLE, result.message or "Please try again.")
        elif not result.accepted:
            logger.info("Submission ignored: %s", result.status.name)
        self.refresh_view()

    def _handle_about(self) -> None:
        show_info(self, f"About {APP_NAME}", f"{APP_NAME} v{APP_VERSION}\n\n{APP_ABOUT_TEXT}")

    def _handle_help(self) -> None:
        show_info(self, f"{APP_NAME} Help", HELP_TEXT)

    def closeEvent(self, event) -> None:
        self.timers.stop()
        self.controller.close()
        super().closeEvent(event)
