"""Utilities for importing competition rounds from a human-friendly text file.

File format (blocks separated by blank lines or '---'):

    ROUND: Round name        (starts a new round; optional DESCRIPTION: line)

    Q: Question text (supports markdown + LaTeX). Additional lines until the
       next marker are treated as part of the question.
    A: First option text
    B: Second option text
    ...                      (two to six options, A-F, in order)
    CORRECT: A-F
    TIMELIMIT: seconds       (optional; omit for no timer)
    POINTS: integer          (optional; defaults to 10)

Questions that appear before any ROUND: header go into a round named
"Round 1".
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from zone_app.constants.competition_constants import (
    DEFAULT_QUESTION_POINTS,
    MAX_OPTION_COUNT,
    MIN_OPTION_COUNT,
)
from zone_app.core.competition_backend import CompetitionBackend
from zone_app.core.models import CompetitionRound


class RoundImportError(Exception):
    """Raised when a round definition cannot be parsed."""


@dataclass(slots=True)
class ImportedQuestion:
    prompt: str
    options: list[str]
    correct_option_index: int
    points: int = DEFAULT_QUESTION_POINTS
    time_limit_seconds: int | None = None


@dataclass(slots=True)
class ImportedRound:
    name: str
    description: str | None = None
    questions: list[ImportedQuestion] = field(default_factory=list)


@dataclass(slots=True)
class ImportedCompetition:
    """Container for imported rounds and their source file."""

    source_path: Path | None
    rounds: list[ImportedRound]

    @property
    def question_count(self) -> int:
        return sum(len(r.questions) for r in self.rounds)


_OPTION_ORDER = "ABCDEF"


def load_rounds_from_file(file_path: Path) -> ImportedCompetition:
    text = file_path.read_text(encoding="utf-8")
    imported = parse_rounds_text(text)
    imported.source_path = file_path
    return imported


def parse_rounds_text(text: str) -> ImportedCompetition:
    rounds: list[ImportedRound] = []
    for block in _split_blocks(text):
        first_line = block.splitlines()[0].strip()
        if first_line.upper().startswith("ROUND:"):
            rounds.append(_parse_round_header(block))
            continue
        if not rounds:
            rounds.append(ImportedRound(name="Round 1"))
        rounds[-1].questions.append(_parse_question_block(block))

    rounds = [r for r in rounds if r.questions]
    if not rounds:
        raise RoundImportError("Round file did not contain any questions.")
    return ImportedCompetition(source_path=None, rounds=rounds)


def seed_backend(imported: ImportedCompetition, backend: CompetitionBackend, event_id: str) -> list[CompetitionRound]:
    """Create every imported round and question on the backend."""
    created: list[CompetitionRound] = []
    for imported_round in imported.rounds:
        competition_round = backend.create_round(event_id, imported_round.name, description=imported_round.description)
        for question in imported_round.questions:
            backend.add_question(
                competition_round.id,
                question.prompt,
                question.options,
                question.correct_option_index,
                points=question.points,
                time_limit_seconds=question.time_limit_seconds,
            )
        created.append(backend.get_round(competition_round.id))
    return created


def _split_blocks(text: str) -> list[str]:
    blocks: list[str] = []
    current_block: list[str] = []
    for raw_line in text.splitlines():
        stripped = raw_line.strip()
        if stripped == "---" or not stripped:
            if current_block:
                blocks.append("\n".join(current_block).strip())
                current_block = []
            continue
        current_block.append(raw_line)
    if current_block:
        blocks.append("\n".join(current_block).strip())
    return blocks


def _parse_round_header(block: str) -> ImportedRound:
    name = ""
    description: str | None = None
    for raw_line in block.splitlines():
        line = raw_line.strip()
        upper = line.upper()
        if upper.startswith("ROUND:"):
            name = line.split(":", 1)[1].strip()
        elif upper.startswith("DESCRIPTION:"):
            description = line.split(":", 1)[1].strip() or None
        else:
            raise RoundImportError(f"Unexpected line in round header: '{line}'.")
    if not name:
        raise RoundImportError("ROUND must include a name.")
    return ImportedRound(name=name, description=description)


def _parse_positive_int(line: str, label: str) -> int:
    raw_value = line.split(":", 1)[1].strip()
    try:
        parsed_value = int(raw_value)
    except ValueError as exc:
        raise RoundImportError(f"{label} must be an integer.") from exc
    if parsed_value <= 0:
        raise RoundImportError(f"{label} must be a positive integer.")
    return parsed_value


def _parse_question_block(block: str) -> ImportedQuestion:
    question_lines: list[str] = []
    options: dict[str, str] = {}
    correct_letter: str | None = None
    time_limit_seconds: int | None = None
    points = DEFAULT_QUESTION_POINTS
    current_section: str | None = None

    for raw_line in block.splitlines():
        line = raw_line.strip()
        upper = line.upper()
        if upper.startswith("Q:"):
            question_lines = [line[2:].strip()]
            current_section = "Q"
        elif upper.startswith("CORRECT:"):
            correct_letter = line.split(":", 1)[1].strip().upper()
            current_section = None
        elif upper.startswith("TIMELIMIT:"):
            time_limit_seconds = _parse_positive_int(line, "TIMELIMIT")
            current_section = None
        elif upper.startswith("POINTS:"):
            points = _parse_positive_int(line, "POINTS")
            current_section = None
        elif len(line) >= 2 and line[0].upper() in _OPTION_ORDER and line[1] == ":":
            letter = line[0].upper()
            options[letter] = line[2:].strip()
            current_section = letter
        elif current_section == "Q":
            question_lines.append(line)
        elif current_section is not None:
            options[current_section] += f"\n{line}"
        else:
            raise RoundImportError(f"Encountered text outside of a known section: '{line}'.")

    question_text = "\n".join(question_lines).strip()
    if not question_text:
        raise RoundImportError("Question text missing (Q: ...)")

    letters = _OPTION_ORDER[: len(options)]
    if set(options) != set(letters):
        raise RoundImportError("Options must be labelled consecutively starting at A.")
    if not MIN_OPTION_COUNT <= len(options) <= MAX_OPTION_COUNT:
        raise RoundImportError(f"Each question needs {MIN_OPTION_COUNT} to {MAX_OPTION_COUNT} options.")
    option_list = [options[letter].strip() for letter in letters]
    if any(not option for option in option_list):
        raise RoundImportError("Option text cannot be empty.")

    if correct_letter is None:
        raise RoundImportError("CORRECT is required for competition questions.")
    if correct_letter not in letters:
        raise RoundImportError(f"CORRECT must be one of {', '.join(letters)}.")

    return ImportedQuestion(
        prompt=question_text,
        options=option_list,
        correct_option_index=letters.index(correct_letter),
        points=points,
        time_limit_seconds=time_limit_seconds,
    )
