"""Application entry point for the Zone competition client."""

from __future__ import annotations

import getpass
import os
from pathlib import Path
import socket
import sys
from uuid import uuid4

from PySide6.QtWidgets import QApplication

from zone_app.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from zone_app.core.competition_backend import CompetitionBackend
from zone_app.core.competition_service import LocalCompetitionService
from zone_app.core.round_importer import RoundImportError, load_rounds_from_file, seed_backend
from zone_app.core.session_controller import CompetitionSessionController
from zone_app.server.api_server import start_api_server
from zone_app.styling.color_palette import Theme
from zone_app.ui.participant_window import ParticipantMainWindow
from zone_app.utils.logging_config import configure_logging

DEFAULT_EVENT_ID = "main"
DEFAULT_ROUNDS_PATH = Path("competition_rounds.txt")
THEME_ENV_VAR = "ZONE_THEME"


def _determine_api_url(port: int) -> str:
    """Best-effort determination of the local IP for the participant-facing API URL."""
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.connect(("8.8.8.8", 80))
            ip_address = sock.getsockname()[0]
    except OSError:
        ip_address = "127.0.0.1"
    return f"http://{ip_address}:{port}/"


def main() -> None:
    """Seed the backend, start the API server, and launch the participant window."""
    logger = configure_logging()
    logger.info("Starting Zone competition…")

    backend = CompetitionBackend()
    rounds_path = Path(sys.argv[1]) if len(sys.argv) > 1 else DEFAULT_ROUNDS_PATH
    if rounds_path.exists():
        try:
            imported = load_rounds_from_file(rounds_path)
        except (OSError, RoundImportError) as exc:
            logger.error("Could not import %s: %s", rounds_path, exc)
        else:
            seed_backend(imported, backend, DEFAULT_EVENT_ID)
            logger.info(
                "Imported %s rounds (%s questions) from %s",
                len(imported.rounds),
                imported.question_count,
                rounds_path,
            )

    start_api_server(backend, host=DEFAULT_HOST, port=DEFAULT_PORT)
    logger.info("Competition API available at %s", _determine_api_url(DEFAULT_PORT))

    user_id = uuid4().hex
    backend.register_participant(DEFAULT_EVENT_ID, user_id, getpass.getuser())
    controller = CompetitionSessionController(LocalCompetitionService(backend, user_id), DEFAULT_EVENT_ID)

    app = QApplication(sys.argv[:1])
    try:
        theme = Theme(os.environ.get(THEME_ENV_VAR, Theme.LIGHT.value).lower())
    except ValueError:
        logger.warning("Unknown %s value; using the light theme", THEME_ENV_VAR)
        theme = Theme.LIGHT
    window = ParticipantMainWindow(controller, theme=theme)
    window.start()
    window.show()
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
