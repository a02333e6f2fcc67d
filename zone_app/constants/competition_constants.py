"""Competition-related constants shared across UI and core layers."""

DEFAULT_QUESTION_POINTS: int = 10
MIN_OPTION_COUNT: int = 2
MAX_OPTION_COUNT: int = 6

LEADERBOARD_LIMIT: int = 20
PODIUM_SIZE: int = 3

COUNTDOWN_TICK_INTERVAL_MS: int = 1000
LEADERBOARD_POLL_INTERVAL_MS: int = 5000
STALE_THRESHOLD_SECONDS: float = 30.0

# Grace period the host allows after a time limit for in-flight submissions.
SUBMISSION_GRACE_SECONDS: int = 2

ANONYMOUS_NAME: str = "Anonymous"
DEFAULT_BADGE_POINTS: int = 50
