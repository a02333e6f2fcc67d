"""Static metadata describing the Zone competition client."""

APP_NAME = "Zone Competition"
APP_VERSION = "0.1"
APP_ABOUT_TEXT = (
    "Zone Competition runs live event quizzes: rounds of timed questions, "
    "answer submission and a live leaderboard, with a Qt participant view and a FastAPI host."
)

HELP_TEXT = (
    "Rounds can be imported from a .txt file using the format:\n\n"
    "ROUND: Warm-up\n\n"
    "Q: What is $2^5$?\n"
    "A: 16\nB: 32\nC: 64\n"
    "CORRECT: B\nTIMELIMIT: 15\nPOINTS: 100\n"
)
