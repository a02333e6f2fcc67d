"""Qt UI constants used across widgets."""

WINDOW_TITLE: str = "Zone Competition"
OPTION_LETTERS: str = "ABCDEF"

NO_ACTIVE_ROUND_MESSAGE: str = "No round is running yet. Hang tight!"
WAITING_FOR_QUESTION_MESSAGE: str = "Waiting for the next question…"
AWAITING_CLOSE_MESSAGE: str = "Answer locked in. Waiting for results…"
TIME_EXPIRED_MESSAGE: str = "Time's up!"
ROUND_COMPLETED_MESSAGE: str = "Round complete. Thanks for playing!"
CORRECT_ANSWER_TEMPLATE: str = "Correct! +{points} points (streak {streak})"
WRONG_ANSWER_MESSAGE: str = "Not this time. Streak reset."
SUBMISSION_FAILED_TITLE: str = "Answer not sent"
LEADERBOARD_TITLE: str = "Leaderboard"
SCORE_HEADER_TEMPLATE: str = "Score {score} · Rank {rank} · Streak {streak}"
PRESENCE_TEMPLATE: str = "🟢 {online} online · {answering} answering"
LEADERBOARD_STATS_TEMPLATE: str = "{title} · {players} players · avg {average} · best {highest}"
