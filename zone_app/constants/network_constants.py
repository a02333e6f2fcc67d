"""Network configuration constants for the competition application."""

DEFAULT_HOST: str = "0.0.0.0"
DEFAULT_PORT: int = 8000
DEFAULT_BASE_URL: str = "http://127.0.0.1:8000"
REQUEST_TIMEOUT_SECONDS: float = 5.0
