# ABOUTME: Debug logging helper gated by the DEBUG env var
# ABOUTME: Prints categorized messages to stdout so hosted logs capture them

from waterman.config import Config


def debug_log(message: str, category: str = "DEBUG") -> None:
    """Print a debug message when DEBUG mode is enabled."""
    if Config.DEBUG:
        print(f"[DEBUG][{category}] {message}", flush=True)
