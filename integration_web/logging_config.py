"""
Logging setup for the integration process.
"""
import logging
import sys


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging with a consistent single-line format."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )
    # httpx logs every request URL at INFO; keep it quieter than our own messages
    logging.getLogger("httpx").setLevel(max(logging.WARNING, logging.getLogger().level))
