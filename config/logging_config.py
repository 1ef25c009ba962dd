"""Logging setup shared by the CLI and the API server."""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: str = "INFO"):
    """Configure root logging once for the process."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )
    # Vendor SDKs log every request at INFO
    for noisy in ("httpx", "openai", "anthropic", "apscheduler"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
