"""
File and stdout logging setup.
"""
import logging
import os
import sys

from ..config import settings


def configure_logging() -> None:
    handlers = [logging.StreamHandler(sys.stdout)]

    # Try to add file handler, but continue without it if directory creation fails
    try:
        os.makedirs(settings.LOG_DIR, exist_ok=True)
        handlers.append(logging.FileHandler(os.path.join(settings.LOG_DIR, "social_service.log")))
    except (OSError, PermissionError) as e:
        print(f"WARNING: Could not set up file logging: {e}", file=sys.stderr)

    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers
    )
