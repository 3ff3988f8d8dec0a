"""Configures application-wide logging."""

import logging
import logging.handlers
import os
import sys
from pathlib import Path

def get_app_data_dir() -> Path:
    """Returns the application data directory."""
    override = os.getenv("PICTOGRAM_HOME")
    if override:
        return Path(override)
    app_data = os.getenv("APPDATA")
    if app_data:
        return Path(app_data) / "pictogram"
    return Path.home() / ".pictogram"

CONSOLE_HANDLER_NAME = "pictogram-console"

def setup_logging(debug: bool = False):
    """Sets up logging to a rotating file in the app data directory.

    Safe to call more than once; handlers already attached to the root
    logger are reused instead of added again.
    """
    log_dir = get_app_data_dir() / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "app.log"

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if debug else logging.INFO)

    if not any(
        isinstance(h, logging.handlers.RotatingFileHandler)
        and h.baseFilename == os.path.abspath(log_file)
        for h in root_logger.handlers
    ):
        handler = logging.handlers.RotatingFileHandler(
            log_file, maxBytes=10*1024*1024, backupCount=5
        )
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    if debug and not any(h.get_name() == CONSOLE_HANDLER_NAME for h in root_logger.handlers):
        console = logging.StreamHandler(sys.stderr)
        console.set_name(CONSOLE_HANDLER_NAME)
        console.setFormatter(formatter)
        root_logger.addHandler(console)

    # Configure logging for key modules
    logging.getLogger("pictogram.imaging.pipeline").setLevel(logging.DEBUG if debug else logging.INFO)
    logging.getLogger("pictogram.imaging.thumbnails").setLevel(logging.DEBUG if debug else logging.INFO)
    logging.getLogger("PIL").setLevel(logging.INFO)
    return log_file
