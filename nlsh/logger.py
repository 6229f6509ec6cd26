import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from .config import Settings, get_settings


def setup_logging(settings: Optional[Settings] = None, verbose: bool = False) -> None:
    """Set up logging for the application."""
    settings = settings or get_settings()
    verbose = verbose or settings.verbose

    # Root logger configuration
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    # Console handler (with Rich)
    console = Console(stderr=True)
    rich_handler = RichHandler(
        console=console,
        show_time=False,
        show_path=False,
        rich_tracebacks=True,
    )
    rich_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    root_logger.addHandler(rich_handler)

    # File handler (Rotating), skipped when the log directory is unusable
    try:
        os.makedirs(settings.log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(settings.log_dir, "nlsh.log"), maxBytes=1024 * 1024, backupCount=3  # 1 MB per file, 3 backups
        )
    except OSError as e:
        root_logger.warning(f"File logging disabled: {e}")
    else:
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
        root_logger.addHandler(file_handler)

    # Keep HTTP client chatter out of the console
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(f"Logger initialized. Logs will be stored in {settings.log_dir}")
