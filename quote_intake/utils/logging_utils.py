import copy
import logging
import sys
from pathlib import Path
from typing import Optional

from .colors import Colors
from .structured_logging import JSONFormatter


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class ColoredFormatter(logging.Formatter):
    """
    Formatter that colours log levels and highlights key pipeline events
    on the console.
    """

    LEVEL_COLORS = {
        logging.DEBUG: Colors.GREY,
        logging.INFO: Colors.BLUE,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.BOLD + Colors.RED
    }

    def format(self, record):
        # Copy so file handlers never receive ANSI codes
        record = copy.copy(record)

        color = self.LEVEL_COLORS.get(record.levelno, Colors.RESET)
        record.levelname = f"{color}{record.levelname}{Colors.RESET}"

        if isinstance(record.msg, str):
            if "Extraction complete" in record.msg or "Quote approved" in record.msg:
                record.msg = f"{Colors.GREEN}{record.msg}{Colors.RESET}"
            elif "access token" in record.msg:
                # Token cache chatter is frequent and rarely interesting
                record.msg = f"{Colors.GREY}{record.msg}{Colors.RESET}"
            elif "Summarizing email" in record.msg:
                record.msg = f"{Colors.MAGENTA}{record.msg}{Colors.RESET}"

        return super().format(record)


def setup_logging(
    level_name: str = "INFO",
    log_file: Optional[str] = None,
    log_format: str = "text",
) -> logging.Logger:
    """
    Configure root logging for the CLI

    Console output is coloured when attached to a TTY. The optional file
    handler writes either plain text or JSON lines (log_format="json").

    Returns:
        The "quote_intake" logger
    """
    level_key = str(level_name).upper()
    level = logging._nameToLevel.get(level_key, logging.INFO)

    console = logging.StreamHandler(sys.stderr)
    if sys.stderr.isatty():
        console.setFormatter(ColoredFormatter(LOG_FORMAT))
    else:
        console.setFormatter(logging.Formatter(LOG_FORMAT))
    handlers = [console]

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        if log_format == "json":
            file_handler.setFormatter(JSONFormatter())
        else:
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handlers.append(file_handler)

    logging.basicConfig(level=level, handlers=handlers, force=True)

    logger = logging.getLogger("quote_intake")
    if level_key not in logging._nameToLevel:
        logger.warning("Invalid log level '%s'; defaulting to INFO", level_name)
    return logger
