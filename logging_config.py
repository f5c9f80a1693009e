import logging
import sys

import config


class ColoredFormatter(logging.Formatter):
    """Level names in colour; plain output when the stream is not a terminal"""

    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
    }
    RESET = '\033[0m'
    BOLD = '\033[1m'

    def __init__(self, fmt=None, datefmt=None, use_colors=True):
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.use_colors = use_colors

    def format(self, record):
        if not self.use_colors or record.levelname not in self.COLORS:
            return super().format(record)

        levelname = record.levelname
        record.levelname = f"{self.COLORS[levelname]}{self.BOLD}{levelname}{self.RESET}"
        try:
            return super().format(record)
        finally:
            # other handlers see the plain name
            record.levelname = levelname


SIMPLE_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s'

NOISY_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "uvicorn.error": logging.INFO,
    "sqlalchemy": logging.WARNING,
}


def setup_logging(level=None, stream=None):
    """Console-only logging for the app; modules log through children of the "app" logger"""
    level = level or config.LOG_LEVEL
    stream = stream or sys.stdout

    handler = logging.StreamHandler(stream)
    handler.setLevel(level)
    handler.setFormatter(ColoredFormatter(
        fmt=SIMPLE_FORMAT,
        datefmt='%H:%M:%S',
        use_colors=hasattr(stream, "isatty") and stream.isatty()
    ))

    logging.basicConfig(level=level, handlers=[handler])

    for name, noisy_level in NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(noisy_level)

    app_logger = logging.getLogger("app")
    app_logger.setLevel(logging.DEBUG)
    return app_logger
