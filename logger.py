import logging
import os

from rich.logging import RichHandler


class PaddedNameFormatter(logging.Formatter):
    """Pads the logger name so messages from different modules line up."""

    def __init__(self, fmt=None, width=14):
        super().__init__(fmt)
        self.width = width

    def format(self, record):
        self.width = max(self.width, len(record.name))
        padded = logging.makeLogRecord(record.__dict__)
        padded.name = record.name.center(self.width)
        return super().format(padded)


def get_logger(name=None) -> logging.Logger:
    """
    Returns a logger that writes through a RichHandler.
    Level is DEBUG when the DEBUG env var is set, INFO otherwise.
    """
    if name is None:
        name = "curavet"
    logger = logging.getLogger(name)
    log_level = logging.DEBUG if os.getenv("DEBUG") else logging.INFO
    logger.setLevel(log_level)

    if not logger.handlers:
        handler = RichHandler(
            show_time=True,
            show_level=True,
            show_path=False,
            rich_tracebacks=True,
            log_time_format="[%X]",
        )
        handler.setFormatter(PaddedNameFormatter("[%(name)s]  %(message)s"))
        handler.setLevel(log_level)
        logger.addHandler(handler)
        logger.propagate = False

    return logger
