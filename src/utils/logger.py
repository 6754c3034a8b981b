import logging
import os

from rich.logging import RichHandler


class CenteredFormatter(logging.Formatter):
    """Pads logger names to the widest name seen so far so messages line up."""

    name_width = 12

    def format(self, record):
        CenteredFormatter.name_width = max(CenteredFormatter.name_width, len(record.name))
        record.name = record.name.center(CenteredFormatter.name_width)
        return super().format(record)


def _log_level() -> int:
    level = os.getenv("LOG_LEVEL")
    if level:
        value = getattr(logging, level.upper(), None)
        return value if isinstance(value, int) else logging.INFO
    return logging.DEBUG if os.getenv("DEBUG") else logging.INFO


def get_logger(name=None) -> logging.Logger:
    """
    Return a logger that writes through a RichHandler.

    Level comes from LOG_LEVEL, or DEBUG=1 for debug output; INFO otherwise.
    """
    if name is None:
        name = "shop"
    logger = logging.getLogger(name)
    level = _log_level()
    logger.setLevel(level)

    if not logger.handlers:
        handler = RichHandler(
            show_time=True,
            show_level=True,
            show_path=False,
            rich_tracebacks=True,
            log_time_format="[%X]",
        )
        handler.setFormatter(CenteredFormatter("[%(name)s]  %(message)s"))
        handler.setLevel(level)
        logger.addHandler(handler)

        logger.propagate = False
        logger.debug(f"Logger for '{name}' initialized.")

    return logger
