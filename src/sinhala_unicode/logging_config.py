import logging

from rich.logging import RichHandler


def setup_logging(log_level: str = "INFO") -> None:
    """Configure root logging with a Rich console handler."""
    console_handler = RichHandler(
        rich_tracebacks=True,
        markup=False,
        show_path=False,
    )
    console_handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    console_handler.setLevel(log_level)

    logging.basicConfig(
        level=log_level,
        handlers=[console_handler],
        force=True,
    )

    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)
