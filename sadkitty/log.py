import logging

from rich.console import Console
from rich.logging import RichHandler

NOISY_LOGGERS = ("httpx", "httpcore", "aiosqlite", "asyncio")


def setup_logging(verbose: bool = False, console: Console | None = None) -> None:
    """Colored, timestamped console output; DEBUG only with --verbose."""
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        log_time_format="[%H:%M:%S]",
        markup=False,
        rich_tracebacks=True,
    )
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[handler],
        force=True,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
