import logging
from pathlib import Path
from typing import Dict, List

from rich.console import Console
from rich.prompt import Confirm, Prompt

from sadkitty.config import Settings, write_json

logger = logging.getLogger(__name__)


def _confirm_overwrite(path: str, console: Console) -> bool:
    if not Path(path).exists():
        return True
    return Confirm.ask(f"{path} already exists. Overwrite?", default=False, console=console)


def run_setup(settings: Settings, console: Console | None = None) -> bool:
    """Interactively writes the credentials and authors files. False if nothing was written."""
    console = console or Console()
    console.print("[bold]sadkitty setup[/bold]")
    wrote = False

    if _confirm_overwrite(settings.auth_file, console):
        username = Prompt.ask("Username (email)", console=console)
        password = Prompt.ask("Password", password=True, console=console)
        write_json(settings.auth_file, {"username": username, "password": password})
        logger.info("Credentials written to %s", settings.auth_file)
        wrote = True

    if _confirm_overwrite(settings.authors_file, console):
        authors: List[Dict[str, str]] = []
        console.print("Add authors to crawl. Leave the id empty to finish.")
        while True:
            author_id = Prompt.ask("Author id", default="", console=console).strip()
            if not author_id:
                break
            name = Prompt.ask("Display name", default=author_id, console=console).strip()
            authors.append({"id": author_id, "name": name or author_id})
        write_json(settings.authors_file, authors)
        logger.info("%d authors written to %s", len(authors), settings.authors_file)
        wrote = True

    return wrote
