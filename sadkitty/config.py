"""
Settings, credentials and the authors list.

Defaults live on Settings; SADKITTY_* environment variables (a .env file is
read too) override them; command-line flags override both.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from dotenv import load_dotenv

from sadkitty.adapters.base import Author, SiteAdapter
from sadkitty.browser import UA
from sadkitty.errors import ConfigError

ENV_PREFIX = "SADKITTY_"


@dataclass
class Credentials:
    username: str
    password: str


@dataclass
class Settings:
    # Paths
    auth_file: str = "auth.json"
    authors_file: str = "authors.json"
    database: str = "storage.db"
    download_dir: str = "downloads"
    storage_state: Optional[str] = None

    # Browser
    headless: bool = False
    user_agent: str = UA
    viewport_width: int = 1366
    viewport_height: int = 900

    # Timeouts (milliseconds)
    navigation_timeout_ms: int = 30_000
    render_timeout_ms: int = 10_000
    login_timeout_ms: int = 4 * 60 * 1000
    quality_probe_timeout_ms: int = 1_500
    marker_timeout_ms: int = 1_000

    # Retry bounds
    page_load_attempts: int = 3
    extraction_attempts: int = 3
    download_attempts: int = 3
    download_retry_delay_s: float = 2.0
    download_timeout_s: float = 60.0
    progress_interval_s: float = 10.0

    # Feed walker
    tick_ms: int = 2_000
    stability_ticks: int = 5
    max_ticks: int = 2_000

    # Media
    video_qualities: Tuple[str, ...] = ("720", "original", "480", "240")
    description_max_len: int = 80

    verbose: bool = False

    @property
    def viewport(self) -> Dict[str, int]:
        return {"width": self.viewport_width, "height": self.viewport_height}

    def override(self, **values: Any) -> "Settings":
        """Applies non-None values, typically parsed command-line flags."""
        known = {f.name for f in fields(self)}
        for key, value in values.items():
            if value is None or key not in known:
                continue
            setattr(self, key, value)
        return self


def _coerce(name: str, current: Any, raw: str) -> Any:
    try:
        if isinstance(current, bool):
            lowered = raw.strip().lower()
            if lowered in ("1", "true", "yes", "y", "on"):
                return True
            if lowered in ("0", "false", "no", "n", "off"):
                return False
            raise ValueError(raw)
        if isinstance(current, int):
            return int(raw)
        if isinstance(current, float):
            return float(raw)
        if isinstance(current, tuple):
            return tuple(item.strip() for item in raw.split(",") if item.strip())
    except ValueError:
        raise ConfigError(f"{ENV_PREFIX}{name.upper()}={raw!r} is not a valid value") from None
    return raw


def load_settings(env_file: Optional[str] = ".env", environ: Optional[Dict[str, str]] = None) -> Settings:
    """Defaults overridden by SADKITTY_* variables from the environment or .env."""
    if environ is None:
        if env_file:
            load_dotenv(env_file, override=False)
        environ = dict(os.environ)

    settings = Settings()
    for f in fields(settings):
        raw = environ.get(ENV_PREFIX + f.name.upper())
        if raw is None:
            continue
        setattr(settings, f.name, _coerce(f.name, getattr(settings, f.name), raw))
    return settings


def _read_json(path: str) -> Any:
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"{path} not found (run with --setup to create it)")
    try:
        with p.open("r", encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"{path} is not valid JSON: {e}") from e


def load_credentials(path: str) -> Credentials:
    data = _read_json(path)
    if not isinstance(data, dict) or not data.get("username") or not data.get("password"):
        raise ConfigError(f"{path} must contain 'username' and 'password'")
    return Credentials(username=str(data["username"]), password=str(data["password"]))


def load_authors(path: str, adapter: SiteAdapter) -> List[Author]:
    """Authors in file order; duplicate ids keep their first entry."""
    data = _read_json(path)
    if not isinstance(data, list):
        raise ConfigError(f"{path} must be a list of {{'id': ..., 'name': ...}} objects")

    authors: List[Author] = []
    seen = set()
    for i, entry in enumerate(data):
        if not isinstance(entry, dict) or not entry.get("id"):
            raise ConfigError(f"{path}: entry {i} has no 'id'")
        author_id = str(entry["id"]).strip()
        if author_id in seen:
            continue
        seen.add(author_id)
        authors.append(Author(
            id=author_id,
            name=str(entry.get("name") or author_id),
            url=adapter.profile_url(author_id),
        ))
    return authors


def write_json(path: str, data: Any) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with p.open("w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)
