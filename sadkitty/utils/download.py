import asyncio
import logging
import re
import time
from pathlib import Path
from typing import Optional
from urllib.parse import quote

import httpx

from sadkitty.adapters.base import Author, ExtractedPost, SiteAdapter
from sadkitty.browser import UA
from sadkitty.config import Settings
from sadkitty.utils.urls import url_extension

logger = logging.getLogger(__name__)

PLACEHOLDER = "_"
_HOSTILE_RE = re.compile(r'[\s/\\:*?"<>|\x00-\x1f]+')


def _truncate_encoded(text: str, limit: int) -> str:
    # Never leave half of a %XX escape at the cut
    if len(text) <= limit:
        return text
    cut = text[:limit]
    pct = cut.rfind("%", max(0, limit - 2))
    if pct != -1:
        cut = cut[:pct]
    return cut


def build_file_stem(
    author_id: str,
    description: Optional[str],
    post_remote_id: str,
    order_index: int = 0,
    max_len: int = 80,
) -> str:
    """
    Deterministic filename stem for one media source.
    Example:
        ("kitty", "beach day", "123", 0) → "kitty_beach_day[123]"
        ("kitty", "beach day", "123", 1) → "kitty_beach_day[123]_1"
    """
    cleaned = _HOSTILE_RE.sub(PLACEHOLDER, (description or "").strip()) or "none"
    encoded = _truncate_encoded(quote(cleaned, safe=""), max_len)
    stem = f"{author_id}_{encoded}[{post_remote_id}]"
    if order_index > 0:
        stem += f"_{order_index}"
    return stem


def free_path(directory: Path, stem: str, ext: str) -> Path:
    """`stem.ext`, or `stem (n).ext` for the first n that is not taken."""
    candidate = directory / f"{stem}.{ext}"
    n = 1
    while candidate.exists():
        candidate = directory / f"{stem} ({n}).{ext}"
        n += 1
    return candidate


def make_client(settings: Settings, cookies: Optional[list] = None, user_agent: str = UA) -> httpx.AsyncClient:
    """
    HTTP client for media downloads. Browser cookies (as returned by
    `context.cookies()`) are copied in so CDN requests carry the session.
    """
    jar = httpx.Cookies()
    for c in cookies or []:
        jar.set(c["name"], c["value"], domain=c.get("domain", ""), path=c.get("path", "/"))
    return httpx.AsyncClient(
        headers={"User-Agent": user_agent},
        cookies=jar,
        timeout=settings.download_timeout_s,
        follow_redirects=True,
    )


class Downloader:
    """
    Streams media sources into one directory per author.
    `download` never raises: None means no file was produced.
    """

    def __init__(self, client: httpx.AsyncClient, adapter: SiteAdapter, settings: Settings):
        self.client = client
        self.adapter = adapter
        self.settings = settings
        self.root = Path(settings.download_dir)

    def destination(self, source_url: str, order_index: int, author: Author, post: ExtractedPost) -> Path:
        directory = self.root / author.id
        remote_id = self.adapter.post_id_from_url(post.url) or "unknown"
        stem = build_file_stem(author.id, post.description, remote_id, order_index,
                               self.settings.description_max_len)
        return free_path(directory, stem, url_extension(source_url))

    async def download(self, source_url: str, order_index: int, author: Author,
                       post: ExtractedPost) -> Optional[Path]:
        try:
            (self.root / author.id).mkdir(parents=True, exist_ok=True)
            dst = self.destination(source_url, order_index, author, post)
        except OSError as e:
            logger.error("[FAIL] Cannot prepare download dir for %s: %s", author.id, e)
            return None

        attempts = self.settings.download_attempts
        for attempt in range(1, attempts + 1):
            logger.info("Downloading to %s... (attempt %d/%d)", dst.name, attempt, attempts)
            try:
                await self._transfer(source_url, dst)
                return dst
            except (httpx.HTTPError, OSError) as e:
                logger.warning("[RETRY] %s (post %s, author %s) failed on attempt %d/%d: %s",
                               source_url, post.url, author.id, attempt, attempts, e)
                if attempt < attempts:
                    await asyncio.sleep(self.settings.download_retry_delay_s)

        logger.error("[FAIL] Giving up on %s for post %s", source_url, post.url)
        return None

    async def _transfer(self, source_url: str, dst: Path) -> None:
        part = dst.with_name(dst.name + ".part")
        interval = self.settings.progress_interval_s
        try:
            async with self.client.stream("GET", source_url) as resp:
                resp.raise_for_status()
                raw_len = (resp.headers.get("content-length") or "").strip()
                total = int(raw_len) if raw_len.isdigit() else 0

                received = 0
                last_report = time.monotonic()
                with open(part, "wb") as f:
                    async for chunk in resp.aiter_bytes():
                        f.write(chunk)
                        received += len(chunk)
                        now = time.monotonic()
                        if now - last_report >= interval:
                            last_report = now
                            if total:
                                logger.info("  %s: %.0f%% (%d/%d bytes)", dst.name,
                                            received * 100 / total, received, total)
                            else:
                                logger.info("  %s: %d bytes", dst.name, received)
            part.replace(dst)
        except BaseException:
            part.unlink(missing_ok=True)
            raise
