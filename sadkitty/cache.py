"""
Local cache of authors, posts and downloaded media.

The cache is the single source of truth for "already handled": the feed
walker reads the seen-set from it and the dispatcher checks it before every
download. All writes to the three tables go through CacheStore.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional, Set, Union

import aiosqlite

from sadkitty.adapters.base import Author, Post, SiteAdapter
from sadkitty.errors import CacheError

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS Author (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    url TEXT
);

CREATE TABLE IF NOT EXISTS Post (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    author_id TEXT NOT NULL REFERENCES Author(id),
    url TEXT NOT NULL,
    description TEXT,
    timestamp TEXT,
    locked INTEGER NOT NULL DEFAULT 0,
    cached_media_count INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS Media (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    post_id INTEGER NOT NULL REFERENCES Post(id),
    url TEXT NOT NULL,
    file_path TEXT
);

CREATE INDEX IF NOT EXISTS idx_post_url ON Post(url);
CREATE INDEX IF NOT EXISTS idx_post_author ON Post(author_id);
CREATE INDEX IF NOT EXISTS idx_media_post_url ON Media(post_id, url);
"""


def _row_to_post(row: aiosqlite.Row) -> Post:
    return Post(
        id=row["id"],
        author_id=row["author_id"],
        url=row["url"],
        description=row["description"],
        timestamp=row["timestamp"],
        locked=bool(row["locked"]),
        cached_media_count=row["cached_media_count"],
    )


class CacheStore:
    """
    Awaitable operations over the Author, Post and Media tables.

    One connection is shared for the whole run. Callers await every
    operation before starting the next one; there is no locking beyond that.
    """

    def __init__(self, path: Union[str, Path], adapter: SiteAdapter):
        self.path = str(path)
        self.adapter = adapter
        self._db: Optional[aiosqlite.Connection] = None

    async def open(self) -> "CacheStore":
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(self.path)
        self._db.row_factory = aiosqlite.Row
        await self._db.executescript(SCHEMA)
        await self._db.commit()
        logger.debug("Cache opened at %s", self.path)
        return self

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None

    async def __aenter__(self) -> "CacheStore":
        return await self.open()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def db(self) -> aiosqlite.Connection:
        if self._db is None:
            raise CacheError("cache store is not open")
        return self._db

    async def _execute(self, sql: str, params: tuple = ()) -> aiosqlite.Cursor:
        try:
            return await self.db.execute(sql, params)
        except aiosqlite.Error as e:
            raise CacheError(f"{e} while running: {sql.split()[0]} ...") from e

    async def _fetchall(self, sql: str, params: tuple = ()) -> List[aiosqlite.Row]:
        cursor = await self._execute(sql, params)
        rows = await cursor.fetchall()
        await cursor.close()
        return list(rows)

    async def _fetchone(self, sql: str, params: tuple = ()) -> Optional[aiosqlite.Row]:
        cursor = await self._execute(sql, params)
        row = await cursor.fetchone()
        await cursor.close()
        return row

    async def _commit(self) -> None:
        try:
            await self.db.commit()
        except aiosqlite.Error as e:
            raise CacheError(f"commit failed: {e}") from e

    # --- Authors ---

    async def upsert_author(self, author_id: str, name: str, url: str) -> None:
        """Insert-or-ignore; an existing row is never overwritten."""
        await self._execute(
            "INSERT OR IGNORE INTO Author (id, name, url) VALUES (?, ?, ?)",
            (author_id, name, url),
        )
        await self._commit()

    async def get_author(self, author_id: str) -> Optional[Author]:
        row = await self._fetchone("SELECT id, name, url FROM Author WHERE id = ?", (author_id,))
        if row is None:
            return None
        return Author(id=row["id"], name=row["name"], url=row["url"])

    async def list_authors(self) -> List[Author]:
        rows = await self._fetchall("SELECT id, name, url FROM Author ORDER BY rowid")
        return [Author(id=r["id"], name=r["name"], url=r["url"]) for r in rows]

    # --- Posts ---

    async def get_seen_post_ids(self, author_id: str) -> Set[str]:
        """
        Remote ids of every post that is done for good: at least one media
        file cached, or locked.
        """
        rows = await self._fetchall(
            "SELECT url FROM Post WHERE author_id = ? AND (cached_media_count > 0 OR locked = 1)",
            (author_id,),
        )
        seen: Set[str] = set()
        for row in rows:
            post_id = self.adapter.post_id_from_url(row["url"])
            if post_id:
                seen.add(post_id)
        return seen

    async def get_post_by_url(self, url: str) -> Optional[Post]:
        row = await self._fetchone("SELECT * FROM Post WHERE url = ? ORDER BY id LIMIT 1", (url,))
        return _row_to_post(row) if row else None

    async def get_or_create_post(
        self,
        url: str,
        author_id: str,
        description: str,
        timestamp: Optional[str],
        locked: bool,
    ) -> Post:
        """
        Existing post by url, otherwise insert and re-query for the assigned
        id. Lookup-then-insert is only safe because posts are processed one
        at a time. Locking is one-way: an existing row is marked locked once
        the post turns up locked, and never unlocked again.
        """
        existing = await self.get_post_by_url(url)
        if existing is not None:
            if locked and not existing.locked:
                await self._execute("UPDATE Post SET locked = 1 WHERE id = ?", (existing.id,))
                await self._commit()
                existing.locked = True
            return existing

        await self._execute(
            "INSERT INTO Post (author_id, url, description, timestamp, locked, cached_media_count) "
            "VALUES (?, ?, ?, ?, ?, 0)",
            (author_id, url, description, timestamp, int(locked)),
        )
        await self._commit()

        created = await self.get_post_by_url(url)
        if created is None:
            raise CacheError(f"post {url} missing right after insert")
        return created

    async def set_cached_media_count(self, post_id: int, count: int) -> None:
        await self._execute("UPDATE Post SET cached_media_count = ? WHERE id = ?", (count, post_id))
        await self._commit()

    # --- Media ---

    async def has_media(self, post_id: int, canonical: str) -> bool:
        row = await self._fetchone(
            "SELECT 1 FROM Media WHERE post_id = ? AND url = ? LIMIT 1", (post_id, canonical)
        )
        return row is not None

    async def count_media(self, post_id: int) -> int:
        row = await self._fetchone("SELECT COUNT(*) AS n FROM Media WHERE post_id = ?", (post_id,))
        return int(row["n"]) if row else 0

    async def record_media(self, post_id: int, canonical: str, file_path: str) -> None:
        # Always followed by set_cached_media_count. A crash in between
        # leaves the count low, which only means a later run looks again.
        await self._execute(
            "INSERT INTO Media (post_id, url, file_path) VALUES (?, ?, ?)",
            (post_id, canonical, file_path),
        )
        await self._commit()

    # --- Administration ---

    async def delete_author_cascade(self, author_id: str) -> Dict[str, int]:
        """
        Removes the author's media files and Media rows, then its posts, then
        the author. Returns counts of what was removed.
        """
        media_rows = await self._fetchall(
            "SELECT Media.id, Media.file_path FROM Media "
            "JOIN Post ON Post.id = Media.post_id WHERE Post.author_id = ?",
            (author_id,),
        )

        files_removed = 0
        for row in media_rows:
            file_path = row["file_path"]
            if file_path:
                path = Path(file_path)
                if path.exists():
                    path.unlink()
                    files_removed += 1
                else:
                    logger.warning("[MISS] %s already gone from disk", file_path)
            await self._execute("DELETE FROM Media WHERE id = ?", (row["id"],))

        cursor = await self._execute("DELETE FROM Post WHERE author_id = ?", (author_id,))
        posts_removed = cursor.rowcount
        cursor = await self._execute("DELETE FROM Author WHERE id = ?", (author_id,))
        authors_removed = cursor.rowcount
        await self._commit()

        return {
            "authors": max(authors_removed, 0),
            "posts": max(posts_removed, 0),
            "media": len(media_rows),
            "files": files_removed,
        }
