import logging
from typing import List, Optional
from urllib.parse import quote

from playwright.async_api import Error as PlaywrightError

from sadkitty.adapters.base import Author, SiteAdapter
from sadkitty.cache import CacheStore
from sadkitty.config import Settings
from sadkitty.errors import SadKittyError
from sadkitty.nodes.extraction import MediaExtractor
from sadkitty.nodes.navigation import load_with_retry
from sadkitty.state import AuthorReport, CrawlState
from sadkitty.utils.download import Downloader
from sadkitty.utils.stream import discover_unseen_posts
from sadkitty.utils.urls import canonical_url

logger = logging.getLogger(__name__)


class CrawlOrchestrator:
    """
    Per author: load the feed, discover unseen posts, then extract, download
    and record each one, oldest first. Everything runs strictly in sequence
    on one page and one cache connection.
    """

    def __init__(
        self,
        driver,
        store: CacheStore,
        extractor: MediaExtractor,
        downloader: Downloader,
        adapter: SiteAdapter,
        settings: Settings,
    ):
        self.driver = driver
        self.store = store
        self.extractor = extractor
        self.downloader = downloader
        self.adapter = adapter
        self.settings = settings

    async def crawl_all(self, authors: List[Author]) -> List[AuthorReport]:
        """Authors in input order. One author blowing up never stops the next."""
        reports: List[AuthorReport] = []
        for author in authors:
            report = AuthorReport(author_id=author.id)
            try:
                await self.crawl_author(author, report)
            except Exception:
                logger.exception("[FAIL] Crawl of %s stopped unexpectedly", author.id)
                report.state = CrawlState.ABORTED
            reports.append(report)
        return reports

    async def crawl_author(self, author: Author, report: Optional[AuthorReport] = None) -> AuthorReport:
        """Fills `report` as it goes, so a caller holding it keeps the partial counts if this raises."""
        s = self.settings
        if report is None:
            report = AuthorReport(author_id=author.id)
        logger.info("Crawling %s (%s)", author.name, author.id)

        # LoadingFeed
        feed_url = self.adapter.feed_url(author.id)
        loaded = await load_with_retry(
            self.driver,
            feed_url,
            self.adapter.FEED_CONTAINER,
            attempts=s.page_load_attempts,
            wait_until="networkidle",
            navigation_timeout_ms=s.navigation_timeout_ms,
            render_timeout_ms=s.render_timeout_ms,
        )
        if not loaded:
            report.state = CrawlState.ABORTED
            logger.error("[FAIL] Feed of %s never loaded, skipping author", author.id)
            return report

        # Discovering
        report.state = CrawlState.DISCOVERING
        seen = await self.store.get_seen_post_ids(author.id)
        logger.info("%d posts of %s already cached", len(seen), author.id)
        queue = await discover_unseen_posts(
            self.driver,
            seen,
            post_selector=self.adapter.FEED_POST,
            id_pattern=self.adapter.POST_ID_PATTERN,
            tick_ms=s.tick_ms,
            stability_ticks=s.stability_ticks,
            max_ticks=s.max_ticks,
        )
        report.discovered = len(queue)

        # ProcessingPost, oldest first
        report.state = CrawlState.PROCESSING_POST
        for i, post_id in enumerate(queue, start=1):
            post_url = self.adapter.post_url(post_id, author.id)
            logger.info("[%d/%d] %s", i, len(queue), post_url)
            try:
                handled = await self.process_post(author, post_url, report)
            except (SadKittyError, PlaywrightError) as e:
                logger.error("[FAIL] %s (author %s): %s", post_url, author.id, e)
                handled = 0
            except Exception:
                logger.exception("[FAIL] %s (author %s) raised unexpectedly", post_url, author.id)
                handled = 0

            if handled:
                report.processed += 1
            else:
                report.failed_posts.append(post_url)

        report.state = CrawlState.DONE
        logger.info("[DONE] %s", report.summary())
        if report.failed_posts:
            logger.warning("Posts of %s without media:\n  %s", author.id, "\n  ".join(report.failed_posts))
        return report

    async def process_post(self, author: Author, post_url: str,
                           report: Optional[AuthorReport] = None) -> int:
        """
        Extracts, downloads and records one post.
        Returns how many of its media are now cached; 0 goes on the failure list.
        """
        extracted = await self.extractor.extract_post(self.driver, post_url)
        if extracted is None:
            logger.warning("[SKIP] %s never rendered", post_url)
            return 0

        post = await self.store.get_or_create_post(
            post_url,
            author.id,
            quote(extracted.description, safe=""),
            extracted.timestamp,
            extracted.locked,
        )
        if not extracted.sources:
            logger.info("[SKIP] %s has no media%s", post_url, " (locked)" if extracted.locked else "")
            return 0

        # (position in post, source, canonical key), in extraction order
        pending = []
        keys = set()
        for index, source in enumerate(extracted.sources):
            key = canonical_url(source)
            if key in keys:
                continue
            keys.add(key)
            if await self.store.has_media(post.id, key):
                continue
            pending.append((index, source, key))

        if not pending:
            logger.info("[SKIP] %s: all %d media already cached", post_url, len(keys))
            await self.store.set_cached_media_count(post.id, len(keys))
            return len(keys)

        handled = len(keys) - len(pending)
        for index, source, key in pending:
            path = await self.downloader.download(source, index, author, extracted)
            if path is None:
                continue
            await self.store.record_media(post.id, key, str(path))
            await self.store.set_cached_media_count(post.id, await self.store.count_media(post.id))
            handled += 1
            if report is not None:
                report.downloaded += 1

        logger.info("[NEW ] %s: %d/%d media cached", post_url, handled, len(keys))
        return handled
