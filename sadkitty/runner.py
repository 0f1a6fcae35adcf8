import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from sadkitty.adapters.onlyfans import OnlyFansAdapter
from sadkitty.browser import PlaywrightDriver, close_page, open_page
from sadkitty.cache import CacheStore
from sadkitty.config import Settings, load_authors, load_credentials, load_settings
from sadkitty.dispatcher import CrawlOrchestrator
from sadkitty.errors import CacheError, ConfigError, LoginError
from sadkitty.log import setup_logging
from sadkitty.nodes.extraction import MediaExtractor
from sadkitty.nodes.navigation import login
from sadkitty.save_session import save_session
from sadkitty.setup_wizard import run_setup
from sadkitty.state import AuthorReport
from sadkitty.utils.download import Downloader, make_client

logger = logging.getLogger("sadkitty")


def parse_args(argv: Optional[List[str]] = None):
    p = argparse.ArgumentParser(prog="sadkitty", description="Incremental media feed crawler")
    p.add_argument("-v", "--verbose", action="store_true", default=None, help="Debug logging")
    p.add_argument("--deleteAuthor", dest="delete_author", metavar="ID",
                   help="Delete an author with all cached posts, media rows and files, then exit")
    p.add_argument("--setup", action="store_true", help="Interactive wizard for auth.json and authors.json")
    p.add_argument("--headless", action="store_true", default=None, help="Run headless browser")
    p.add_argument("--storage-state", type=str, default=None,
                   help="Playwright storage_state json from a previous login")
    p.add_argument("--save-session", type=str, default=None, metavar="PATH",
                   help="Log in manually in a visible browser and save the session to PATH")
    p.add_argument("--database", type=str, default=None, help="SQLite cache file")
    p.add_argument("--download-dir", type=str, default=None, help="Root folder for downloads")
    p.add_argument("--auth", dest="auth_file", type=str, default=None, help="Credentials json")
    p.add_argument("--authors", dest="authors_file", type=str, default=None, help="Authors json")
    return p.parse_args(argv)


async def delete_author(settings: Settings, adapter: OnlyFansAdapter, author_id: str) -> int:
    async with CacheStore(settings.database, adapter) as store:
        if await store.get_author(author_id) is None:
            logger.warning("No author %s in %s", author_id, settings.database)
            return 0
        counts = await store.delete_author_cascade(author_id)
    logger.info("Deleted %s: %d posts, %d media rows, %d files",
                author_id, counts["posts"], counts["media"], counts["files"])
    return 0


async def crawl(settings: Settings, adapter: OnlyFansAdapter) -> List[AuthorReport]:
    """Steps: load inputs, sync authors into the cache, log in, crawl every author."""
    authors = load_authors(settings.authors_file, adapter)

    storage_state = settings.storage_state
    if storage_state and not Path(storage_state).exists():
        logger.warning("Storage state %s not found, logging in with credentials", storage_state)
        storage_state = None

    # A saved session can stand in for missing credentials
    credentials = None
    if storage_state is None or Path(settings.auth_file).exists():
        credentials = load_credentials(settings.auth_file)

    async with CacheStore(settings.database, adapter) as store:
        for author in authors:
            await store.upsert_author(author.id, author.name, author.url)

        pw, browser, context, page = await open_page(
            headless=settings.headless,
            storage_state=storage_state,
            user_agent=settings.user_agent,
            viewport=settings.viewport,
        )
        try:
            driver = PlaywrightDriver(page, settings.navigation_timeout_ms)
            await login(driver, adapter, credentials, settings)

            cookies = await context.cookies()
            async with make_client(settings, cookies, settings.user_agent) as client:
                orchestrator = CrawlOrchestrator(
                    driver,
                    store,
                    MediaExtractor(adapter, settings),
                    Downloader(client, adapter, settings),
                    adapter,
                    settings,
                )
                return await orchestrator.crawl_all(authors)
        finally:
            await close_page(pw, browser, context)


async def main(args, settings: Settings) -> int:
    adapter = OnlyFansAdapter()

    if args.save_session:
        await save_session(args.save_session, adapter, settings)
        return 0

    if args.delete_author:
        return await delete_author(settings, adapter, args.delete_author)

    reports = await crawl(settings, adapter)
    logger.info("Run finished for %d authors:", len(reports))
    for report in reports:
        logger.info("  %s", report.summary())
    return 0


def run(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    setup_logging(bool(args.verbose))

    try:
        settings = load_settings().override(
            verbose=args.verbose,
            headless=args.headless,
            storage_state=args.storage_state,
            database=args.database,
            download_dir=args.download_dir,
            auth_file=args.auth_file,
            authors_file=args.authors_file,
        )
        if settings.verbose and not args.verbose:
            setup_logging(True)

        if args.setup:
            run_setup(settings)
            code = 0
        else:
            code = asyncio.run(main(args, settings))
    except (ConfigError, LoginError, CacheError) as e:
        logger.critical("%s", e)
        code = 1
    except KeyboardInterrupt:
        logger.warning("Interrupted, already downloaded posts stay cached.")
        code = 130
    sys.exit(code)


if __name__ == "__main__":
    run()
