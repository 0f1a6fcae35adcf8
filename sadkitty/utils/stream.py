import logging
from typing import Iterable, List, Set

from playwright.async_api import Error as PlaywrightError

logger = logging.getLogger(__name__)

# Distance left until the bottom of the document, in pixels
REMAINING_SCROLL_JS = """() => Math.max(0, Math.ceil(
    document.documentElement.scrollHeight - window.innerHeight - window.scrollY
))"""

SCROLL_BY_JS = "(y) => window.scrollBy(0, y)"

# Receives the known ids, returns only new ones in DOM order
SCAN_FEED_JS = """(args) => {
    const known = new Set(args.known);
    const pattern = new RegExp(args.pattern);
    const found = [];
    for (const el of document.querySelectorAll(args.selector)) {
        const m = pattern.exec(el.id || '');
        if (m && !known.has(m[1])) {
            known.add(m[1]);
            found.push(m[1]);
        }
    }
    return found;
}"""


async def discover_unseen_posts(
    driver,
    seen_ids: Iterable[str],
    *,
    post_selector: str,
    id_pattern: str,
    tick_ms: int = 2000,
    stability_ticks: int = 5,
    max_ticks: int = 2000,
) -> List[str]:
    """
    Scrolls an infinite feed and collects the ids of posts not in `seen_ids`.

    Every tick scrolls by the whole remaining distance, waits, then scans the
    rendered cards. The feed lists newest first, so ids are collected
    newest first and returned reversed: the crawl handles the oldest post
    first and an interrupted run leaves a contiguous, oldest-first prefix.

    Stops when either:
        - the tick started at the bottom, ids were seen before, and this
          tick found nothing new;
        - `stability_ticks` ticks in a row found nothing new. On a first
          crawl (empty seen-set) this is the only way out, because an empty
          page at the bottom may simply not have loaded yet.
    """
    seen: Set[str] = {str(i) for i in seen_ids}
    first_crawl = not seen
    out: List[str] = []
    stagnant_counter = 0

    for tick in range(max_ticks):
        try:
            remaining = await driver.evaluate(REMAINING_SCROLL_JS)
            if remaining:
                await driver.evaluate(SCROLL_BY_JS, remaining)
            await driver.wait(tick_ms)

            found = await driver.evaluate(
                SCAN_FEED_JS,
                {"selector": post_selector, "pattern": id_pattern, "known": sorted(seen)},
            )
        except PlaywrightError as e:
            logger.warning("[STOP] Feed scan failed on tick %d: %s", tick, e)
            break

        new_ids = []
        for post_id in found or []:
            post_id = str(post_id)
            if post_id in seen:
                continue
            seen.add(post_id)
            new_ids.append(post_id)

        if new_ids:
            out.extend(new_ids)
            stagnant_counter = 0
            logger.info("[NEW ] Tick %d: %d new posts | Total: %d", tick, len(new_ids), len(out))
        else:
            stagnant_counter += 1
            logger.debug("[*] Tick %d: nothing new. Stagnant: %d/%d",
                         tick, stagnant_counter, stability_ticks)

        at_bottom = not remaining
        if at_bottom and not first_crawl and not new_ids:
            logger.info("[DONE] Reached the end of the feed: %d unseen posts.", len(out))
            break

        if stagnant_counter >= stability_ticks:
            logger.info("[TERMINATE] No new posts for %d ticks: %d unseen posts.",
                        stability_ticks, len(out))
            break
    else:
        logger.warning("[STOP] Gave up after %d ticks: %d unseen posts.", max_ticks, len(out))

    out.reverse()
    return out
