import logging
from typing import List, Optional, Set

from sadkitty.adapters.base import ExtractedPost, SiteAdapter
from sadkitty.config import Settings
from sadkitty.nodes.navigation import load_with_retry
from sadkitty.utils.urls import canonical_url

logger = logging.getLogger(__name__)

# Plain data in, plain list out
SLIDE_SOURCES_JS = """(args) => {
    const container = document.querySelector(args.container);
    if (!container) return [];
    return Array.from(container.querySelectorAll(args.image))
        .map(img => img.getAttribute('src'))
        .filter(src => !!src);
}"""


class SourceList:
    """Ordered media sources, first-seen wins, keyed by canonical URL."""

    def __init__(self):
        self.urls: List[str] = []
        self._keys: Set[str] = set()

    def add(self, url: Optional[str]) -> bool:
        if not url:
            return False
        try:
            key = canonical_url(url)
        except ValueError as e:
            logger.warning("[SKIP] Unusable media source %r: %s", url, e)
            return False
        if key in self._keys:
            return False
        self._keys.add(key)
        self.urls.append(url)
        return True

    def __len__(self):
        return len(self.urls)


class MediaExtractor:
    def __init__(self, adapter: SiteAdapter, settings: Settings):
        self.adapter = adapter
        self.settings = settings

    async def extract_post(self, driver, post_url: str) -> Optional[ExtractedPost]:
        """
        Loads a single post and reads its media sources.

        Steps:
            1. Navigate and wait for the post to render (reload on timeout).
               Returns None when the post never renders.
            2. Up to `extraction_attempts` passes; each pass checks the
               restricted marker first and stops for good on a locked post.
            3. Otherwise runs the video, slideshow and single-image
               strategies in that order, merging what they find.
            4. Description and timestamp are read even when nothing was found.
        """
        s = self.settings
        loaded = await load_with_retry(
            driver,
            post_url,
            self.adapter.POST_WRAPPER,
            attempts=s.page_load_attempts,
            navigation_timeout_ms=s.navigation_timeout_ms,
            render_timeout_ms=s.render_timeout_ms,
        )
        if not loaded:
            return None

        result = ExtractedPost(url=post_url)
        sources = SourceList()

        for attempt in range(1, s.extraction_attempts + 1):
            if await self._is_locked(driver):
                logger.info("[LOCK] %s is restricted", post_url)
                result.locked = True
                break

            await self._video(driver, sources)
            await self._slides(driver, sources)
            await self._single_image(driver, sources)

            if sources:
                break
            logger.debug("No media found on %s (attempt %d/%d)", post_url, attempt, s.extraction_attempts)

        result.sources = sources.urls
        result.description = await self._text(driver, self.adapter.DESCRIPTION) or "none"
        result.timestamp = await self._text(driver, self.adapter.TIMESTAMP)
        return result

    async def _is_locked(self, driver) -> bool:
        try:
            marker = await driver.wait_for_selector(self.adapter.LOCKED, self.settings.marker_timeout_ms)
        except Exception as e:
            logger.warning("Locked check failed: %s", e)
            return False
        return marker is not None

    async def _video(self, driver, sources: SourceList) -> None:
        try:
            play = await driver.wait_for_selector(self.adapter.PLAY_BUTTON, self.settings.marker_timeout_ms)
            if play is None:
                return
            await driver.click(self.adapter.PLAY_BUTTON)

            # Best available quality wins; later labels are fallbacks
            for quality in self.settings.video_qualities:
                selector = self.adapter.VIDEO_SOURCE.format(quality=quality)
                if await driver.wait_for_selector(selector, self.settings.quality_probe_timeout_ms) is None:
                    continue
                src = await driver.extract_attribute(selector, "src")
                if src:
                    sources.add(src)
                    return
            logger.debug("Video found but no quality variant rendered")
        except Exception as e:
            logger.warning("Video strategy failed: %s", e)

    async def _slides(self, driver, sources: SourceList) -> None:
        try:
            container = await driver.wait_for_selector(self.adapter.SLIDES, self.settings.marker_timeout_ms)
            if container is None:
                return
            found = await driver.evaluate(
                SLIDE_SOURCES_JS,
                {"container": self.adapter.SLIDES, "image": self.adapter.SLIDE_IMAGE},
            )
            for src in found or []:
                sources.add(src)
        except Exception as e:
            logger.warning("Slideshow strategy failed: %s", e)

    async def _single_image(self, driver, sources: SourceList) -> None:
        try:
            image = await driver.wait_for_selector(self.adapter.SINGLE_IMAGE, self.settings.marker_timeout_ms)
            if image is None:
                return
            sources.add(await driver.extract_attribute(self.adapter.SINGLE_IMAGE, "src"))
        except Exception as e:
            logger.warning("Single image strategy failed: %s", e)

    async def _text(self, driver, selector: str) -> Optional[str]:
        try:
            text = await driver.inner_text(selector)
        except Exception as e:
            logger.debug("Could not read %s: %s", selector, e)
            return None
        text = (text or "").strip()
        return text or None
