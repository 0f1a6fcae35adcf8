import unittest

from fakes import FakeDriver, FakePage

from sadkitty.adapters.onlyfans import OnlyFansAdapter
from sadkitty.config import Settings
from sadkitty.nodes.extraction import MediaExtractor, SourceList

A = OnlyFansAdapter()
POST_URL = "https://onlyfans.com/111/kitty"


def video_selector(quality):
    return A.VIDEO_SOURCE.format(quality=quality)


def make_page(**kwargs) -> FakePage:
    present = {A.POST_WRAPPER} | set(kwargs.pop("present", ()))
    return FakePage(present=present, **kwargs)


class SourceListTests(unittest.TestCase):
    def test_first_seen_wins_by_canonical_url(self):
        sources = SourceList()
        self.assertTrue(sources.add("https://cdn.x/a.jpg?sig=1"))
        self.assertFalse(sources.add("https://cdn.x/a.jpg?sig=2"))
        self.assertTrue(sources.add("https://cdn.x/b.jpg"))
        self.assertFalse(sources.add(None))
        self.assertEqual(sources.urls, ["https://cdn.x/a.jpg?sig=1", "https://cdn.x/b.jpg"])

    def test_unparseable_url_is_dropped(self):
        sources = SourceList()
        self.assertFalse(sources.add("https://[cdn.x/a.jpg"))
        self.assertTrue(sources.add("https://cdn.x/a.jpg"))
        self.assertEqual(len(sources), 1)


class MediaExtractorTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.extractor = MediaExtractor(A, Settings())

    async def extract(self, page: FakePage, driver: FakeDriver | None = None):
        driver = driver or FakeDriver(pages={POST_URL: page})
        return driver, await self.extractor.extract_post(driver, POST_URL)

    async def test_locked_post_stops_before_any_strategy(self):
        page = make_page(
            present={A.LOCKED, A.SINGLE_IMAGE},
            attrs={(A.SINGLE_IMAGE, "src"): "https://cdn.x/teaser.jpg"},
            texts={A.DESCRIPTION: "pay to see", A.TIMESTAMP: "Jan 3"},
        )
        driver, result = await self.extract(page)
        self.assertTrue(result.locked)
        self.assertEqual(result.sources, [])
        self.assertEqual(result.description, "pay to see")
        self.assertEqual(result.timestamp, "Jan 3")
        probed = [c[1] for c in driver.calls if c[0] == "wait_for_selector"]
        self.assertNotIn(A.SINGLE_IMAGE, probed)

    async def test_video_takes_first_rendered_quality(self):
        page = make_page(
            present={A.PLAY_BUTTON, video_selector("480"), video_selector("240")},
            attrs={
                (video_selector("480"), "src"): "https://cdn.x/v480.mp4?t=1",
                (video_selector("240"), "src"): "https://cdn.x/v240.mp4",
            },
        )
        driver, result = await self.extract(page)
        self.assertEqual(result.sources, ["https://cdn.x/v480.mp4?t=1"])
        self.assertIn(("click", A.PLAY_BUTTON), driver.calls)
        probed = [c[1] for c in driver.calls if c[0] == "wait_for_selector"]
        self.assertLess(probed.index(video_selector("720")), probed.index(video_selector("original")))
        self.assertLess(probed.index(video_selector("original")), probed.index(video_selector("480")))
        self.assertNotIn(video_selector("240"), probed)

    async def test_slides_and_single_image_both_contribute(self):
        page = make_page(
            present={A.SLIDES, A.SINGLE_IMAGE},
            slides=["https://cdn.x/a.jpg?sig=1", "https://cdn.x/b.jpg"],
            attrs={(A.SINGLE_IMAGE, "src"): "https://cdn.x/c.jpg"},
        )
        _, result = await self.extract(page)
        self.assertEqual(result.sources, [
            "https://cdn.x/a.jpg?sig=1",
            "https://cdn.x/b.jpg",
            "https://cdn.x/c.jpg",
        ])

    async def test_single_image_duplicating_a_slide_is_dropped(self):
        page = make_page(
            present={A.SLIDES, A.SINGLE_IMAGE},
            slides=["https://cdn.x/a.jpg?sig=1"],
            attrs={(A.SINGLE_IMAGE, "src"): "https://cdn.x/a.jpg?sig=2"},
        )
        _, result = await self.extract(page)
        self.assertEqual(result.sources, ["https://cdn.x/a.jpg?sig=1"])

    async def test_failing_strategy_does_not_stop_the_others(self):
        page = make_page(
            present={A.PLAY_BUTTON, A.SINGLE_IMAGE},
            attrs={(A.SINGLE_IMAGE, "src"): "https://cdn.x/c.jpg"},
        )
        driver = FakeDriver(pages={POST_URL: page})
        driver.failing_clicks.add(A.PLAY_BUTTON)
        _, result = await self.extract(page, driver)
        self.assertEqual(result.sources, ["https://cdn.x/c.jpg"])

    async def test_retries_until_media_shows_up(self):
        page = make_page(
            present={A.SINGLE_IMAGE},
            attrs={(A.SINGLE_IMAGE, "src"): "https://cdn.x/late.jpg"},
            appear_after={A.SINGLE_IMAGE: 1},
        )
        driver, result = await self.extract(page)
        self.assertEqual(result.sources, ["https://cdn.x/late.jpg"])
        locked_checks = [c for c in driver.calls if c == ("wait_for_selector", A.LOCKED)]
        self.assertEqual(len(locked_checks), 2)

    async def test_no_media_after_three_attempts(self):
        driver, result = await self.extract(make_page())
        self.assertEqual(result.sources, [])
        self.assertFalse(result.locked)
        self.assertEqual(result.description, "none")
        self.assertIsNone(result.timestamp)
        locked_checks = [c for c in driver.calls if c == ("wait_for_selector", A.LOCKED)]
        self.assertEqual(len(locked_checks), 3)

    async def test_post_that_never_renders_returns_none(self):
        driver, result = await self.extract(make_page(broken_loads=99))
        self.assertIsNone(result)
        self.assertEqual(driver.navigations(), [POST_URL])
        self.assertEqual(len([c for c in driver.calls if c[0] == "reload"]), 2)

    async def test_reload_recovers_a_slow_post(self):
        page = make_page(
            present={A.SINGLE_IMAGE},
            attrs={(A.SINGLE_IMAGE, "src"): "https://cdn.x/c.jpg"},
            broken_loads=1,
        )
        driver, result = await self.extract(page)
        self.assertEqual(result.sources, ["https://cdn.x/c.jpg"])
        self.assertEqual(len([c for c in driver.calls if c[0] == "reload"]), 1)

    async def test_failed_navigation_is_retried(self):
        page = make_page(
            present={A.SINGLE_IMAGE},
            attrs={(A.SINGLE_IMAGE, "src"): "https://cdn.x/c.jpg"},
            failed_navigations=1,
        )
        driver, result = await self.extract(page)
        self.assertEqual(result.sources, ["https://cdn.x/c.jpg"])
        self.assertEqual(driver.navigations(), [POST_URL, POST_URL])
