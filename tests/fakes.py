"""Scripted stand-ins for the page driver."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from sadkitty.nodes.extraction import SLIDE_SOURCES_JS
from sadkitty.utils.stream import REMAINING_SCROLL_JS, SCAN_FEED_JS, SCROLL_BY_JS


@dataclass
class FakePage:
    present: Set[str] = field(default_factory=set)            # selectors that match once rendered
    attrs: Dict[Tuple[str, str], str] = field(default_factory=dict)
    texts: Dict[str, str] = field(default_factory=dict)
    slides: List[str] = field(default_factory=list)
    broken_loads: int = 0                                       # loads that render nothing
    failed_navigations: int = 0                                 # navigations that raise
    appear_after: Dict[str, int] = field(default_factory=dict)  # selector → misses before it matches
    loads: int = 0

    def rendered(self) -> bool:
        return self.loads > self.broken_loads


@dataclass
class FakeFeed:
    initial: List[str] = field(default_factory=list)            # newest first
    batches: List[List[str]] = field(default_factory=list)      # revealed one per scroll
    late: Dict[int, List[str]] = field(default_factory=dict)    # scan number → ids that show up then
    revealed: List[str] = field(default_factory=list)
    scans: int = 0

    def __post_init__(self):
        self.revealed = list(self.initial)


class FakeDriver:
    def __init__(self, pages: Optional[Dict[str, FakePage]] = None, feed: Optional[FakeFeed] = None):
        self.pages = pages or {}
        self.feed = feed or FakeFeed()
        self.current: Optional[str] = None
        self.calls: List[tuple] = []
        self.failing_clicks: Set[str] = set()
        self.waited_ms = 0

    @property
    def page(self) -> FakePage:
        return self.pages.setdefault(self.current, FakePage())

    def navigations(self) -> List[str]:
        return [c[1] for c in self.calls if c[0] == "navigate"]

    async def navigate(self, url, wait_until="domcontentloaded", timeout_ms=None):
        self.calls.append(("navigate", url))
        self.current = url
        page = self.page
        if page.failed_navigations > 0:
            page.failed_navigations -= 1
            raise PlaywrightTimeoutError(f"Timeout navigating to {url}")
        page.loads += 1

    async def reload(self, wait_until="domcontentloaded", timeout_ms=None):
        self.calls.append(("reload", self.current))
        self.page.loads += 1

    async def wait_for_selector(self, selector, timeout_ms, state="attached"):
        self.calls.append(("wait_for_selector", selector))
        page = self.page
        if not page.rendered() or selector not in page.present:
            return None
        misses = page.appear_after.get(selector, 0)
        if misses > 0:
            page.appear_after[selector] = misses - 1
            return None
        return object()

    async def evaluate(self, expression, arg=None):
        if expression == REMAINING_SCROLL_JS:
            return 900 if self.feed.batches else 0
        if expression == SCROLL_BY_JS:
            if self.feed.batches:
                self.feed.revealed.extend(self.feed.batches.pop(0))
            return None
        if expression == SCAN_FEED_JS:
            self.feed.revealed.extend(self.feed.late.pop(self.feed.scans, []))
            self.feed.scans += 1
            known = set(arg["known"])
            return [i for i in self.feed.revealed if i not in known]
        if expression == SLIDE_SOURCES_JS:
            return list(self.page.slides)
        raise AssertionError(f"unexpected script: {expression[:40]}")

    async def extract_attribute(self, selector, name):
        return self.page.attrs.get((selector, name))

    async def inner_text(self, selector):
        return self.page.texts.get(selector)

    async def click(self, selector, timeout_ms=5000):
        self.calls.append(("click", selector))
        if selector in self.failing_clicks:
            raise PlaywrightTimeoutError(f"Timeout clicking {selector}")

    async def type(self, selector, text, delay_ms=10):
        self.calls.append(("type", selector, text))

    async def wait(self, ms):
        self.waited_ms += ms
