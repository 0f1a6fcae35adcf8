from dataclasses import dataclass, field
from enum import Enum
from typing import List


class CrawlState(str, Enum):
    LOADING_FEED = "loading_feed"
    DISCOVERING = "discovering"
    PROCESSING_POST = "processing_post"
    DONE = "done"
    ABORTED = "aborted"


@dataclass
class AuthorReport:
    author_id: str
    state: CrawlState = CrawlState.LOADING_FEED
    discovered: int = 0                      # Unseen posts found in the feed
    processed: int = 0                       # Posts that yielded at least one media item
    downloaded: int = 0                      # New files written this run
    failed_posts: List[str] = field(default_factory=list)  # Post URLs with zero media handled

    def summary(self) -> str:
        line = (f"{self.author_id}: {self.state.value}, {self.discovered} discovered, "
                f"{self.processed} processed, {self.downloaded} downloaded")
        if self.failed_posts:
            line += f", {len(self.failed_posts)} without media"
        return line
