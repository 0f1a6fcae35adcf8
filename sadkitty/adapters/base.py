from dataclasses import dataclass, field           # dataclass creates lightweight, readable data objects
from typing import List, Optional                  # type hints for optional fields and generic lists


@dataclass
class Author:                                      # A creator whose feed we crawl
    id: str                                        # Stable external identifier (profile slug)
    name: str                                      # Display name from the authors file
    url: str                                       # Profile URL, derived from the id


@dataclass
class Post:                                        # One cached row of the Post table
    id: int                                        # Locally assigned primary key
    author_id: str                                 # Owning author
    url: str                                       # Canonical post URL (natural key)
    description: str                               # Percent-encoded text, or "none"
    timestamp: Optional[str]                       # Site-rendered date text, kept opaque
    locked: bool                                   # Restricted post, terminal once cached
    cached_media_count: int = 0                    # Media rows recorded for this post


@dataclass
class Media:                                       # One downloaded file
    id: int
    post_id: int
    url: str                                       # Query-string-stripped source URL
    file_path: str


@dataclass
class ExtractedPost:                               # What the extractor read off a rendered post
    url: str
    description: str = "none"                      # Raw text, "none" when the post has none
    timestamp: Optional[str] = None
    locked: bool = False
    sources: List[str] = field(default_factory=list)   # Ordered, de-duplicated media sources


class SiteAdapter:                                 # Base class for site-specific selectors and URLs
    name: str = "base"                             # Human-readable adapter name (override per site)
    base_url: str = ""

    FEED_CONTAINER: str = ""                       # Rendered once the author feed is usable
    FEED_POST: str = ""                            # One post card in the feed
    POST_ID_PATTERN: str = ""                      # JS regex source capturing the remote id from a card's id
    POST_WRAPPER: str = ""                         # Rendered once a single post view is usable
    LOCKED: str = ""                               # Restricted-content marker
    PLAY_BUTTON: str = ""
    VIDEO_SOURCE: str = ""                         # Format string taking a quality label
    SLIDES: str = ""                               # Multi-image container
    SLIDE_IMAGE: str = ""                          # Images inside SLIDES
    SINGLE_IMAGE: str = ""
    DESCRIPTION: str = ""
    TIMESTAMP: str = ""
    LOGIN_FORM: str = ""
    LOGIN_USERNAME: str = ""
    LOGIN_PASSWORD: str = ""
    LOGIN_SUBMIT: str = ""
    LOGGED_IN: str = ""                            # Present only with a live session

    def profile_url(self, author_id: str) -> str:
        raise NotImplementedError

    def feed_url(self, author_id: str) -> str:
        raise NotImplementedError

    def post_url(self, post_id: str, author_id: str) -> str:
        raise NotImplementedError

    def post_id_from_url(self, url: str) -> Optional[str]:
        raise NotImplementedError
