import re
from typing import Optional
from urllib.parse import urlparse

from sadkitty.adapters.base import SiteAdapter


class OnlyFansAdapter(SiteAdapter):
    name = "onlyfans"
    base_url = "https://onlyfans.com"

    FEED_CONTAINER = ".user_posts"
    FEED_POST = ".user_posts .b-post"
    POST_ID_PATTERN = r"postId_(\d+)"
    POST_WRAPPER = ".b-post__wrapper"
    LOCKED = ".b-post__wrapper .post-purchase, .b-post__wrapper .m-locked"
    PLAY_BUTTON = ".b-post__wrapper .vjs-big-play-button"
    VIDEO_SOURCE = ".b-post__wrapper video source[label='{quality}']"
    SLIDES = ".b-post__wrapper .swiper-wrapper"
    SLIDE_IMAGE = "img[draggable='false']"
    SINGLE_IMAGE = ".b-post__wrapper .img-responsive"
    DESCRIPTION = ".b-post__text-el"
    TIMESTAMP = ".b-post__date > span"
    LOGIN_FORM = "form.b-loginreg__form"
    LOGIN_USERNAME = "input[name='email']"
    LOGIN_PASSWORD = "input[name='password']"
    LOGIN_SUBMIT = "button[type='submit']"
    LOGGED_IN = ".user_posts"

    _POST_URL_RE = re.compile(r"^/(\d+)/")

    def profile_url(self, author_id: str) -> str:
        return f"{self.base_url}/{author_id}"

    def feed_url(self, author_id: str) -> str:
        # Newest first; discovery reverses the order before processing
        return f"{self.base_url}/{author_id}/media?order=publish_date_desc"

    def post_url(self, post_id: str, author_id: str) -> str:
        return f"{self.base_url}/{post_id}/{author_id}"

    def post_id_from_url(self, url: str) -> Optional[str]:
        # "https://onlyfans.com/123456/someone" → "123456"
        m = self._POST_URL_RE.match(urlparse(url).path)
        return m.group(1) if m else None
