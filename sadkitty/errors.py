class SadKittyError(Exception):
    """Base exception for crawler errors"""


class ConfigError(SadKittyError):
    """Credentials, authors list or settings could not be loaded"""


class LoginError(SadKittyError):
    """The session could not be established; fatal for the whole run"""


class PageLoadError(SadKittyError):
    """A page did not render after every reload attempt"""

    def __init__(self, url: str, attempts: int):
        super().__init__(f"{url} did not load after {attempts} attempts")
        self.url = url
        self.attempts = attempts


class CacheError(SadKittyError):
    """A cache store operation failed"""
