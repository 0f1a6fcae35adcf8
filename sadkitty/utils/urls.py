from urllib.parse import urlsplit, urlunsplit


def canonical_url(url: str) -> str:
    """
    Strips query string and fragment so signed/expiring variants of the
    same asset share one de-duplication key.
    Example:
        "https://cdn.x/a.jpg?sig=1#t" → "https://cdn.x/a.jpg"
    """
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


def url_extension(url: str, default: str = "bin") -> str:
    """Extension of the URL path's last segment, without the dot."""
    last = urlsplit(url).path.rsplit("/", 1)[-1]
    if "." not in last:
        return default
    ext = last.rsplit(".", 1)[-1].lower()
    return ext or default
