"""Pick out a business's own website and image assets from free text."""

import re
import urllib.parse

# Host substrings that never count as a business's own site
DENYLIST = (
    # Social networks
    "facebook.",
    "fb.com",
    "instagram.",
    "twitter.",
    "linkedin.",
    "tiktok.",
    "youtube.",
    "youtu.be",
    "pinterest.",
    "nextdoor.",
    # Review aggregators and directories
    "yelp.",
    "tripadvisor.",
    "yellowpages.",
    "bbb.org",
    "angi.com",
    "thumbtack.",
    "foursquare.",
    "zomato.",
    "wikipedia.",
    # Maps
    "google.com/maps",
    "maps.google",
    "maps.app.goo.gl",
    "mapquest.",
    # Link shorteners
    "goo.gl",
    "bit.ly",
    "tinyurl.",
    "ow.ly",
    # Delivery and booking platforms
    "doordash.",
    "ubereats.",
    "grubhub.",
    "postmates.",
    "seamless.",
    "opentable.",
)

# Hosts too short to match as substrings; matched with their subdomains
DENIED_HOSTS = ("x.com", "t.co")

IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".gif", ".webp", ".svg", ".avif", ".ico")

_URL_RE = re.compile(r"https?://[^\s\"'<>()\[\]{}]+", re.IGNORECASE)
_TRAILING = ".,;:!?)>]"


def is_denylisted(url: str) -> bool:
    lowered = url.lower()
    if any(domain in lowered for domain in DENYLIST):
        return True
    host = urllib.parse.urlsplit(lowered).hostname or ""
    return any(host == denied or host.endswith("." + denied) for denied in DENIED_HOSTS)


def find_urls(text: str) -> list[str]:
    """All http(s) URLs in order of appearance, trailing punctuation stripped."""
    if not isinstance(text, str):
        return []
    urls = []
    for match in _URL_RE.finditer(text):
        url = match.group(0).rstrip(_TRAILING)
        if url:
            urls.append(url)
    return urls


def extract_business_url(text: str | None) -> str | None:
    """Return the first URL in ``text`` that isn't on the denylist.

    Args:
        text: Free text, e.g. a search result snippet or lead details.

    Returns:
        The URL, or None if every URL found is denylisted (or there are none).
    """
    for url in find_urls(text or ""):
        if not is_denylisted(url):
            return url
    return None


def looks_like_image_url(url: str | None) -> bool:
    """Whether a URL is worth fetching as an image asset."""
    if not url:
        return False
    try:
        parsed = urllib.parse.urlparse(url.strip())
    except ValueError:
        return False
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return False
    path = parsed.path.lower()
    return path.endswith(IMAGE_EXTENSIONS) or "logo" in path or "brand" in path


def find_logo_url(text: str | None) -> str | None:
    """First non-denylisted image URL in ``text``, preferring ones named like a logo."""
    images = [url for url in find_urls(text or "") if looks_like_image_url(url) and not is_denylisted(url)]
    for url in images:
        if "logo" in urllib.parse.urlparse(url).path.lower():
            return url
    return images[0] if images else None
