"""Page metadata (Open Graph) extraction and fetching."""

import base64
import logging
from typing import Optional
from urllib.parse import urljoin, urlparse

import requests
from bs4 import BeautifulSoup

from .errors import FetchError
from .models import Ogp

log = logging.getLogger(__name__)

HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
    )
}
FAVICON_SERVICE = "https://www.google.com/s2/favicons"

# 1x1 transparent GIF returned when a favicon cannot be fetched
PLACEHOLDER_ICON = base64.b64decode("R0lGODlhAQABAIAAAAAAAP///yH5BAEAAAAALAAAAAABAAEAAAIBRAA7")


def _meta(soup: BeautifulSoup, key: str) -> Optional[str]:
    tag = soup.find("meta", attrs={"property": key}) or soup.find("meta", attrs={"name": key})
    if tag and tag.get("content"):
        return tag["content"].strip() or None
    return None


def extract_ogp(markup: str, page_url: str) -> Ogp:
    """Pull preview data out of a page.

    Falls back from ``og:*`` to ``twitter:*`` to the document's own title
    and description. Relative image URLs are resolved against ``page_url``.
    """
    soup = BeautifulSoup(markup or "", "html.parser")
    doc_title = soup.title.get_text().strip() if soup.title else None
    title = _meta(soup, "og:title") or _meta(soup, "twitter:title") or doc_title or None
    description = (
        _meta(soup, "og:description")
        or _meta(soup, "twitter:description")
        or _meta(soup, "description")
    )
    image = _meta(soup, "og:image") or _meta(soup, "twitter:image")
    if image:
        image = urljoin(page_url, image)
    return Ogp(title=title, description=description, image=image, loaded=True)


class MetadataFetcher:
    """Fetch page markup directly or through the local proxy."""

    def __init__(self, proxy_url: Optional[str] = None, timeout: float = 5.0,
                 session: Optional[requests.Session] = None):
        self.proxy_url = proxy_url
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch_text(self, url: str) -> str:
        try:
            if self.proxy_url:
                resp = self.session.get(self.proxy_url, params={"url": url}, timeout=self.timeout)
            else:
                resp = self.session.get(url, headers=HEADERS, timeout=self.timeout)
            resp.raise_for_status()
        except requests.exceptions.Timeout as e:
            raise FetchError(f"timeout fetching {url}: {e}")
        except requests.exceptions.RequestException as e:
            raise FetchError(f"fetching {url} failed: {e}")
        return resp.text

    def fetch_ogp(self, url: str) -> Ogp:
        return extract_ogp(self.fetch_text(url), url)


def favicon_url(domain: str, size: int = 64) -> str:
    return f"{FAVICON_SERVICE}?domain={domain}&sz={size}"


def domain_of(url: str) -> str:
    return urlparse(url).hostname or ""


def fetch_favicon(domain: str, session: Optional[requests.Session] = None,
                  timeout: float = 5.0) -> bytes:
    """Favicon bytes for ``domain``, or the transparent placeholder."""
    if not domain:
        return PLACEHOLDER_ICON
    session = session or requests.Session()
    try:
        resp = session.get(favicon_url(domain), headers=HEADERS, timeout=timeout)
        resp.raise_for_status()
    except requests.exceptions.RequestException as e:
        log.debug("favicon fetch failed for %s: %s", domain, e)
        return PLACEHOLDER_ICON
    return resp.content or PLACEHOLDER_ICON
