from __future__ import annotations

import asyncio
import logging
import re
from typing import Awaitable, Callable, List, Optional
from urllib.parse import parse_qs, urlencode, urljoin, urlparse

from bs4 import BeautifulSoup

from store_scrap.config.models import GoogleSettings, RefreshSettings
from store_scrap.core.models import Listing, StoreResult
from store_scrap.core.utils import format_rfc3339, utc_now
from store_scrap.refresh.retry import with_retry
from store_scrap.sources.http import HttpClient
from store_scrap.sources.interfaces import DataSource

logger = logging.getLogger(__name__)

DETAILS_PATH = "/store/apps/details"

# "Free", "$2.99", "1,99 €"
_PRICE_RE = re.compile(r"^(?:Free|[^\w\s]{1,3}\s?\d[\d.,]*|\d[\d.,]*\s?[^\w\s]{1,3})$")
# "4.5", "4,5 star"
_RATING_RE = re.compile(r"^\d(?:[.,]\d)?(?:\s*star)?$", re.IGNORECASE)


def _app_id_from_href(href: str) -> Optional[str]:
    parsed = urlparse(href)
    if not parsed.path.endswith(DETAILS_PATH):
        return None
    values = parse_qs(parsed.query).get("id")
    return values[0] if values else None


def parse_listings(html: str, *, base_url: str, country: str, limit: int) -> List[Listing]:
    """Extract app cards from a Play Store listing page, in page order."""
    soup = BeautifulSoup(html, "html.parser")
    items: List[Listing] = []
    seen = set()
    for anchor in soup.find_all("a", href=True):
        app_id = _app_id_from_href(anchor["href"])
        if not app_id or app_id in seen:
            continue
        seen.add(app_id)

        texts = [text for text in anchor.stripped_strings if not _RATING_RE.match(text)]
        price = next((text for text in texts if _PRICE_RE.match(text)), None)
        texts = [text for text in texts if text != price]
        name = anchor.get("title") or anchor.get("aria-label") or (texts[0] if texts else app_id)
        developer = texts[1] if len(texts) > 1 else None
        image = anchor.find("img")
        artwork = None
        if image is not None:
            artwork = image.get("src") or image.get("data-src")

        items.append(
            {
                "id": app_id,
                "name": name,
                "developer": developer,
                "url": urljoin(base_url, f"{DETAILS_PATH}?{urlencode({'id': app_id})}"),
                "artwork": artwork,
                "price": price,
                "isFree": None if price is None else price == "Free",
                "releaseDate": None,
                "genres": None,
                "country": country,
            }
        )
        if len(items) >= limit:
            break
    return items


class GoogleSource(DataSource):
    """Google Play listings scraped from the "new" and "top" free game collections."""

    def __init__(
        self,
        *,
        config: GoogleSettings,
        refresh: RefreshSettings,
        http: HttpClient,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ) -> None:
        self._config = config
        self._retry_delays = tuple(refresh.retry_delays_seconds)
        self._http = http
        self._sleep = sleep or asyncio.sleep

    @property
    def name(self) -> str:
        return "google"

    def collection_url(self, path: str, country: str) -> str:
        url = urljoin(self._config.base_url, path)
        separator = "&" if "?" in url else "?"
        return f"{url}{separator}{urlencode({'hl': self._config.language, 'gl': country})}"

    async def _fetch_collection(self, path: str, country: str) -> List[Listing]:
        url = self.collection_url(path, country)
        html = await with_retry(lambda: self._http.get_text(url), self._retry_delays, sleep=self._sleep)
        items = parse_listings(html, base_url=self._config.base_url, country=country, limit=self._config.target_size)
        logger.debug("Google collection parsed. country=%s url=%s items=%d", country, url, len(items))
        return items

    async def fetch(self, country: str, previous: Optional[StoreResult] = None) -> StoreResult:
        new_apps, updated_apps = await asyncio.gather(
            self._fetch_collection(self._config.new_collection_path, country),
            self._fetch_collection(self._config.updated_collection_path, country),
        )
        return StoreResult(
            country=country,
            store=self.name,
            updated_at=format_rfc3339(utc_now()),
            new=new_apps,
            updated=updated_apps,
            errors=[],
        )
