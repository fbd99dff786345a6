import logging
import time
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List

import httpx

from config import settings
from hanjul.errors import CatalogUnavailableError, NotFoundError, ValidationError
from hanjul.services.http_client import get_http_client

logger = logging.getLogger(__name__)

UNKNOWN_AUTHOR = "Unknown Author"


@dataclass
class CatalogVolume:
    """Normalized volume metadata from the Google Books API."""
    title: Optional[str]
    authors: List[str] = field(default_factory=list)
    volume_id: Optional[str] = None
    isbn13: Optional[str] = None
    page_count: Optional[int] = None
    description: Optional[str] = None
    thumbnail_url: Optional[str] = None

    @property
    def author(self) -> str:
        return ", ".join(self.authors) if self.authors else UNKNOWN_AUTHOR

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.volume_id,
            "title": self.title,
            "authors": self.authors,
            "isbn13": self.isbn13,
            "page_count": self.page_count,
            "description": self.description,
            "thumbnail_url": self.thumbnail_url
        }


class GoogleBooksService:
    """Catalog lookups against Google Books.

    Every failure (network error, timeout, bad status, malformed payload) is
    reported as ``CatalogUnavailableError``; nothing is retried.
    """

    def __init__(self, api_key: Optional[str] = None, client: Optional[httpx.AsyncClient] = None,
                 base_url: Optional[str] = None):
        self.api_key = api_key or settings.google_books_api_key
        self.base_url = (base_url or settings.google_books_base_url).rstrip("/")
        self.max_results = settings.google_books_max_results
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is not None:
            return self._client
        return await get_http_client()

    async def _make_api_request(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """GET an endpoint and return the decoded JSON object."""
        url = f"{self.base_url}/{endpoint}"
        params = dict(params or {})
        if self.api_key:
            params["key"] = self.api_key

        client = await self._get_client()
        start_time = time.time()
        try:
            response = await client.get(url, params=params)
        except httpx.TimeoutException as e:
            logger.error(f"Google Books request timed out: {endpoint}")
            raise CatalogUnavailableError("Google Books request timed out") from e
        except httpx.HTTPError as e:
            logger.error(f"Google Books request failed: {e}")
            raise CatalogUnavailableError(f"Google Books unreachable: {e}") from e

        response_time_ms = int((time.time() - start_time) * 1000)
        logger.debug(f"Google Books {endpoint} -> {response.status_code} in {response_time_ms}ms")

        if response.status_code == 404:
            raise NotFoundError(f"Catalog volume not found: {endpoint}")
        if response.status_code != 200:
            logger.warning(f"Google Books request failed: {response.status_code} - {response.text[:200]}")
            raise CatalogUnavailableError(f"Google Books returned HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise CatalogUnavailableError("Google Books returned a non-JSON response") from e
        if not isinstance(data, dict):
            raise CatalogUnavailableError("Google Books returned an unexpected payload")
        return data

    @staticmethod
    def _extract_isbn13(volume_info: Dict[str, Any]) -> Optional[str]:
        for identifier in volume_info.get("industryIdentifiers") or []:
            if isinstance(identifier, dict) and identifier.get("type") == "ISBN_13":
                return identifier.get("identifier") or None
        return None

    @staticmethod
    def _extract_page_count(volume_info: Dict[str, Any]) -> Optional[int]:
        page_count = volume_info.get("pageCount")
        if isinstance(page_count, int) and not isinstance(page_count, bool) and page_count > 0:
            return page_count
        return None

    def _parse_volume(self, volume_data: Any) -> CatalogVolume:
        """Turn one Google Books volume resource into a CatalogVolume."""
        if not isinstance(volume_data, dict) or not isinstance(volume_data.get("volumeInfo"), dict):
            raise CatalogUnavailableError("Google Books volume is missing volumeInfo")

        volume_info = volume_data["volumeInfo"]
        authors = volume_info.get("authors") or []
        if not isinstance(authors, list):
            authors = [str(authors)]

        image_links = volume_info.get("imageLinks") or {}
        thumbnail_url = image_links.get("thumbnail") or image_links.get("smallThumbnail")

        return CatalogVolume(
            volume_id=volume_data.get("id"),
            title=volume_info.get("title"),
            authors=[str(a) for a in authors],
            isbn13=self._extract_isbn13(volume_info),
            page_count=self._extract_page_count(volume_info),
            description=volume_info.get("description"),
            thumbnail_url=thumbnail_url
        )

    async def search(self, query: str, max_results: Optional[int] = None) -> List[CatalogVolume]:
        """
        Search the catalog with a free-text query (title, author or ISBN)

        Args:
            query: Search text
            max_results: Maximum number of volumes, capped at the API limit of 40

        Returns:
            List of CatalogVolume objects, empty when nothing matched
        """
        if not query or not query.strip():
            logger.warning("Empty search query provided")
            raise ValidationError("Search query cannot be empty.")

        params = {
            "q": query.strip(),
            "maxResults": min(max_results or self.max_results, 40)
        }
        response = await self._make_api_request("volumes", params)

        items = response.get("items") or []
        if not isinstance(items, list):
            raise CatalogUnavailableError("Google Books search returned malformed items")

        volumes = [self._parse_volume(item) for item in items]
        logger.info(f"Found {len(volumes)} books for query: {query}")
        return volumes

    async def fetch_details(self, volume_id: str) -> CatalogVolume:
        """Fetch the full metadata of one volume by its Google Books id."""
        if not volume_id or not volume_id.strip():
            raise ValidationError("Volume id cannot be empty.")

        response = await self._make_api_request(f"volumes/{volume_id.strip()}")
        volume = self._parse_volume(response)
        if volume.volume_id is None:
            volume.volume_id = volume_id.strip()
        logger.info(f"Fetched catalog volume {volume.volume_id}: {volume.title}")
        return volume
