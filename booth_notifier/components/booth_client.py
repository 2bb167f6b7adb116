"""
BOOTH catalog client.

This module fetches the new-arrivals listing and item detail records from
booth.pm, translating network and parsing failures into the notifier's
error taxonomy.
"""

import logging
from typing import List, Optional

import requests
from bs4 import BeautifulSoup
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..interfaces import ICatalogClient
from ..models.config import BoothConfig
from ..models.item import Item
from ..utils.error_handling import FetchError, ParseError

logger = logging.getLogger(__name__)


class BoothClient(ICatalogClient):
    """HTTP client for the BOOTH listing page and item JSON endpoint."""

    def __init__(self, config: Optional[BoothConfig] = None):
        """
        Initialize the catalog client.

        Args:
            config: Catalog endpoints, timeout and retry settings
        """
        self.config = config or BoothConfig()
        self.session = self._create_session()

    def _create_session(self) -> requests.Session:
        """Create a requests session with retry configuration."""
        session = requests.Session()

        retry_strategy = Retry(
            total=self.config.max_retries,
            backoff_factor=1,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["HEAD", "GET"],
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("http://", adapter)
        session.mount("https://", adapter)

        session.headers.update({"User-Agent": self.config.user_agent})
        return session

    def _get(self, url: str, **kwargs) -> requests.Response:
        try:
            response = self.session.get(url, timeout=self.config.timeout, **kwargs)
            response.raise_for_status()
            return response

        except requests.exceptions.Timeout as e:
            raise FetchError(f"Timeout fetching {url}") from e

        except requests.exceptions.ConnectionError as e:
            raise FetchError(f"Connection error for {url}") from e

        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else "unknown"
            raise FetchError(f"HTTP error {status} for {url}") from e

        except requests.exceptions.RequestException as e:
            raise FetchError(f"Request to {url} failed: {e}") from e

    def fetch_catalog_ids(self) -> List[int]:
        """
        Fetch the new-arrivals listing.

        Returns:
            Item ids ordered oldest first

        Raises:
            FetchError: If the page cannot be retrieved
            ParseError: If the page carries no item cards
        """
        logger.debug(f"Fetching catalog listing: {self.config.catalog_url}")
        response = self._get(self.config.catalog_url)
        item_ids = self.parse_catalog_ids(response.text)
        logger.debug(f"Catalog listing returned {len(item_ids)} items")
        return item_ids

    @staticmethod
    def parse_catalog_ids(html: str) -> List[int]:
        """Extract item ids from a listing page, oldest first.

        The listing is rendered newest first; duplicates (the same item shown
        in several widgets) keep their first position.
        """
        soup = BeautifulSoup(html, "html.parser")

        item_ids: List[int] = []
        seen = set()
        for card in soup.select("[data-product-id]"):
            raw_id = str(card.get("data-product-id", "")).strip()
            if not raw_id.isdigit():
                logger.warning(f"Skipping item card with invalid id: {raw_id!r}")
                continue

            item_id = int(raw_id)
            if item_id not in seen:
                seen.add(item_id)
                item_ids.append(item_id)

        if not item_ids:
            raise ParseError("Catalog page contains no item cards")

        item_ids.reverse()
        return item_ids

    def fetch_item_detail(self, item_id: int) -> Item:
        """
        Fetch the detail record of an item.

        Raises:
            FetchError: If the record cannot be retrieved
            ParseError: If the record is not valid JSON or lacks required fields
        """
        url = self.config.item_url_template.format(item_id=item_id)
        response = self._get(url, headers={"Accept": "application/json"})

        try:
            payload = response.json()
        except ValueError as e:
            raise ParseError(f"Failed to parse JSON from {url}") from e

        return Item.from_dict(payload)
