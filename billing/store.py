"""Read-only client for the JSON collection store."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional
from urllib.error import HTTPError, URLError
from urllib.parse import quote
from urllib.request import Request, urlopen


LOGGER = logging.getLogger(__name__)

BILL_PERIODS = "bill-periods"
LOCKED_PERIODS = "locked-periods"
COLLECTIONS = "collections"
FARMERS = "farmers"
BRANCHES = "branches"
RATE_CONFIGS = "rate-configs"
ADJUSTMENTS = "additions-deductions"


class StoreError(RuntimeError):
    """Raised when a collection cannot be fetched or decoded."""


class JsonStore:
    """
    Fetches collections from an HTTP store or a snapshot directory.

    An http(s) location is queried with GET <location>/<collection>; any
    other location is a directory holding <collection>.json files.
    """

    def __init__(self, location: str, timeout: float = 10.0):
        self.location = str(location)
        self.timeout = timeout
        self._cache: Dict[str, object] = {}

    @classmethod
    def from_settings(cls, settings: Dict, location: Optional[str] = None) -> "JsonStore":
        section = settings.get("store", {})
        return cls(
            location or section.get("location", "http://localhost:5000"),
            timeout=float(section.get("timeout_seconds", 10)),
        )

    @property
    def is_remote(self) -> bool:
        return self.location.startswith(("http://", "https://"))

    def get(self, collection: str):
        """Decoded JSON of one collection (cached per store instance)."""
        if collection not in self._cache:
            if self.is_remote:
                self._cache[collection] = self._fetch_remote(collection)
            else:
                self._cache[collection] = self._read_snapshot(collection)
        return self._cache[collection]

    def _fetch_remote(self, collection: str):
        url = f"{self.location.rstrip('/')}/{quote(collection)}"
        LOGGER.debug("GET %s", url)
        request = Request(url, headers={"Accept": "application/json"})
        try:
            with urlopen(request, timeout=self.timeout) as response:
                payload = response.read().decode("utf-8")
        except HTTPError as exc:
            raise StoreError(f"GET {url} failed with HTTP {exc.code}") from exc
        except (URLError, OSError) as exc:
            raise StoreError(f"GET {url} failed: {exc}") from exc
        return self._decode(payload, url)

    def _read_snapshot(self, collection: str):
        path = Path(self.location) / f"{collection}.json"
        LOGGER.debug("Reading snapshot %s", path)
        try:
            payload = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise StoreError(f"Cannot read snapshot {path}: {exc}") from exc
        return self._decode(payload, str(path))

    @staticmethod
    def _decode(payload: str, source: str):
        try:
            return json.loads(payload)
        except json.JSONDecodeError as exc:
            raise StoreError(f"Invalid JSON from {source}: {exc}") from exc

    def _list(self, collection: str) -> List:
        data = self.get(collection)
        if not isinstance(data, list):
            LOGGER.warning("Collection %s is not a list; treating as empty", collection)
            return []
        return data

    def bill_periods(self) -> List[Dict]:
        return self._list(BILL_PERIODS)

    def locked_periods(self) -> List[str]:
        return [str(period_id) for period_id in self._list(LOCKED_PERIODS)]

    def collections(self) -> List[Dict]:
        return self._list(COLLECTIONS)

    def farmers(self) -> List[Dict]:
        return self._list(FARMERS)

    def branches(self) -> List[Dict]:
        return self._list(BRANCHES)

    def rate_configs(self) -> List[Dict]:
        return self._list(RATE_CONFIGS)

    def adjustments(self) -> List[Dict]:
        return self._list(ADJUSTMENTS)
