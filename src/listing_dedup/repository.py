"""
In-memory object storage and CSV listing loading.
"""

import json
import logging
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

import pandas as pd

from .exceptions import RepositoryError
from .models import Listing, ProcessingStatus, RealEstateObject, utcnow

logger = logging.getLogger(__name__)

JSON_COLUMNS = ('price_history', 'seller_info', 'coordinates')


class InMemoryObjectRepository:
    """
    Thread-safe ObjectRepository keeping listings and objects in dictionaries.

    Listing instances are stored by reference: object assignment and status
    updates are visible on the instances passed to ``add_listings``.
    """

    def __init__(self, listings: Optional[Iterable[Listing]] = None, id_prefix: str = "obj"):
        self._listings: Dict[str, Listing] = {}
        self._objects: Dict[str, RealEstateObject] = {}
        self._lock = threading.RLock()
        self._next_id = 1
        self.id_prefix = id_prefix
        if listings:
            self.add_listings(listings)

    def add_listings(self, listings: Iterable[Listing]):
        with self._lock:
            for listing in listings:
                self._listings[listing.id] = listing

    @property
    def listings(self) -> List[Listing]:
        with self._lock:
            return list(self._listings.values())

    @property
    def objects(self) -> List[RealEstateObject]:
        with self._lock:
            return list(self._objects.values())

    def get_object(self, object_id: str) -> Optional[RealEstateObject]:
        with self._lock:
            return self._objects.get(object_id)

    def get_listing(self, listing_id: str) -> Optional[Listing]:
        with self._lock:
            return self._listings.get(listing_id)

    def create_object(self, address_id: str, listing_ids: List[str]) -> RealEstateObject:
        if not listing_ids:
            raise RepositoryError("An object needs at least one listing")
        with self._lock:
            self._check_unassigned(listing_ids)
            object_id = f"{self.id_prefix}_{self._next_id}"
            self._next_id += 1
            obj = RealEstateObject(id=object_id, address_id=address_id, listing_ids=list(listing_ids))
            self._objects[object_id] = obj
            self._assign(object_id, listing_ids)
            return obj

    def add_listings_to_object(self, object_id: str, listing_ids: List[str]) -> RealEstateObject:
        with self._lock:
            obj = self._objects.get(object_id)
            if obj is None:
                raise RepositoryError(f"Object {object_id} not found")
            new_ids = [i for i in dict.fromkeys(listing_ids) if i not in obj.listing_ids]
            self._check_unassigned(new_ids)
            obj.listing_ids.extend(new_ids)
            obj.updated_at = utcnow()
            self._assign(object_id, new_ids)
            return obj

    def get_listings_by_address(self, address_id: str) -> List[Listing]:
        with self._lock:
            return [l for l in self._listings.values() if l.address_id == address_id]

    def update_listing_status(self, listing_id: str, status: ProcessingStatus) -> None:
        with self._lock:
            listing = self._listings.get(listing_id)
            if listing is None:
                raise RepositoryError(f"Listing {listing_id} not found")
            listing.processing_status = ProcessingStatus(status)

    def _check_unassigned(self, listing_ids: List[str]):
        for listing_id in listing_ids:
            listing = self._listings.get(listing_id)
            if listing is not None and listing.object_id:
                raise RepositoryError(f"Listing {listing_id} already belongs to object {listing.object_id}")

    def _assign(self, object_id: str, listing_ids: List[str]):
        for listing_id in listing_ids:
            listing = self._listings.get(listing_id)
            if listing is not None:
                listing.object_id = object_id


def _decode_json(value, column: str):
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        logger.warning(f"Invalid JSON in column '{column}': {value[:50]}")
        return None


def load_listings_csv(path: Union[str, Path]) -> List[Listing]:
    """
    Load listings from a CSV export.

    Nested columns (price_history, seller_info, coordinates) may hold JSON.
    Rows that cannot be turned into a Listing are logged and skipped.

    Args:
        path: CSV file path

    Returns:
        Parsed listings in file order
    """
    df = pd.read_csv(path, dtype={'id': str, 'listing_id': str, 'address_id': str, 'object_id': str})
    logger.info(f"Loaded {len(df)} rows from {path}")

    for column in JSON_COLUMNS:
        if column in df.columns:
            df[column] = df[column].map(lambda value, c=column: _decode_json(value, c))

    listings = []
    for row_number, record in enumerate(df.to_dict(orient='records'), start=1):
        try:
            listings.append(Listing.from_dict(record))
        except ValueError as e:
            logger.warning(f"Skipping row {row_number}: {e}")
    return listings
