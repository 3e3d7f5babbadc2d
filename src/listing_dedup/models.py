"""
Data model for listings, addresses, canonical objects and comparison results.

Scraped records arrive with inconsistent shapes: ``Listing.from_dict`` is the
single place where field aliases, type coercion and timestamp parsing happen,
so every comparator downstream can rely on "missing" being ``None``.
"""
import math
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

import pandas as pd


class ProcessingStatus(str, Enum):
    NEEDS_ADDRESS = "needs_address"
    DUPLICATE_CHECK_NEEDED = "duplicate_check_needed"
    PROCESSED = "processed"
    ARCHIVED = "archived"


class SellerType(str, Enum):
    AGENT = "agent"
    OWNER = "owner"


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the normalisation in to_datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return pd.api.types.is_scalar(value) and bool(pd.isna(value))


def to_float(value: Any) -> Optional[float]:
    """Coerce a scraped numeric value to float; missing or invalid gives None."""
    if _is_missing(value) or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.replace('\u00a0', '').replace(' ', '').replace(',', '.')
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(number) or math.isinf(number) else number


def to_int(value: Any) -> Optional[int]:
    """Coerce to int, rejecting fractional values."""
    number = to_float(value)
    if number is None or not number.is_integer():
        return None
    return int(number)


def to_text(value: Any) -> Optional[str]:
    if _is_missing(value):
        return None
    return str(value).strip()


def to_datetime(value: Any) -> Optional[datetime]:
    """
    Parse ISO strings, epoch seconds/milliseconds and datetime objects into
    naive UTC datetimes so that mixed sources sort consistently.
    """
    if _is_missing(value):
        return None
    try:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            unit = 'ms' if value > 1e11 else 's'
            timestamp = pd.Timestamp(value, unit=unit, tz='UTC')
        else:
            timestamp = pd.Timestamp(value)
    except (TypeError, ValueError):
        return None
    if pd.isna(timestamp):
        return None
    if timestamp.tzinfo is not None:
        timestamp = timestamp.tz_convert(timezone.utc).tz_localize(None)
    return timestamp.to_pydatetime()


def _first_present(data: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if not _is_missing(value):
            return value
    return None


@dataclass
class Coordinates:
    lat: float
    lng: float

    @classmethod
    def from_value(cls, value: Any) -> Optional["Coordinates"]:
        if isinstance(value, Coordinates):
            return value
        if not isinstance(value, dict):
            return None
        lat = to_float(value.get('lat'))
        lng = to_float(_first_present(value, 'lng', 'lon'))
        if lat is None or lng is None:
            return None
        return cls(lat=lat, lng=lng)


@dataclass
class Seller:
    name: Optional[str] = None
    type: Optional[str] = None  # agent | owner
    phone: Optional[str] = None
    email: Optional[str] = None


@dataclass
class PriceHistoryEntry:
    date: Optional[datetime]
    price: float


@dataclass
class Listing:
    """A scraped offer from one marketplace."""

    id: str
    source: Optional[str] = None
    address_id: Optional[str] = None
    description: Optional[str] = None
    property_type: Optional[str] = None
    rooms: Optional[int] = None
    floor: Optional[int] = None
    floors_total: Optional[int] = None
    area_total: Optional[float] = None
    area_living: Optional[float] = None
    area_kitchen: Optional[float] = None
    price: Optional[float] = None
    house_type: Optional[str] = None  # building wall material
    seller: Seller = field(default_factory=Seller)
    price_history: List[PriceHistoryEntry] = field(default_factory=list)
    coordinates: Optional[Coordinates] = None
    url: Optional[str] = None
    created: Optional[datetime] = None
    updated: Optional[datetime] = None
    processing_status: ProcessingStatus = ProcessingStatus.DUPLICATE_CHECK_NEEDED
    object_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Listing":
        """
        Build a Listing from a scraped record.

        Absent keys and null values are treated identically. Accepts the
        aliases used by the different scrapers (``listing_id``,
        ``created_at``, ``floor_count``, ``surface_m2``, ...).

        Raises:
            ValueError: If the record has no id or an unknown processing status
        """
        listing_id = to_text(_first_present(data, 'id', 'listing_id'))
        if listing_id is None:
            raise ValueError("Listing record has no id")

        seller_info = data.get('seller_info') if isinstance(data.get('seller_info'), dict) else {}
        seller = Seller(
            name=to_text(_first_present(seller_info, 'name') or data.get('seller_name')),
            type=to_text(_first_present(seller_info, 'type') or data.get('seller_type')),
            phone=to_text(_first_present(seller_info, 'phone') or data.get('phone')),
            email=to_text(_first_present(seller_info, 'email') or data.get('email')),
        )
        if seller.type:
            seller.type = seller.type.lower()

        history = []
        raw_history = data.get('price_history')
        for entry in raw_history if isinstance(raw_history, list) else []:
            if not isinstance(entry, dict):
                continue
            price = to_float(entry.get('price'))
            if price is not None:
                history.append(PriceHistoryEntry(date=to_datetime(entry.get('date')), price=price))

        status = to_text(data.get('processing_status'))

        return cls(
            id=listing_id,
            source=to_text(data.get('source')),
            address_id=to_text(data.get('address_id')),
            description=to_text(data.get('description')),
            property_type=to_text(data.get('property_type')),
            rooms=to_int(_first_present(data, 'rooms', 'room_count')),
            floor=to_int(data.get('floor')),
            floors_total=to_int(_first_present(data, 'floors_total', 'floors_count', 'floor_count')),
            area_total=to_float(_first_present(data, 'area_total', 'surface_m2')),
            area_living=to_float(data.get('area_living')),
            area_kitchen=to_float(data.get('area_kitchen')),
            price=to_float(_first_present(data, 'price', 'current_price')),
            house_type=to_text(_first_present(data, 'house_type', 'wall_material')),
            seller=seller,
            price_history=history,
            coordinates=Coordinates.from_value(data.get('coordinates')),
            url=to_text(data.get('url')),
            created=to_datetime(_first_present(data, 'created', 'created_at')),
            updated=to_datetime(_first_present(data, 'updated', 'updated_at')),
            processing_status=ProcessingStatus(status) if status else ProcessingStatus.DUPLICATE_CHECK_NEEDED,
            object_id=to_text(data.get('object_id')),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['processing_status'] = self.processing_status.value
        for key in ('created', 'updated'):
            data[key] = data[key].isoformat() if data[key] else None
        data['price_history'] = [
            {'date': entry.date.isoformat() if entry.date else None, 'price': entry.price}
            for entry in self.price_history
        ]
        return data


@dataclass
class Address:
    """A geocoded location; only the structural attributes used by segment filters."""

    id: str
    type: Optional[str] = None
    house_class_id: Optional[str] = None
    house_series_id: Optional[str] = None
    wall_material_id: Optional[str] = None
    coordinates: Optional[Coordinates] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Address":
        return cls(
            id=str(data['id']),
            type=to_text(data.get('type')),
            house_class_id=to_text(data.get('house_class_id')),
            house_series_id=to_text(data.get('house_series_id')),
            wall_material_id=to_text(data.get('wall_material_id')),
            coordinates=Coordinates.from_value(data.get('coordinates')),
        )


@dataclass
class RealEstateObject:
    """Canonical real-estate unit formed by merging one or more listings."""

    id: str
    address_id: str
    listing_ids: List[str]
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'address_id': self.address_id,
            'listing_ids': list(self.listing_ids),
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat(),
        }


@dataclass
class Feature:
    type: str  # amenity | layout | legal | combo | quantity
    feature: str
    keyword: str
    weight: float


@dataclass
class FeatureSet:
    """Weighted distinctive features found in one description."""

    features: List[Feature] = field(default_factory=list)
    score: float = 0.0
    counts: Dict[str, int] = field(default_factory=dict)

    @property
    def feature_names(self) -> List[str]:
        return [f.feature for f in self.features]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class CandidateScore:
    """Outcome of comparing two listings across all signals."""

    unique_features: float
    specification: float
    text: float
    seller_relation: float
    price_history: float
    location: float
    final: float
    confidence: str  # auto_merge | high | medium | low | very_low
    is_duplicate: bool
    should_auto_merge: bool
    bonus: float = 0.0
    breakdown: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ProgressEvent:
    stage: str
    message: str
    progress_percent: int
    statistics: Optional[Dict[str, Any]] = None
