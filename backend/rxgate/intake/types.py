"""
Plain dataclasses the services consume.

Views and parsers turn raw request data into these; services never look at
request payloads directly.
"""

from dataclasses import dataclass, field
from typing import Optional

from ..exceptions import InvalidCoordinates


@dataclass
class ContactData:
    phone: Optional[str] = None
    email: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.phone and not self.email


@dataclass
class LineItemData:
    catalog_item_id: int
    quantity: int = 1
    instructions: Optional[str] = None


@dataclass(frozen=True)
class GeoFilter:
    """Point + radius. Only built when all three values are present."""

    latitude: float
    longitude: float
    radius_km: float

    def __post_init__(self):
        if not -90 <= self.latitude <= 90 or not -180 <= self.longitude <= 180:
            raise InvalidCoordinates(
                detail={'latitude': self.latitude, 'longitude': self.longitude},
            )
        if self.radius_km <= 0:
            raise InvalidCoordinates(
                message='Search radius must be greater than zero',
                detail={'radius_km': self.radius_km},
            )

    @classmethod
    def from_params(cls, latitude=None, longitude=None, radius_km=None) -> Optional['GeoFilter']:
        """
        Build a filter from loose values.

        Returns None when any of the three is missing (the search then runs
        without a geo filter). Present but unparseable or out-of-range values
        raise InvalidCoordinates.
        """
        values = (latitude, longitude, radius_km)
        if any(v is None or v == '' for v in values):
            return None
        try:
            lat, lng, radius = (float(v) for v in values)
        except (TypeError, ValueError):
            raise InvalidCoordinates(
                detail={'latitude': latitude, 'longitude': longitude, 'radius_km': radius_km},
            )
        return cls(latitude=lat, longitude=lng, radius_km=radius)


@dataclass(frozen=True)
class RegionFilter:
    state: Optional[str] = None
    lga: Optional[str] = None
    ward: Optional[str] = None

    def lookups(self, prefix: str = '') -> dict:
        """Case-insensitive exact lookups for the fields that were supplied."""
        result = {}
        for name in ('state', 'lga', 'ward'):
            value = getattr(self, name)
            if value:
                result[f'{prefix}{name}__iexact'] = value.strip()
        return result


@dataclass
class OfferView:
    """One provider able to fill a catalog item, as returned by the index."""

    provider_id: int
    provider_name: str
    address: str
    phone: Optional[str]
    license_number: Optional[str]
    state: str
    lga: str
    ward: str
    operating_hours: str
    latitude: Optional[float]
    longitude: Optional[float]
    catalog_item_id: int
    price: float
    stock: Optional[int]
    available: bool
    expiry_date: Optional[str] = None
    distance_km: Optional[float] = None
    home_collection_available: bool = False


@dataclass
class ItemAvailability:
    catalog_item_id: int
    display_name: str
    quantity: int
    prescription_required: bool
    offers: list[OfferView] = field(default_factory=list)
