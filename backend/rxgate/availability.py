"""
Inventory availability index.

Given a catalog item, a quantity and optional geo / region filters, find the
provider offers able to fill it. Geo search is a two-step affair: a latitude /
longitude bounding box narrows providers in SQL, then the great-circle distance
decides who is really inside the radius.

Read-only: no locks, stock figures may be slightly stale. The authoritative
stock check happens again when the order reserves.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Optional

from .catalog import resolve_catalog_item
from .exceptions import PrescriptionNotFound, ValidationError
from .intake.types import GeoFilter, ItemAvailability, OfferView, RegionFilter
from .models import Order, Prescription, Provider, ProviderOffer
from .services import latest_active_prescription

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0

SORT_CHEAPEST = 'cheapest'
SORT_CLOSEST = 'closest'
SORT_KEYS = (SORT_CHEAPEST, SORT_CLOSEST)

# no provider has this id; keeps an empty geo match from turning into "no filter"
NO_PROVIDER = -1


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points on the earth (km)."""
    lon1, lat1, lon2, lat2 = map(math.radians, [lon1, lat1, lon2, lat2])
    dlon = lon2 - lon1
    dlat = lat2 - lat1
    a = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    c = 2 * math.asin(min(1.0, math.sqrt(a)))
    return c * EARTH_RADIUS_KM


def truncate_km(distance: float, places: int = 2) -> float:
    """Round towards zero so a reported distance never exceeds the true one."""
    factor = 10 ** places
    return math.floor(distance * factor) / factor


def bounding_box(geo: GeoFilter) -> dict:
    """
    ORM lookups for the lat/lng box enclosing the search circle.

    The longitude bounds are dropped when the circle reaches a pole or wraps
    the antimeridian; the haversine pass still filters exactly.
    """
    angular = geo.radius_km / EARTH_RADIUS_KM
    lat_delta = math.degrees(angular)
    min_lat = geo.latitude - lat_delta
    max_lat = geo.latitude + lat_delta
    lookups = {
        'latitude__gte': max(-90.0, min_lat),
        'latitude__lte': min(90.0, max_lat),
    }

    if min_lat <= -90 or max_lat >= 90:
        return lookups

    ratio = math.sin(angular) / math.cos(math.radians(geo.latitude))
    if ratio >= 1:
        return lookups
    lng_delta = math.degrees(math.asin(ratio))
    min_lng = geo.longitude - lng_delta
    max_lng = geo.longitude + lng_delta
    if min_lng >= -180 and max_lng <= 180:
        lookups['longitude__gte'] = min_lng
        lookups['longitude__lte'] = max_lng
    return lookups


def validate_sort(sort_by):
    if sort_by not in SORT_KEYS:
        raise ValidationError(
            message=f'Unknown sort order: {sort_by!r}',
            code='INVALID_SORT',
            detail={'allowed': list(SORT_KEYS)},
        )


def rank_offers(offers, sort_by=SORT_CHEAPEST):
    """
    cheapest → price ascending
    closest  → distance ascending, offers without a distance last
    Ties go to the lower provider id.
    """
    validate_sort(sort_by)
    if sort_by == SORT_CLOSEST:
        return sorted(
            offers,
            key=lambda o: (o.distance_km is None, o.distance_km or 0.0, o.provider_id),
        )
    return sorted(offers, key=lambda o: (o.price, o.provider_id))


@dataclass
class PrescriptionAvailability:
    prescription: Any
    items: list[ItemAvailability] = field(default_factory=list)
    order: Optional[Any] = None


class AvailabilityIndex:

    def __init__(self, using='default'):
        self.using = using

    def _eligible_providers(self):
        return Provider.objects.using(self.using).filter(
            status=Provider.Status.VERIFIED,
            is_active=True,
        )

    def providers_within(self, geo: GeoFilter) -> dict[int, float]:
        """{provider_id: distance_km} for eligible providers inside the radius."""
        candidates = (
            self._eligible_providers()
            .filter(latitude__isnull=False, longitude__isnull=False, **bounding_box(geo))
            .values_list('id', 'latitude', 'longitude')
        )
        distances = {}
        for provider_id, lat, lng in candidates:
            distance = haversine_km(geo.latitude, geo.longitude, lat, lng)
            if distance <= geo.radius_km:
                distances[provider_id] = truncate_km(distance)
        logger.debug(
            "[Availability] %d providers within %.2fkm of (%s, %s)",
            len(distances), geo.radius_km, geo.latitude, geo.longitude,
        )
        return distances

    def find_availability(self, catalog_item_id, required_quantity=1, geo=None, region=None):
        """
        Offers able to supply `required_quantity` of the catalog item.

        Unordered; use rank_offers() for cheapest / closest.
        """
        if required_quantity is None or int(required_quantity) < 1:
            raise ValidationError(
                message='Quantity must be at least 1',
                code='INVALID_QUANTITY',
                detail={'quantity': required_quantity},
            )
        item = resolve_catalog_item(catalog_item_id, using=self.using)
        distances = self.providers_within(geo) if geo is not None else None
        return self._offers_for(item, int(required_quantity), distances, region)

    def search(self, catalog_item_id, required_quantity=1, latitude=None, longitude=None,
               radius_km=None, state=None, lga=None, ward=None, sort_by=SORT_CHEAPEST):
        """Loose-parameter entry point: builds the filters, searches and ranks."""
        geo = GeoFilter.from_params(latitude, longitude, radius_km)
        region = RegionFilter(state=state, lga=lga, ward=ward)
        validate_sort(sort_by)
        offers = self.find_availability(catalog_item_id, required_quantity, geo=geo, region=region)
        return rank_offers(offers, sort_by)

    def _offers_for(self, item, quantity, distances, region):
        offers = (
            ProviderOffer.objects.using(self.using)
            .select_related('provider')
            .filter(
                catalog_item=item,
                provider__status=Provider.Status.VERIFIED,
                provider__is_active=True,
            )
        )
        if item.is_stockable:
            offers = offers.filter(stock__gte=quantity)
        else:
            offers = offers.filter(available=True)

        if region is not None:
            offers = offers.filter(**region.lookups('provider__'))

        if distances is not None:
            offers = offers.filter(provider_id__in=list(distances) or [NO_PROVIDER])

        return [self._to_view(offer, distances) for offer in offers]

    @staticmethod
    def _to_view(offer, distances):
        provider = offer.provider
        return OfferView(
            provider_id=provider.id,
            provider_name=provider.name,
            address=provider.address,
            phone=provider.phone or None,
            license_number=provider.license_number or None,
            state=provider.state,
            lga=provider.lga,
            ward=provider.ward,
            operating_hours=provider.operating_hours,
            latitude=provider.latitude,
            longitude=provider.longitude,
            catalog_item_id=offer.catalog_item_id,
            price=float(offer.price),
            stock=offer.stock,
            available=offer.available,
            expiry_date=offer.expiry_date.isoformat() if offer.expiry_date else None,
            distance_km=distances.get(provider.id) if distances else None,
            home_collection_available=provider.home_collection_available,
        )

    def prescription_availability(self, patient_identifier, geo=None, region=None, sort_by=SORT_CHEAPEST):
        """
        Offers for every line item of the patient's current prescription.

        A still-pending prescription yields no items: offers are only shown
        once the prescription is verified.
        """
        validate_sort(sort_by)

        prescription = latest_active_prescription(patient_identifier, using=self.using)
        if prescription is None:
            raise PrescriptionNotFound(
                message='Prescription not found or not verified',
                detail={'patient_identifier': patient_identifier},
            )

        result = PrescriptionAvailability(prescription=prescription)
        result.order = (
            Order.objects.using(self.using)
            .filter(patient_identifier=patient_identifier, prescription=prescription)
            .exclude(status=Order.Status.CART)
            .order_by('-created_at', '-id')
            .first()
        )

        if prescription.status != Prescription.Status.VERIFIED:
            return result

        distances = self.providers_within(geo) if geo is not None else None
        line_items = prescription.line_items.select_related('catalog_item')
        for line in line_items:
            item = line.catalog_item
            offers = self._offers_for(item, line.quantity, distances, region)
            result.items.append(ItemAvailability(
                catalog_item_id=item.id,
                display_name=item.display_name(),
                quantity=line.quantity,
                prescription_required=item.prescription_required,
                offers=rank_offers(offers, sort_by),
            ))
        return result
