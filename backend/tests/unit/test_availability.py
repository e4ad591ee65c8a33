"""
Unit tests for the availability index: geo radius search, region filters,
stock / availability eligibility and ranking.
"""
import pytest
from decimal import Decimal
from django.db import connection
from django.test.utils import CaptureQueriesContext

from rxgate.availability import (
    AvailabilityIndex,
    SORT_CHEAPEST,
    SORT_CLOSEST,
    bounding_box,
    haversine_km,
    rank_offers,
    truncate_km,
)
from rxgate.exceptions import (
    CatalogItemNotFound,
    InvalidCoordinates,
    PrescriptionNotFound,
    ValidationError,
)
from rxgate.intake.types import GeoFilter, OfferView, RegionFilter
from rxgate.models import Order, Prescription, Provider
from tests.conftest import (
    CatalogItemFactory,
    OrderFactory,
    PrescriptionFactory,
    PrescriptionLineItemFactory,
    ProviderFactory,
    ProviderOfferFactory,
    ServiceItemFactory,
)

CENTER = (6.5, 3.3)


def _offer_view(provider_id, price, distance_km=None):
    return OfferView(
        provider_id=provider_id, provider_name=f'P{provider_id}', address='', phone=None,
        license_number=None, state='Lagos', lga='Ikeja', ward='', operating_hours='',
        latitude=None, longitude=None, catalog_item_id=1, price=price, stock=5,
        available=True, distance_km=distance_km,
    )


# -------------------------------------------------------------------
# Geometry helpers (no database)
# -------------------------------------------------------------------

class TestGeometry:

    def test_haversine_one_degree_of_longitude_at_equator(self):
        assert haversine_km(0, 0, 0, 1) == pytest.approx(111.19, abs=0.01)

    def test_haversine_same_point(self):
        assert haversine_km(6.5, 3.3, 6.5, 3.3) == 0.0

    def test_truncate_never_rounds_up(self):
        assert truncate_km(1.239) == 1.23
        assert truncate_km(9.999) == 9.99

    def test_bounding_box_contains_center(self):
        box = bounding_box(GeoFilter(*CENTER, radius_km=10))
        assert box['latitude__gte'] < CENTER[0] < box['latitude__lte']
        assert box['longitude__gte'] < CENTER[1] < box['longitude__lte']

    def test_bounding_box_near_pole_drops_longitude(self):
        box = bounding_box(GeoFilter(89.99, 0, radius_km=50))
        assert box['latitude__lte'] == 90.0
        assert 'longitude__gte' not in box

    def test_bounding_box_across_antimeridian_drops_longitude(self):
        box = bounding_box(GeoFilter(0, 179.99, radius_km=50))
        assert 'longitude__lte' not in box


class TestGeoFilter:

    @pytest.mark.parametrize('lat, lng, radius', [
        (100, 200, 5),
        (-91, 0, 5),
        (0, 181, 5),
        (6.5, 3.3, 0),
        (6.5, 3.3, -1),
    ])
    def test_invalid_values_raise(self, lat, lng, radius):
        with pytest.raises(InvalidCoordinates):
            GeoFilter(lat, lng, radius)

    def test_from_params_missing_value_means_no_filter(self):
        assert GeoFilter.from_params('6.5', '3.3', None) is None
        assert GeoFilter.from_params('', '3.3', '5') is None

    def test_from_params_parses_strings(self):
        geo = GeoFilter.from_params('6.5', '3.3', '5')
        assert geo == GeoFilter(6.5, 3.3, 5.0)

    def test_from_params_garbage_raises(self):
        with pytest.raises(InvalidCoordinates):
            GeoFilter.from_params('north', '3.3', '5')

    def test_region_lookups_only_for_given_fields(self):
        assert RegionFilter(state=' Lagos ').lookups('provider__') == {'provider__state__iexact': 'Lagos'}
        assert RegionFilter().lookups() == {}


class TestRankOffers:

    def test_cheapest_ties_go_to_lower_provider_id(self):
        ranked = rank_offers([_offer_view(3, 100.0), _offer_view(2, 100.0), _offer_view(1, 50.0)])
        assert [o.provider_id for o in ranked] == [1, 2, 3]

    def test_closest_puts_unknown_distance_last(self):
        ranked = rank_offers(
            [_offer_view(1, 10.0, None), _offer_view(2, 10.0, 4.5), _offer_view(3, 10.0, 1.2)],
            SORT_CLOSEST,
        )
        assert [o.provider_id for o in ranked] == [3, 2, 1]

    def test_unknown_sort_raises(self):
        with pytest.raises(ValidationError) as exc_info:
            rank_offers([], 'nearest')
        assert exc_info.value.code == 'INVALID_SORT'


# -------------------------------------------------------------------
# AvailabilityIndex.find_availability / search
# -------------------------------------------------------------------

@pytest.mark.django_db
class TestFindAvailability:

    def test_geo_search_keeps_only_providers_inside_radius(self):
        item = CatalogItemFactory()
        near = ProviderOfferFactory(catalog_item=item, provider=ProviderFactory(latitude=6.5, longitude=3.3))
        mid = ProviderOfferFactory(catalog_item=item, provider=ProviderFactory(latitude=6.55, longitude=3.3))
        ProviderOfferFactory(catalog_item=item, provider=ProviderFactory(latitude=6.6, longitude=3.3))
        ProviderOfferFactory(catalog_item=item, provider=ProviderFactory(latitude=None, longitude=None))

        geo = GeoFilter(*CENTER, radius_km=10)
        offers = AvailabilityIndex().find_availability(item.id, geo=geo)

        assert {o.provider_id for o in offers} == {near.provider_id, mid.provider_id}
        for offer in offers:
            assert offer.distance_km is not None
            assert offer.distance_km <= geo.radius_km
            exact = haversine_km(*CENTER, offer.latitude, offer.longitude)
            assert offer.distance_km <= exact

    def test_no_geo_means_no_distance(self):
        item = CatalogItemFactory()
        ProviderOfferFactory(catalog_item=item)
        ProviderOfferFactory(catalog_item=item, provider=ProviderFactory(latitude=None, longitude=None))

        offers = AvailabilityIndex().find_availability(item.id)

        assert len(offers) == 2
        assert all(o.distance_km is None for o in offers)

    def test_empty_geo_match_returns_nothing_not_everything(self):
        item = CatalogItemFactory()
        ProviderOfferFactory(catalog_item=item)

        offers = AvailabilityIndex().find_availability(item.id, geo=GeoFilter(0.0, 0.0, 1))
        assert offers == []

    def test_stock_must_cover_quantity(self):
        item = CatalogItemFactory()
        enough = ProviderOfferFactory(catalog_item=item, stock=5)
        ProviderOfferFactory(catalog_item=item, stock=4)
        ProviderOfferFactory(catalog_item=item, stock=None)

        offers = AvailabilityIndex().find_availability(item.id, required_quantity=5)
        assert [o.provider_id for o in offers] == [enough.provider_id]

    def test_services_use_available_flag(self):
        item = ServiceItemFactory()
        open_slot = ProviderOfferFactory(catalog_item=item, stock=None, available=True)
        ProviderOfferFactory(catalog_item=item, stock=None, available=False)

        offers = AvailabilityIndex().find_availability(item.id, required_quantity=3)
        assert [o.provider_id for o in offers] == [open_slot.provider_id]

    def test_unverified_or_inactive_providers_excluded(self):
        item = CatalogItemFactory()
        ok = ProviderOfferFactory(catalog_item=item)
        ProviderOfferFactory(catalog_item=item, provider=ProviderFactory(status=Provider.Status.SUSPENDED))
        ProviderOfferFactory(catalog_item=item, provider=ProviderFactory(is_active=False))

        offers = AvailabilityIndex().find_availability(item.id)
        assert [o.provider_id for o in offers] == [ok.provider_id]

    def test_region_filter_is_case_insensitive(self):
        item = CatalogItemFactory()
        lagos = ProviderOfferFactory(catalog_item=item)
        ProviderOfferFactory(catalog_item=item, provider=ProviderFactory(state='FCT', lga='Garki'))

        offers = AvailabilityIndex().find_availability(item.id, region=RegionFilter(state='lagos', lga='IKEJA'))
        assert [o.provider_id for o in offers] == [lagos.provider_id]

    def test_quantity_below_one_raises(self):
        item = CatalogItemFactory()
        with pytest.raises(ValidationError) as exc_info:
            AvailabilityIndex().find_availability(item.id, required_quantity=0)
        assert exc_info.value.code == 'INVALID_QUANTITY'

    def test_unknown_catalog_item(self):
        with pytest.raises(CatalogItemNotFound):
            AvailabilityIndex().find_availability(999999)

    def test_offer_view_fields(self):
        offer = ProviderOfferFactory(price=Decimal('2500.50'), stock=7)
        view = AvailabilityIndex().find_availability(offer.catalog_item_id)[0]

        assert view.price == 2500.5
        assert view.stock == 7
        assert view.provider_name == offer.provider.name
        assert view.phone is None


@pytest.mark.django_db
class TestSearch:

    def test_invalid_coordinates_rejected_before_any_query(self):
        item = CatalogItemFactory()
        with CaptureQueriesContext(connection) as ctx:
            with pytest.raises(InvalidCoordinates):
                AvailabilityIndex().search(item.id, latitude=100, longitude=200, radius_km=5)
        assert len(ctx.captured_queries) == 0

    def test_closest_first(self):
        item = CatalogItemFactory()
        far = ProviderOfferFactory(catalog_item=item, price=Decimal('100'),
                                   provider=ProviderFactory(latitude=6.55, longitude=3.3))
        near = ProviderOfferFactory(catalog_item=item, price=Decimal('900'),
                                    provider=ProviderFactory(latitude=6.5, longitude=3.3))

        offers = AvailabilityIndex().search(
            item.id, latitude='6.5', longitude='3.3', radius_km='20', sort_by=SORT_CLOSEST,
        )
        assert [o.provider_id for o in offers] == [near.provider_id, far.provider_id]
        assert offers[0].distance_km == 0.0

    def test_cheapest_first(self):
        item = CatalogItemFactory()
        pricey = ProviderOfferFactory(catalog_item=item, price=Decimal('900'))
        cheap = ProviderOfferFactory(catalog_item=item, price=Decimal('100'))

        offers = AvailabilityIndex().search(item.id, sort_by=SORT_CHEAPEST)
        assert [o.provider_id for o in offers] == [cheap.provider_id, pricey.provider_id]

    def test_unknown_sort_rejected(self):
        item = CatalogItemFactory()
        with pytest.raises(ValidationError):
            AvailabilityIndex().search(item.id, sort_by='random')


# -------------------------------------------------------------------
# AvailabilityIndex.prescription_availability
# -------------------------------------------------------------------

@pytest.mark.django_db
class TestPrescriptionAvailability:

    def test_verified_prescription_lists_offers_per_line_item(self):
        prescription = PrescriptionFactory(status=Prescription.Status.VERIFIED, verified=True)
        line = PrescriptionLineItemFactory(prescription=prescription, quantity=2)
        stocked = ProviderOfferFactory(catalog_item=line.catalog_item, stock=2)
        ProviderOfferFactory(catalog_item=line.catalog_item, stock=1)
        order = OrderFactory(prescription=prescription, status=Order.Status.PENDING)

        result = AvailabilityIndex().prescription_availability('guest-1')

        assert result.prescription == prescription
        assert result.order == order
        assert len(result.items) == 1
        item = result.items[0]
        assert item.quantity == 2
        assert [o.provider_id for o in item.offers] == [stocked.provider_id]

    def test_pending_prescription_has_no_offers_yet(self):
        prescription = PrescriptionFactory()
        PrescriptionLineItemFactory(prescription=prescription)

        result = AvailabilityIndex().prescription_availability('guest-1')

        assert result.prescription == prescription
        assert result.items == []

    def test_cart_orders_are_not_reported(self):
        prescription = PrescriptionFactory(status=Prescription.Status.VERIFIED)
        OrderFactory(prescription=prescription, status=Order.Status.CART)

        result = AvailabilityIndex().prescription_availability('guest-1')
        assert result.order is None

    def test_latest_active_prescription_wins(self):
        PrescriptionFactory(status=Prescription.Status.VERIFIED)
        newest = PrescriptionFactory(status=Prescription.Status.VERIFIED)
        PrescriptionFactory(status=Prescription.Status.REJECTED, rejection_reason='blurry')

        result = AvailabilityIndex().prescription_availability('guest-1')
        assert result.prescription == newest

    def test_no_active_prescription(self):
        PrescriptionFactory(status=Prescription.Status.REJECTED, rejection_reason='blurry')
        with pytest.raises(PrescriptionNotFound):
            AvailabilityIndex().prescription_availability('guest-1')
