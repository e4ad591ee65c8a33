"""
Shared fixtures for all tests.

factory-boy factories live here so both unit/ and integration/ can import them.
"""
import pytest
from decimal import Decimal
from unittest.mock import Mock

from django.test import Client

import factory
from rxgate.models import (
    CatalogItem,
    Order,
    OrderItem,
    Prescription,
    PrescriptionLineItem,
    Provider,
    ProviderOffer,
)
from rxgate.notifications import NotificationDispatcher


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

class CatalogItemFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = CatalogItem

    kind = CatalogItem.Kind.MEDICATION
    name = factory.Sequence(lambda n: f'Amoxicillin {n}')
    form = 'capsule'
    strength = '500mg'
    prescription_required = True


class ServiceItemFactory(CatalogItemFactory):
    kind = CatalogItem.Kind.SERVICE
    name = factory.Sequence(lambda n: f'Full Blood Count {n}')
    form = ''
    strength = ''
    test_type = 'blood'


class ProviderFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Provider

    name = factory.Sequence(lambda n: f'HealthPlus Pharmacy {n}')
    address = '12 Allen Avenue'
    status = Provider.Status.VERIFIED
    is_active = True
    state = 'Lagos'
    lga = 'Ikeja'
    ward = 'Alausa'
    latitude = 6.6018
    longitude = 3.3515


class ProviderOfferFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = ProviderOffer

    provider = factory.SubFactory(ProviderFactory)
    catalog_item = factory.SubFactory(CatalogItemFactory)
    stock = 10
    available = True
    price = Decimal('1500.00')


class PrescriptionFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Prescription

    patient_identifier = 'guest-1'
    email = 'patient@example.com'
    phone = '+2348031234567'
    file_url = factory.Sequence(lambda n: f'https://files.example.com/rx/{n}.jpg')
    status = Prescription.Status.PENDING


class PrescriptionLineItemFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = PrescriptionLineItem

    prescription = factory.SubFactory(PrescriptionFactory)
    catalog_item = factory.SubFactory(CatalogItemFactory)
    quantity = 1


class OrderFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Order

    patient_identifier = 'guest-1'
    status = Order.Status.PENDING
    email = 'patient@example.com'
    total_price = Decimal('3000.00')


class OrderItemFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = OrderItem

    order = factory.SubFactory(OrderFactory)
    offer = factory.SubFactory(ProviderOfferFactory)
    quantity = 1
    price = Decimal('1500.00')


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def api_client():
    """Django test client for integration tests."""
    return Client()


@pytest.fixture
def notify():
    """Stand-in transport; records every (prescription, decision, order) it is handed."""
    return Mock()


@pytest.fixture
def dispatcher(notify):
    return NotificationDispatcher(notify=notify)
