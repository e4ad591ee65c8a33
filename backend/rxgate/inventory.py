"""
Stock reservations against provider offers.

Both directions are single conditional UPDATEs so concurrent writers can never
drive stock below zero or hand back the same units twice.
"""

import logging

from django.db import transaction
from django.db.models import F

from .exceptions import InsufficientStock, ValidationError
from .models import OrderItem, ProviderOffer

logger = logging.getLogger(__name__)


def reserve_item(order_item, quantity=None, using='default'):
    """
    Hold `quantity` units (default: the item's ordered quantity) of the offer's
    stock for this order item. Services carry no stock and reserve nothing.

    Raises InsufficientStock when the offer cannot cover it.
    """
    quantity = order_item.quantity if quantity is None else quantity
    if quantity < 1:
        raise ValidationError(
            message='Quantity must be at least 1',
            code='INVALID_QUANTITY',
            detail={'quantity': quantity},
        )

    offer = ProviderOffer.objects.using(using).select_related('catalog_item').get(pk=order_item.offer_id)
    if not offer.catalog_item.is_stockable:
        return 0

    with transaction.atomic(using=using):
        updated = (
            ProviderOffer.objects.using(using)
            .filter(pk=offer.pk, stock__gte=quantity)
            .update(stock=F('stock') - quantity)
        )
        if updated != 1:
            raise InsufficientStock(
                detail={'offer_id': offer.pk, 'requested': quantity},
            )
        OrderItem.objects.using(using).filter(pk=order_item.pk).update(
            reserved_quantity=F('reserved_quantity') + quantity,
        )

    order_item.reserved_quantity += quantity
    logger.info("[Inventory] reserved %d of offer %s for order item %s", quantity, offer.pk, order_item.pk)
    return quantity


def release_order(order, using='default'):
    """
    Give every reserved unit of the order back to its offer.

    Must run inside the caller's transaction. Returns the number of units
    released; calling it again releases nothing.
    """
    released = 0
    items = (
        OrderItem.objects.using(using)
        .select_for_update(of=('self',))
        .select_related('offer__catalog_item')
        .filter(order=order, reserved_quantity__gt=0)
    )
    for item in items:
        if not item.offer.catalog_item.is_stockable:
            continue
        ProviderOffer.objects.using(using).filter(pk=item.offer_id).update(
            stock=F('stock') + item.reserved_quantity,
        )
        OrderItem.objects.using(using).filter(pk=item.pk).update(reserved_quantity=0)
        logger.info(
            "[Inventory] released %d of offer %s from order %s",
            item.reserved_quantity, item.offer_id, order.pk,
        )
        released += item.reserved_quantity
    return released
