"""
Prescription aggregate operations and the per-item status projection.

Verification decisions live in coordinator.py; everything that only creates or
reads prescriptions lives here.
"""

import logging
from collections import OrderedDict

from django.conf import settings
from django.db import transaction

from .catalog import resolve_catalog_item
from .contact import normalize_contact
from .exceptions import (
    AlreadyProcessed,
    BlockError,
    NoEligibleItems,
    OrderNotFound,
    PrescriptionNotFound,
    ValidationError,
)
from .intake.types import LineItemData
from .models import Order, Prescription, PrescriptionLineItem

logger = logging.getLogger(__name__)

IDENTIFY_BY_CONTACT = 'contact'
IDENTIFY_BY_OPAQUE_ID = 'opaque'

STATUS_NONE = 'none'

ACTIVE_STATUSES = (Prescription.Status.PENDING, Prescription.Status.VERIFIED)


def latest_active_prescription(patient_identifier, using='default'):
    """Newest PENDING / VERIFIED prescription of the patient (ties → higher id), or None."""
    return (
        Prescription.objects.using(using)
        .filter(patient_identifier=patient_identifier, status__in=ACTIVE_STATUSES)
        .order_by('-created_at', '-id')
        .first()
    )


def lock_prescription(prescription_id, using='default'):
    """Fetch the prescription row FOR UPDATE. Caller must be inside an atomic block."""
    try:
        return Prescription.objects.using(using).select_for_update().get(pk=int(prescription_id))
    except (Prescription.DoesNotExist, TypeError, ValueError):
        raise PrescriptionNotFound(detail={'prescription_id': prescription_id})


def _as_line_item(item):
    if isinstance(item, LineItemData):
        return item
    return LineItemData(
        catalog_item_id=item.get('catalog_item_id'),
        quantity=item.get('quantity', 1),
        instructions=item.get('instructions'),
    )


class PrescriptionService:

    def __init__(self, using='default', identification_mode=None):
        self.using = using
        self.identification_mode = identification_mode or getattr(
            settings, 'PRESCRIPTION_IDENTIFICATION_MODE', IDENTIFY_BY_CONTACT,
        )

    def get(self, prescription_id):
        try:
            return Prescription.objects.using(self.using).get(pk=int(prescription_id))
        except (Prescription.DoesNotExist, TypeError, ValueError):
            raise PrescriptionNotFound(detail={'prescription_id': prescription_id})

    def upload(self, patient_identifier, file_reference, phone=None, email=None, order_id=None):
        """
        Create a PENDING prescription.

        With order_id the order must belong to the patient and hold at least
        one prescription-only item; it is linked, set to pending_prescription
        and its prescription items become the prescription's line items.
        """
        if not patient_identifier or not str(patient_identifier).strip():
            raise ValidationError(
                message='Patient identifier is required',
                code='PATIENT_IDENTIFIER_REQUIRED',
            )
        if not file_reference:
            raise ValidationError(message='Prescription file is required', code='FILE_REQUIRED')

        contact = normalize_contact(
            phone=phone,
            email=email,
            required=self.identification_mode == IDENTIFY_BY_CONTACT,
        )

        with transaction.atomic(using=self.using):
            order = eligible = None
            if order_id is not None:
                order, eligible = self._eligible_order(order_id, patient_identifier)

            prescription = Prescription.objects.using(self.using).create(
                patient_identifier=patient_identifier,
                email=contact.email,
                phone=contact.phone,
                file_url=file_reference,
                status=Prescription.Status.PENDING,
            )
            if order is not None:
                self._attach_order(prescription, order, eligible)

        logger.info(
            "[Prescription] uploaded id=%s patient=%s order=%s",
            prescription.id, patient_identifier, order.id if order else None,
        )
        return prescription

    def add_line_items(self, prescription_id, items):
        """All-or-nothing: one unknown catalog id and nothing is added."""
        items = [_as_line_item(item) for item in items or []]
        if not items:
            raise ValidationError(message='At least one item is required', code='NO_ITEMS')

        for index, item in enumerate(items):
            try:
                quantity = int(item.quantity)
            except (TypeError, ValueError):
                quantity = 0
            if quantity < 1:
                raise ValidationError(
                    message='Quantity must be at least 1',
                    code='INVALID_QUANTITY',
                    detail={'index': index, 'quantity': item.quantity},
                )

        with transaction.atomic(using=self.using):
            prescription = lock_prescription(prescription_id, using=self.using)
            if not prescription.is_pending:
                raise AlreadyProcessed(
                    detail={'prescription_id': prescription.id, 'status': prescription.status},
                )

            created = []
            for item in items:
                catalog_item = resolve_catalog_item(item.catalog_item_id, using=self.using)
                created.append(PrescriptionLineItem.objects.using(self.using).create(
                    prescription=prescription,
                    catalog_item=catalog_item,
                    quantity=int(item.quantity),
                    instructions=item.instructions or None,
                ))

        logger.info("[Prescription] added %d line items to id=%s", len(created), prescription.id)
        return created

    def link_order(self, prescription_id, order_id):
        """Attach one more of the patient's orders to a still-pending prescription."""
        with transaction.atomic(using=self.using):
            prescription = lock_prescription(prescription_id, using=self.using)
            if not prescription.is_pending:
                raise AlreadyProcessed(
                    detail={'prescription_id': prescription.id, 'status': prescription.status},
                )
            order, eligible = self._eligible_order(order_id, prescription.patient_identifier)
            self._attach_order(prescription, order, eligible)

        logger.info("[Prescription] linked order=%s to id=%s", order.id, prescription.id)
        return order

    # ── helpers ────────────────────────────────────────────────────────────

    def _eligible_order(self, order_id, patient_identifier):
        try:
            order = (
                Order.objects.using(self.using)
                .select_for_update()
                .get(pk=int(order_id), patient_identifier=patient_identifier)
            )
        except (Order.DoesNotExist, TypeError, ValueError):
            raise OrderNotFound(detail={'order_id': order_id})

        if order.status not in Order.AWAITING_REVIEW:
            raise BlockError(
                message='Order is no longer waiting for a prescription',
                code='ORDER_NOT_AWAITING_PRESCRIPTION',
                detail={'order_id': order.id, 'status': order.status},
            )

        eligible = list(
            order.items.select_related('offer__catalog_item')
            .filter(offer__catalog_item__prescription_required=True)
        )
        if not eligible:
            raise NoEligibleItems(detail={'order_id': order.id})
        return order, eligible

    def _attach_order(self, prescription, order, eligible_items):
        order.prescription = prescription
        order.status = Order.Status.PENDING_PRESCRIPTION
        order.save(using=self.using, update_fields=['prescription', 'status', 'updated_at'])

        quantities = OrderedDict()
        for item in eligible_items:
            catalog_item_id = item.offer.catalog_item_id
            quantities[catalog_item_id] = quantities.get(catalog_item_id, 0) + item.quantity

        already = set(prescription.line_items.values_list('catalog_item_id', flat=True))
        for catalog_item_id, quantity in quantities.items():
            if catalog_item_id in already:
                continue
            PrescriptionLineItem.objects.using(self.using).create(
                prescription=prescription,
                catalog_item_id=catalog_item_id,
                quantity=quantity,
            )


def _parse_catalog_id(raw):
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    text = str(raw).strip() if raw is not None else ''
    # ASCII digits only
    return int(text) if text.isascii() and text.isdecimal() else None


class StatusProjectionService:
    """Which of a set of catalog items the patient's current prescription covers."""

    def __init__(self, using='default'):
        self.using = using

    def statuses_for(self, patient_identifier, catalog_item_ids):
        """
        {requested id: 'none' | prescription status}

        Ids are echoed back as given. Non-numeric ids are reported as 'none'
        instead of failing the call.
        """
        statuses = {}
        valid = {}
        for raw in catalog_item_ids or []:
            statuses[raw] = STATUS_NONE
            parsed = _parse_catalog_id(raw)
            if parsed is not None:
                valid[raw] = parsed

        if not valid:
            logger.warning(
                "[Status] no valid catalog ids for patient=%s: %r", patient_identifier, catalog_item_ids,
            )
            return statuses

        prescription = latest_active_prescription(patient_identifier, using=self.using)
        if prescription is None:
            logger.info("[Status] no active prescription for patient=%s", patient_identifier)
            return statuses

        covered = set(
            prescription.line_items
            .filter(catalog_item_id__in=set(valid.values()))
            .values_list('catalog_item_id', flat=True)
        )
        for raw, catalog_item_id in valid.items():
            if catalog_item_id in covered:
                statuses[raw] = prescription.status

        return statuses
