"""
Response serializers: model objects / dataclasses → JSON-able dicts.

Output formatting only; parsing and validation live in rxgate/intake/.
"""

from dataclasses import asdict


def _iso(value):
    return value.isoformat() if value else None


def serialize_line_item(line):
    return {
        'id': line.id,
        'catalog_item_id': line.catalog_item_id,
        'quantity': line.quantity,
        'instructions': line.instructions,
    }


def serialize_prescription(prescription, include_items=True):
    body = {
        'prescription_id': prescription.id,
        'patient_identifier': prescription.patient_identifier,
        'status': prescription.status,
        'verified': prescription.verified,
        'rejection_reason': prescription.rejection_reason,
        'file_url': prescription.file_url,
        'email': prescription.email,
        'phone': prescription.phone,
        'created_at': _iso(prescription.created_at),
        'updated_at': _iso(prescription.updated_at),
    }
    if include_items:
        body['items'] = [serialize_line_item(line) for line in prescription.line_items.all()]
    return body


def serialize_order_summary(order):
    return {
        'order_id': order.id,
        'status': order.status,
        'payment_status': order.payment_status,
        'cancel_reason': order.cancel_reason,
    }


def serialize_decision(result):
    body = {
        'prescription': serialize_prescription(result.prescription, include_items=False),
        'decision': result.decision,
        'orders': [serialize_order_summary(order) for order in result.orders],
        'released_units': result.released_units,
    }
    if result.notification_failures:
        body['notification_failures'] = [
            {'code': failure.code, 'message': failure.message, 'detail': failure.detail}
            for failure in result.notification_failures
        ]
    return body


def serialize_offer(offer):
    return asdict(offer)


def serialize_prescription_availability(result):
    prescription = result.prescription
    return {
        'prescription_id': prescription.id,
        'order_id': result.order.id if result.order else None,
        'order_status': result.order.status if result.order else None,
        'prescription_metadata': {
            'id': prescription.id,
            'uploaded_at': _iso(prescription.created_at),
            'status': prescription.status,
            'file_url': prescription.file_url,
        },
        'items': [
            {
                'catalog_item_id': item.catalog_item_id,
                'display_name': item.display_name,
                'quantity': item.quantity,
                'prescription_required': item.prescription_required,
                'availability': [serialize_offer(offer) for offer in item.offers],
            }
            for item in result.items
        ],
    }
