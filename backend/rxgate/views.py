from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from .availability import AvailabilityIndex, SORT_CHEAPEST
from .coordinator import FulfillmentCoordinator
from .exceptions import ValidationError
from .intake import parsers
from .serializers import (
    serialize_decision,
    serialize_line_item,
    serialize_offer,
    serialize_order_summary,
    serialize_prescription,
    serialize_prescription_availability,
)
from .services import PrescriptionService, StatusProjectionService


def _patient_identifier(request):
    value = request.query_params.get('patient_identifier') or request.headers.get('X-Guest-Id') or ''
    value = value.strip()
    if not value:
        raise ValidationError(
            message='Patient identifier is required',
            code='PATIENT_IDENTIFIER_REQUIRED',
        )
    return value


class PrescriptionUploadView(APIView):
    """POST /api/prescriptions/ - record an uploaded prescription (optionally linked to an order)"""

    def post(self, request):
        data = parsers.parse_upload(request.data, request.headers)
        prescription = PrescriptionService().upload(**data)
        return Response(serialize_prescription(prescription), status=status.HTTP_201_CREATED)


class PrescriptionItemsView(APIView):
    """POST /api/prescriptions/<id>/items/ - add line items while pending"""

    def post(self, request, prescription_id):
        items = parsers.parse_line_items(request.data)
        created = PrescriptionService().add_line_items(prescription_id, items)
        return Response(
            {'prescription_id': prescription_id, 'items': [serialize_line_item(line) for line in created]},
            status=status.HTTP_201_CREATED,
        )


class PrescriptionOrderLinkView(APIView):
    """POST /api/prescriptions/<id>/orders/ - link another order to a pending prescription"""

    def post(self, request, prescription_id):
        order_id = parsers.parse_order_link(request.data)
        order = PrescriptionService().link_order(prescription_id, order_id)
        return Response(serialize_order_summary(order))


class PrescriptionVerifyView(APIView):
    """PATCH /api/prescriptions/<id>/verify/ - verify or reject"""

    def patch(self, request, prescription_id):
        decision, reason = parsers.parse_decision(request.data)
        result = FulfillmentCoordinator().decide(prescription_id, decision, rejection_reason=reason)
        return Response(serialize_decision(result))


class PrescriptionStatusView(APIView):
    """GET /api/prescriptions/status/?patient_identifier=...&ids=1,2,3"""

    def get(self, request):
        patient_identifier = _patient_identifier(request)
        ids = parsers.parse_id_list(request.query_params.get('ids'))
        statuses = StatusProjectionService().statuses_for(patient_identifier, ids)
        return Response({'statuses': {str(k): v for k, v in statuses.items()}})


class PrescriptionAvailabilityView(APIView):
    """GET /api/prescriptions/availability/?patient_identifier=...&lat=&lng=&radius=&state=&sort_by="""

    def get(self, request):
        patient_identifier = _patient_identifier(request)
        params = request.query_params
        geo = parsers.parse_geo(params)
        region = parsers.parse_region(params)
        result = AvailabilityIndex().prescription_availability(
            patient_identifier,
            geo=geo,
            region=region,
            sort_by=params.get('sort_by') or SORT_CHEAPEST,
        )
        return Response(serialize_prescription_availability(result))


class CatalogAvailabilityView(APIView):
    """GET /api/catalog/<id>/availability/?quantity=2&lat=&lng=&radius=&sort_by=closest"""

    def get(self, request, catalog_item_id):
        params = request.query_params
        quantity = parsers.parse_int(params.get('quantity') or 1, 'quantity', minimum=1)
        offers = AvailabilityIndex().search(
            catalog_item_id,
            required_quantity=quantity,
            latitude=params.get('lat'),
            longitude=params.get('lng'),
            radius_km=params.get('radius'),
            state=params.get('state') or None,
            lga=params.get('lga') or None,
            ward=params.get('ward') or None,
            sort_by=params.get('sort_by') or SORT_CHEAPEST,
        )
        return Response({
            'catalog_item_id': catalog_item_id,
            'count': len(offers),
            'availability': [serialize_offer(offer) for offer in offers],
        })
