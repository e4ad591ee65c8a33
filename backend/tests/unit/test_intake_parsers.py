"""
Unit tests for request parsing (rxgate/intake/parsers.py).

No database needed.
"""
import pytest

from rxgate.exceptions import InvalidCoordinates, ValidationError
from rxgate.intake import parsers
from rxgate.intake.types import GeoFilter, LineItemData, RegionFilter


def _fields(exc_info):
    return [e['field'] for e in exc_info.value.detail['errors']]


class TestParseUpload:

    def test_full_payload(self):
        data = parsers.parse_upload({
            'patient_identifier': ' guest-1 ',
            'file_url': 'rx/1.jpg',
            'phone': '08031234567',
            'email': 'a@example.com',
            'order_id': '12',
        })
        assert data == {
            'patient_identifier': 'guest-1',
            'file_reference': 'rx/1.jpg',
            'phone': '08031234567',
            'email': 'a@example.com',
            'order_id': 12,
        }

    def test_single_contact_field_is_split(self):
        data = parsers.parse_upload({'patient_identifier': 'g', 'file_url': 'f', 'contact': 'a@example.com'})
        assert data['email'] == 'a@example.com'
        assert data['phone'] is None

    def test_patient_from_guest_header(self):
        data = parsers.parse_upload({'file_url': 'f', 'contact': '0803'}, headers={'X-Guest-Id': 'guest-7'})
        assert data['patient_identifier'] == 'guest-7'

    def test_missing_fields_reported_together(self):
        with pytest.raises(ValidationError) as exc_info:
            parsers.parse_upload({})
        assert _fields(exc_info) == ['patient_identifier', 'file_url']

    def test_bad_order_id(self):
        with pytest.raises(ValidationError) as exc_info:
            parsers.parse_upload({'patient_identifier': 'g', 'file_url': 'f', 'order_id': 'abc'})
        assert _fields(exc_info) == ['order_id']


class TestParseLineItems:

    def test_valid(self):
        items = parsers.parse_line_items({'items': [
            {'catalog_item_id': '3', 'quantity': 2, 'instructions': ' after meals '},
            {'catalog_item_id': 4},
        ]})
        assert items == [
            LineItemData(catalog_item_id=3, quantity=2, instructions='after meals'),
            LineItemData(catalog_item_id=4, quantity=1, instructions=None),
        ]

    @pytest.mark.parametrize('payload', [{}, {'items': []}, {'items': 'x'}])
    def test_items_required(self, payload):
        with pytest.raises(ValidationError) as exc_info:
            parsers.parse_line_items(payload)
        assert _fields(exc_info) == ['items']

    def test_every_bad_entry_reported(self):
        with pytest.raises(ValidationError) as exc_info:
            parsers.parse_line_items({'items': [
                'nope',
                {'catalog_item_id': 'x'},
                {'catalog_item_id': 1, 'quantity': 0},
                {'catalog_item_id': 1, 'quantity': True},
            ]})
        assert _fields(exc_info) == [
            'items[0]',
            'items[1].catalog_item_id',
            'items[2].quantity',
            'items[3].quantity',
        ]


class TestSmallParsers:

    def test_parse_decision(self):
        assert parsers.parse_decision({'status': 'rejected', 'rejection_reason': ' blurry '}) == ('rejected', 'blurry')
        assert parsers.parse_decision({'status': 'verified'}) == ('verified', '')

    def test_parse_decision_requires_status(self):
        with pytest.raises(ValidationError):
            parsers.parse_decision({})

    @pytest.mark.parametrize('raw, expected', [
        (None, []),
        ('1, 2,,abc', ['1', '2', 'abc']),
        ([1, '2'], [1, '2']),
    ])
    def test_parse_id_list(self, raw, expected):
        assert parsers.parse_id_list(raw) == expected

    def test_parse_int(self):
        assert parsers.parse_int('5', 'quantity', minimum=1) == 5
        assert parsers.parse_int(None, 'order_id', required=False) is None
        with pytest.raises(ValidationError):
            parsers.parse_int('0', 'quantity', minimum=1)

    def test_parse_geo(self):
        assert parsers.parse_geo({'lat': '6.5', 'lng': '3.3', 'radius': '5'}) == GeoFilter(6.5, 3.3, 5.0)
        assert parsers.parse_geo({'lat': '6.5'}) is None
        with pytest.raises(InvalidCoordinates):
            parsers.parse_geo({'lat': '100', 'lng': '200', 'radius': '5'})

    def test_parse_region(self):
        assert parsers.parse_region({'state': 'Lagos', 'lga': ''}) == RegionFilter(state='Lagos')
