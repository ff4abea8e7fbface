"""
Tests for the geolocation query/command API.
"""
from datetime import datetime
from unittest.mock import patch

from sqlalchemy.exc import SQLAlchemyError

from warehouse_geolocation.models import SlotAssignment, Sku
from warehouse_geolocation.services.geolocation_service import (
    ActionResult, GeolocationService, LocationFilters
)
from warehouse_geolocation.services.occupancy_service import OccupancyService
from warehouse_geolocation.services.sku_service import SkuService
from warehouse_geolocation.services.slot_registry import SlotRegistry
from warehouse_geolocation.tests.base import GeolocationTestCase


class TestGeolocationService(GeolocationTestCase):

    def setUp(self):
        super().setUp()
        self.service = GeolocationService(self.database, clock=self.clock)
        self.main = self.add_warehouse('Main')

    def count(self, model, **filters):
        with self.database.session_scope() as session:
            return session.query(model).filter_by(**filters).count()

    def create(self, code, rack, level='01', aisle='01', warehouse_id=None, description=None):
        result = self.service.create_sku_with_location(
            code, description or f"Item {code}", warehouse_id or self.main.id, rack, level, aisle
        )
        self.assertTrue(result.success, result.error)
        return result.data

    # === create_sku_with_location ===

    def test_create_sku_with_location(self):
        result = self.service.create_sku_with_location('X1', 'Phone case', self.main.id, 'A1', '02', '03')

        self.assertTrue(result.success)
        self.assertEqual(result.data['sku']['code'], 'X1')
        self.assertEqual(result.data['assignment']['location_code'], 'A1-02-03')
        self.assertEqual(result.data['assignment']['warehouse_name'], 'Main')

    def test_create_with_existing_code_fails_without_new_assignment(self):
        self.create('X1', 'A1')

        result = self.service.create_sku_with_location('X1', 'Duplicate', self.main.id, 'B1', '01', '01')

        self.assertFalse(result.success)
        self.assertIn('code already exists', result.error)
        self.assertEqual(self.count(SlotAssignment), 1)
        self.assertEqual(self.count(Sku), 1)

    def test_create_in_unknown_warehouse(self):
        result = self.service.create_sku_with_location('X2', 'Thing', 999, 'A1', '01', '01')

        self.assertFalse(result.success)
        self.assertEqual(result.error, 'Warehouse not found')
        self.assertEqual(self.count(Sku), 0)

    def test_create_with_malformed_location(self):
        result = self.service.create_sku_with_location('X2', 'Thing', self.main.id, 'A1', '', '01')

        self.assertFalse(result.success)
        self.assertIn('Invalid location format', result.error)
        self.assertEqual(self.count(Sku), 0)

    def test_create_on_occupied_slot_creates_nothing(self):
        self.create('X1', 'A1')

        result = self.service.create_sku_with_location('X2', 'Thing', self.main.id, 'A1', '01', '01')

        self.assertFalse(result.success)
        self.assertIn('already occupied', result.error)
        self.assertEqual(self.count(Sku, code='X2'), 0)

    def test_create_is_atomic_when_slot_is_taken_concurrently(self):
        self.create('X1', 'A1')

        with patch.object(SlotRegistry, 'is_occupied', return_value=False):
            result = self.service.create_sku_with_location('X2', 'Thing', self.main.id, 'A1', '01', '01')

        self.assertFalse(result.success)
        self.assertIn('already occupied', result.error)
        self.assertEqual(self.count(Sku, code='X2'), 0)
        self.assertEqual(self.count(SlotAssignment), 1)

    def test_create_with_malformed_code(self):
        result = self.service.create_sku_with_location('bad code!', 'Thing', self.main.id, 'A1', '01', '01')

        self.assertFalse(result.success)
        self.assertEqual(self.count(Sku), 0)

    # === find_by_sku_code ===

    def test_find_distinguishes_unknown_unlocated_and_located(self):
        with self.database.session_scope() as session:
            SkuService(session).create('KNOWN_BUT_UNLOCATED', 'Loose item')
        self.create('LOCATED1', 'C1', '04', '02')

        unknown = self.service.find_by_sku_code('UNKNOWN')
        unlocated = self.service.find_by_sku_code('KNOWN_BUT_UNLOCATED')
        located = self.service.find_by_sku_code('LOCATED1')

        self.assertFalse(unknown.success)
        self.assertEqual(unknown.error, 'SKU not found')

        self.assertTrue(unlocated.success)
        self.assertIsNone(unlocated.error)
        self.assertFalse(unlocated.data['located'])
        self.assertEqual(unlocated.message, 'SKU found but has no assigned location')

        self.assertTrue(located.success)
        self.assertTrue(located.data['located'])
        self.assertEqual(located.data['location']['location_code'], 'C1-04-02')
        self.assertEqual(located.data['location']['warehouse_name'], 'Main')

    # === move / assign / clear ===

    def test_move_sku_between_warehouses(self):
        annex = self.add_warehouse('Annex')
        created = self.create('MV1', 'A1', '01', '01')
        sku_id = created['sku']['id']

        result = self.service.move_sku(sku_id, annex.id, 'B1', '01', '05')

        self.assertTrue(result.success)
        self.assertEqual(result.data['warehouse_id'], annex.id)
        self.assertEqual(result.data['assignment_id'], created['assignment']['assignment_id'])
        self.assertEqual(self.count(SlotAssignment, sku_id=sku_id), 1)
        self.assertTrue(self.service.check_slot_available(self.main.id, 'A1', '01', '01').data['available'])

    def test_move_onto_occupied_slot_fails(self):
        self.create('MV1', 'A1')
        other = self.create('MV2', 'A2')

        result = self.service.move_sku(other['sku']['id'], self.main.id, 'A1', '01', '01')

        self.assertFalse(result.success)
        self.assertIn('already occupied', result.error)

    def test_move_unknown_sku(self):
        result = self.service.move_sku(12345, self.main.id, 'A1', '01', '01')

        self.assertFalse(result.success)
        self.assertIn('not found', result.error)

    def test_assign_location_to_registered_sku(self):
        with self.database.session_scope() as session:
            sku_id = SkuService(session).create('NEW1', 'Fresh arrival').id

        result = self.service.assign_location(sku_id, self.main.id, 'D4', '02', '01')

        self.assertTrue(result.success)
        self.assertEqual(result.data['location_code'], 'D4-02-01')

    def test_clear_location_twice(self):
        sku_id = self.create('CL1', 'A1')['sku']['id']

        first = self.service.clear_location(sku_id)
        second = self.service.clear_location(sku_id)

        self.assertTrue(first.success)
        self.assertTrue(first.data['cleared'])
        self.assertTrue(second.success)
        self.assertFalse(second.data['cleared'])
        self.assertEqual(self.count(SlotAssignment), 0)
        self.assertEqual(self.count(Sku, id=sku_id), 1)

    def test_clear_location_unknown_sku(self):
        result = self.service.clear_location(777)

        self.assertFalse(result.success)
        self.assertEqual(result.error, 'SKU not found')

    # === listings ===

    def test_list_locations_sorted_by_warehouse_then_code(self):
        alpha = self.add_warehouse('Alpha')
        self.create('L1', 'B1', warehouse_id=self.main.id)
        self.create('L2', 'A1', warehouse_id=self.main.id)
        self.create('L3', 'Z9', warehouse_id=alpha.id)
        self.create('L4', 'C1', warehouse_id=alpha.id)

        result = self.service.list_locations()

        self.assertTrue(result.success)
        self.assertEqual(
            [(row['warehouse_name'], row['location_code']) for row in result.data],
            [('Alpha', 'C1-01-01'), ('Alpha', 'Z9-01-01'), ('Main', 'A1-01-01'), ('Main', 'B1-01-01')]
        )

    def test_list_locations_with_filters(self):
        alpha = self.add_warehouse('Alpha')
        self.create('PHONE-1', 'A1', warehouse_id=self.main.id, description='Phone case')
        self.create('PHONE-2', 'B1', warehouse_id=alpha.id, description='Phone charger')
        self.create('TV-1', 'a1', level='02', warehouse_id=alpha.id, description='Television')

        by_code = self.service.list_locations(LocationFilters(sku_code='phone'))
        by_rack = self.service.list_locations(LocationFilters(rack='A1'))
        by_warehouse = self.service.list_locations(LocationFilters(warehouse_id=alpha.id, description='PHONE'))

        self.assertEqual(sorted(row['sku_code'] for row in by_code.data), ['PHONE-1', 'PHONE-2'])
        self.assertEqual(sorted(row['sku_code'] for row in by_rack.data), ['PHONE-1', 'TV-1'])
        self.assertEqual([row['sku_code'] for row in by_warehouse.data], ['PHONE-2'])

    def test_list_located_skus_most_recent_first_nulls_last(self):
        self.create('OLD', 'A1')
        self.create('MID', 'A2')
        self.create('NEW', 'A3')
        with self.database.session_scope() as session:
            sku = session.query(Sku).filter_by(code='MID').one()
            session.query(SlotAssignment).filter_by(sku_id=sku.id).update({'assigned_at': None})

        result = self.service.list_located_skus()

        self.assertEqual([row['sku_code'] for row in result.data], ['NEW', 'OLD', 'MID'])

    def test_list_located_skus_date_range(self):
        self.create('OLD', 'A1')
        self.create('NEW', 'A2')
        with self.database.session_scope() as session:
            old = session.query(Sku).filter_by(code='OLD').one()
            session.query(SlotAssignment).filter_by(sku_id=old.id).update(
                {'assigned_at': datetime(2023, 6, 1)}
            )

        result = self.service.list_located_skus(LocationFilters(assigned_from=datetime(2024, 1, 1)))

        self.assertEqual([row['sku_code'] for row in result.data], ['NEW'])

    def test_search_and_rack_aisle_listings(self):
        annex = self.add_warehouse('Annex')
        self.create('S1', 'R10', '01', 'P1')
        self.create('S2', 'R10', '02', 'P2', warehouse_id=annex.id)
        self.create('S3', 'R20', '01', 'P1')

        search = self.service.search_by_coordinate_fragment('r1')
        by_rack = self.service.list_by_rack('R10', warehouse_id=annex.id)
        by_aisle = self.service.list_by_aisle('P1')

        self.assertEqual([row['sku_code'] for row in search.data], ['S2', 'S1'])
        self.assertEqual([row['sku_code'] for row in by_rack.data], ['S2'])
        self.assertEqual([row['sku_code'] for row in by_aisle.data], ['S1', 'S3'])

    def test_search_skus_by_description(self):
        self.create('DESC1', 'A1', description='Blue mug')
        with self.database.session_scope() as session:
            SkuService(session).create('DESC2', 'Red mug')

        result = self.service.search_skus_by_description('mug')

        located = {row['sku']['code']: row['located'] for row in result.data}
        self.assertEqual(located, {'DESC1': True, 'DESC2': False})

    # === reporting ===

    def test_occupancy_map_and_statistics(self):
        self.create('M1', 'A1', '01', '01')
        self.create('M2', 'A1', '02', '01')

        occupancy = self.service.occupancy_map(self.main.id)
        statistics = self.service.warehouse_statistics(self.main.id)

        self.assertEqual(occupancy.data['warehouse']['name'], 'Main')
        self.assertEqual(len(occupancy.data['slots']), 2)
        self.assertEqual(statistics.data['total_occupied_slots'], 2)
        self.assertEqual(statistics.data['distinct_levels'], 2)
        self.assertEqual(statistics.data['occupancy_percentage'], 100)

    def test_occupancy_map_unknown_warehouse(self):
        result = self.service.occupancy_map(404)

        self.assertFalse(result.success)
        self.assertEqual(result.error, 'Warehouse not found')

    def test_warehouse_summary_all(self):
        big = self.service.register_warehouse('Big', capacity=100).data
        small = self.service.register_warehouse('Small', capacity=4).data
        self.create('W1', 'A1', warehouse_id=big['id'])
        self.create('W2', 'A1', warehouse_id=small['id'])

        result = self.service.warehouse_summary_all()

        ordered = [row['warehouse_name'] for row in result.data]
        self.assertEqual(ordered, ['Small', 'Big', 'Main'])

    def test_location_coverage(self):
        self.create('C1', 'A1')
        with self.database.session_scope() as session:
            SkuService(session).create('C2', 'Unplaced')

        result = self.service.location_coverage()

        self.assertEqual(result.data['located'], 1)
        self.assertEqual(result.data['unlocated'], 1)

    def test_occupied_coordinates(self):
        self.create('OC1', 'A1', '02', '03')

        result = self.service.occupied_coordinates(self.main.id)

        self.assertEqual(result.data, [{'rack': 'A1', 'level': '02', 'aisle': '03'}])

    # === slot checks and warehouses ===

    def test_check_slot_available(self):
        self.create('AV1', 'A1')

        taken = self.service.check_slot_available(self.main.id, 'A1', '01', '01')
        free = self.service.check_slot_available(self.main.id, 'A1', '01', '02')
        invalid = self.service.check_slot_available(self.main.id, '', '01', '02')

        self.assertFalse(taken.data['available'])
        self.assertEqual(taken.message, 'Location A1-01-01 is occupied')
        self.assertTrue(free.data['available'])
        self.assertFalse(invalid.success)

    def test_validate_location_format(self):
        valid = self.service.validate_location_format('A1', '02', '03')
        invalid = self.service.validate_location_format('A1', '', '03')

        self.assertTrue(valid.data['valid'])
        self.assertEqual(valid.message, 'Valid format: A1-02-03')
        self.assertFalse(invalid.data['valid'])
        self.assertEqual(invalid.message, 'Invalid location format')

    def test_validate_location_format_with_non_string_input(self):
        result = self.service.validate_location_format(5, '02', None)

        self.assertTrue(result.success)
        self.assertFalse(result.data['valid'])
        self.assertEqual(result.data['location_code'], '5-02-')
        self.assertEqual(result.message, 'Invalid location format')

    def test_register_warehouse_enforces_unique_name(self):
        first = self.service.register_warehouse('Cold Storage')
        second = self.service.register_warehouse('Cold Storage')

        self.assertTrue(first.success)
        self.assertFalse(second.success)
        self.assertIn('already exists', second.error)
        self.assertEqual(
            [w['name'] for w in self.service.list_warehouses().data],
            ['Main', 'Cold Storage']
        )

    # === envelope ===

    def test_storage_failure_becomes_failed_result(self):
        with patch.object(SkuService, 'get_by_code', side_effect=SQLAlchemyError('connection lost')):
            result = self.service.find_by_sku_code('ANY')

        self.assertFalse(result.success)
        self.assertIn('Storage failure', result.error)

    def test_unexpected_error_becomes_failed_result(self):
        with patch.object(OccupancyService, 'warehouse_summary_all', side_effect=RuntimeError('boom')):
            result = self.service.warehouse_summary_all()

        self.assertFalse(result.success)
        self.assertEqual(result.error, 'Internal server error')

    def test_result_to_dict_omits_unset_fields(self):
        self.assertEqual(ActionResult.failure('nope').to_dict(), {'success': False, 'error': 'nope'})
        self.assertEqual(
            ActionResult.ok(data=[1], message='done').to_dict(),
            {'success': True, 'data': [1], 'message': 'done'}
        )
