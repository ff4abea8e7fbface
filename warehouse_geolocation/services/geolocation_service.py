# warehouse_geolocation/services/geolocation_service.py
"""Entry point for callers that locate, move and report on SKUs.

Each public method runs in its own transactional session scope and returns
an ActionResult; typed errors raised underneath are turned into failed
results with a readable message, so callers branch on ``success``.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
import logging

from sqlalchemy.orm import Session, joinedload

from warehouse_geolocation.db.connection import DatabaseConnection
from warehouse_geolocation.models import SlotAssignment, Sku, Warehouse
from warehouse_geolocation.exceptions import GeolocationError, ConflictError, NotFoundError
from warehouse_geolocation.services.sku_service import SkuService
from warehouse_geolocation.services.warehouse_service import WarehouseService
from warehouse_geolocation.services.slot_registry import SlotRegistry
from warehouse_geolocation.services.occupancy_service import OccupancyService
from warehouse_geolocation.utils.location_codec import (
    validate_location, require_valid_location, format_location_code
)

from warehouse_geolocation.logging_setup import logger, log_exception
logger = logging.getLogger(__name__)


@dataclass
class ActionResult:
    """Uniform result envelope returned by every GeolocationService call."""
    success: bool
    data: Any = None
    error: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def ok(cls, data=None, message=None) -> 'ActionResult':
        return cls(success=True, data=data, message=message)

    @classmethod
    def failure(cls, error: str) -> 'ActionResult':
        return cls(success=False, error=error)

    def to_dict(self) -> Dict:
        result = {'success': self.success}
        if self.data is not None:
            result['data'] = self.data
        if self.error is not None:
            result['error'] = self.error
        if self.message is not None:
            result['message'] = self.message
        return result


@dataclass
class LocationFilters:
    """Optional filters for location listings.

    Text filters are case-insensitive substring matches; dates are inclusive.
    """
    warehouse_id: Optional[int] = None
    rack: Optional[str] = None
    level: Optional[str] = None
    aisle: Optional[str] = None
    sku_code: Optional[str] = None
    description: Optional[str] = None
    assigned_from: Optional[datetime] = None
    assigned_to: Optional[datetime] = None


def _sku_dict(sku: Sku) -> Dict:
    return {
        'id': sku.id,
        'code': sku.code,
        'description': sku.description,
        'container_id': sku.container_id,
        'registered_at': sku.registered_at
    }


def _location_detail(assignment: SlotAssignment) -> Dict:
    sku = assignment.sku
    warehouse = assignment.warehouse
    container = sku.container if sku is not None else None

    return {
        'assignment_id': assignment.id,
        'sku_id': assignment.sku_id,
        'sku_code': sku.code if sku is not None else None,
        'sku_description': sku.description if sku is not None else None,
        'container_id': sku.container_id if sku is not None else None,
        'container_code': container.code if container is not None else None,
        'registered_at': sku.registered_at if sku is not None else None,
        'warehouse_id': assignment.warehouse_id,
        'warehouse_name': warehouse.name if warehouse is not None else None,
        'rack': assignment.rack,
        'level': assignment.level,
        'aisle': assignment.aisle,
        'location_code': format_location_code(assignment.rack, assignment.level, assignment.aisle),
        'assigned_at': assignment.assigned_at
    }


def _contains(value: Optional[str], fragment: Optional[str]) -> bool:
    return fragment.lower() in (value or '').lower()


class GeolocationService:
    """Query and command API for SKU geolocation."""

    def __init__(self, database: DatabaseConnection, clock: Optional[Callable[[], datetime]] = None):
        """Initialize the geolocation service.

        Args:
            database: Database connection providing session scopes
            clock: Optional callable returning the current time
        """
        self.database = database
        self._clock = clock or datetime.now

    def _execute(self, action: str, operation: Callable[[Session], ActionResult]) -> ActionResult:
        def in_session_scope():
            with self.database.session_scope() as session:
                return operation(session)

        return self._guard(action, in_session_scope)

    def _guard(self, action: str, operation: Callable[[], ActionResult]) -> ActionResult:
        try:
            return operation()
        except GeolocationError as e:
            logger.warning(f"{action} failed: {e.message}")
            return ActionResult.failure(e.message)
        except Exception as e:
            log_exception(__name__, e, f"Unexpected error in {action}")
            return ActionResult.failure("Internal server error")

    def _registry(self, session: Session) -> SlotRegistry:
        return SlotRegistry(session, clock=self._clock)

    def _require_sku(self, session: Session, sku_id: int) -> Sku:
        sku = SkuService(session).get_by_id(sku_id)
        if sku is None:
            raise NotFoundError("SKU not found", details={'sku_id': sku_id})
        return sku

    def _require_warehouse(self, session: Session, warehouse_id: int) -> Warehouse:
        warehouse = WarehouseService(session).get_by_id(warehouse_id)
        if warehouse is None:
            raise NotFoundError("Warehouse not found", details={'warehouse_id': warehouse_id})
        return warehouse

    # === Lookups ===

    def find_by_sku_code(self, code: str) -> ActionResult:
        """Find a SKU by code and report where it is.

        Three outcomes: failure when the code is unknown, success with
        ``located=False`` when the SKU has no slot, and success with
        ``located=True`` plus the location detail otherwise.
        """
        def operation(session):
            sku = SkuService(session).get_by_code(code)
            if sku is None:
                return ActionResult.failure("SKU not found")

            assignment = self._registry(session).get_by_sku(sku.id)
            if assignment is None:
                return ActionResult.ok(
                    data={'sku': _sku_dict(sku), 'located': False, 'location': None},
                    message="SKU found but has no assigned location"
                )

            return ActionResult.ok(
                data={'sku': _sku_dict(sku), 'located': True, 'location': _location_detail(assignment)},
                message="SKU found with location"
            )

        return self._execute('find_by_sku_code', operation)

    def search_skus_by_description(self, term: str) -> ActionResult:
        """Find SKUs by description and flag whether each one is located."""
        def operation(session):
            registry = self._registry(session)
            results = []
            for sku in SkuService(session).search_by_description(term or ''):
                assignment = registry.get_by_sku(sku.id)
                results.append({
                    'sku': _sku_dict(sku),
                    'located': assignment is not None,
                    'location': _location_detail(assignment) if assignment is not None else None
                })
            return ActionResult.ok(data=results)

        return self._execute('search_skus_by_description', operation)

    # === Commands ===

    def create_sku_with_location(
        self,
        code: str,
        description: str,
        warehouse_id: int,
        rack: str,
        level: str,
        aisle: str,
        container_id: Optional[int] = None
    ) -> ActionResult:
        """Register a SKU and slot it in one transaction.

        Either both the SKU and its assignment are stored or neither is.
        """
        def operation(session):
            skus = SkuService(session)
            if code and skus.exists(code):
                raise ConflictError(f"SKU code already exists: {code.strip()}")

            self._require_warehouse(session, warehouse_id)
            location = require_valid_location(rack, level, aisle)

            registry = self._registry(session)
            if registry.is_occupied(warehouse_id, location.rack, location.level, location.aisle):
                raise ConflictError(f"Location {location.code} is already occupied")

            sku = skus.create(code, description, container_id)
            assignment = registry.assign(sku.id, warehouse_id, location.rack, location.level, location.aisle)

            return ActionResult.ok(
                data={'sku': _sku_dict(sku), 'assignment': _location_detail(assignment)},
                message=f"SKU {sku.code} created at {location.code}"
            )

        return self._execute('create_sku_with_location', operation)

    def assign_location(self, sku_id: int, warehouse_id: int, rack: str, level: str, aisle: str) -> ActionResult:
        """Slot an existing SKU. A SKU that already has a slot is moved."""
        def operation(session):
            assignment = self._registry(session).assign(sku_id, warehouse_id, rack, level, aisle)
            detail = _location_detail(assignment)
            return ActionResult.ok(data=detail, message=f"SKU assigned to {detail['location_code']}")

        return self._execute('assign_location', operation)

    def move_sku(self, sku_id: int, warehouse_id: int, rack: str, level: str, aisle: str) -> ActionResult:
        """Move a SKU to a new slot."""
        def operation(session):
            assignment = self._registry(session).move(sku_id, warehouse_id, rack, level, aisle)
            detail = _location_detail(assignment)
            return ActionResult.ok(data=detail, message=f"SKU moved to {detail['location_code']}")

        return self._execute('move_sku', operation)

    def clear_location(self, sku_id: int) -> ActionResult:
        """Remove a SKU's location, leaving it registered but unlocated."""
        def operation(session):
            self._require_sku(session, sku_id)
            cleared = self._registry(session).vacate(sku_id)
            message = "Location removed" if cleared else "SKU had no assigned location"
            return ActionResult.ok(data={'sku_id': sku_id, 'cleared': cleared}, message=message)

        return self._execute('clear_location', operation)

    def register_warehouse(self, name: str, capacity: Optional[int] = None) -> ActionResult:
        """Create a warehouse with a unique name."""
        def operation(session):
            warehouse = WarehouseService(session).create(name, capacity)
            return ActionResult.ok(
                data={'id': warehouse.id, 'name': warehouse.name, 'capacity': warehouse.capacity}
            )

        return self._execute('register_warehouse', operation)

    def list_warehouses(self) -> ActionResult:
        def operation(session):
            return ActionResult.ok(data=[
                {'id': w.id, 'name': w.name, 'capacity': w.capacity}
                for w in WarehouseService(session).get_all()
            ])

        return self._execute('list_warehouses', operation)

    # === Slot queries ===

    def check_slot_available(self, warehouse_id: int, rack: str, level: str, aisle: str) -> ActionResult:
        """Report whether a slot is free."""
        def operation(session):
            location = require_valid_location(rack, level, aisle)
            self._require_warehouse(session, warehouse_id)
            occupied = self._registry(session).is_occupied(
                warehouse_id, location.rack, location.level, location.aisle
            )
            message = (
                f"Location {location.code} is occupied" if occupied
                else f"Location {location.code} is available"
            )
            return ActionResult.ok(
                data={'available': not occupied, 'location_code': location.code},
                message=message
            )

        return self._execute('check_slot_available', operation)

    def validate_location_format(self, rack: str, level: str, aisle: str) -> ActionResult:
        """Check coordinates without touching storage."""
        def operation():
            valid = validate_location(rack, level, aisle)
            code = format_location_code(rack, level, aisle)
            message = f"Valid format: {code}" if valid else "Invalid location format"
            return ActionResult.ok(data={'valid': valid, 'location_code': code}, message=message)

        return self._guard('validate_location_format', operation)

    def search_by_coordinate_fragment(self, term: str, warehouse_id: Optional[int] = None) -> ActionResult:
        """Find slots whose rack, level or aisle contains the term."""
        def operation(session):
            assignments = self._registry(session).search(term, warehouse_id)
            return ActionResult.ok(data=self._sorted_details(assignments))

        return self._execute('search_by_coordinate_fragment', operation)

    def list_by_rack(self, rack: str, warehouse_id: Optional[int] = None) -> ActionResult:
        def operation(session):
            assignments = self._registry(session).get_by_rack(rack, warehouse_id)
            return ActionResult.ok(data=self._sorted_details(assignments))

        return self._execute('list_by_rack', operation)

    def list_by_aisle(self, aisle: str, warehouse_id: Optional[int] = None) -> ActionResult:
        def operation(session):
            assignments = self._registry(session).get_by_aisle(aisle, warehouse_id)
            return ActionResult.ok(data=self._sorted_details(assignments))

        return self._execute('list_by_aisle', operation)

    # === Listings ===

    @staticmethod
    def _sorted_details(assignments: List[SlotAssignment]) -> List[Dict]:
        """Detail rows sorted by warehouse name, then location code."""
        details = [_location_detail(a) for a in assignments]
        details.sort(key=lambda d: (d['warehouse_name'] or '', d['location_code']))
        return details

    def _filtered_assignments(self, session: Session, filters: Optional[LocationFilters]) -> List[SlotAssignment]:
        query = session.query(SlotAssignment).options(
            joinedload(SlotAssignment.sku).joinedload(Sku.container),
            joinedload(SlotAssignment.warehouse)
        ).filter(SlotAssignment.sku_id.isnot(None))

        if filters is None:
            return query.all()

        if filters.warehouse_id is not None:
            query = query.filter(SlotAssignment.warehouse_id == filters.warehouse_id)
        if filters.assigned_from is not None:
            query = query.filter(SlotAssignment.assigned_at >= filters.assigned_from)
        if filters.assigned_to is not None:
            query = query.filter(SlotAssignment.assigned_at <= filters.assigned_to)

        assignments = query.all()

        text_filters = (
            (filters.rack, lambda a: a.rack),
            (filters.level, lambda a: a.level),
            (filters.aisle, lambda a: a.aisle),
            (filters.sku_code, lambda a: a.sku.code),
            (filters.description, lambda a: a.sku.description),
        )
        for fragment, getter in text_filters:
            if fragment:
                assignments = [a for a in assignments if _contains(getter(a), fragment)]

        return assignments

    def list_locations(self, filters: Optional[LocationFilters] = None) -> ActionResult:
        """All located SKUs, sorted by warehouse name then location code."""
        def operation(session):
            return ActionResult.ok(data=self._sorted_details(self._filtered_assignments(session, filters)))

        return self._execute('list_locations', operation)

    def list_located_skus(self, filters: Optional[LocationFilters] = None) -> ActionResult:
        """All located SKUs, most recently slotted first.

        Assignments without a timestamp come last.
        """
        def operation(session):
            details = [_location_detail(a) for a in self._filtered_assignments(session, filters)]
            stamped = [d for d in details if d['assigned_at'] is not None]
            unstamped = [d for d in details if d['assigned_at'] is None]
            stamped.sort(key=lambda d: d['assigned_at'], reverse=True)
            return ActionResult.ok(data=stamped + unstamped)

        return self._execute('list_located_skus', operation)

    # === Reporting ===

    def occupancy_map(self, warehouse_id: int) -> ActionResult:
        def operation(session):
            warehouse = self._require_warehouse(session, warehouse_id)
            slots = OccupancyService(session, clock=self._clock).occupancy_map(warehouse_id)
            return ActionResult.ok(data={
                'warehouse': {'id': warehouse.id, 'name': warehouse.name},
                'slots': slots
            })

        return self._execute('occupancy_map', operation)

    def occupied_coordinates(self, warehouse_id: int) -> ActionResult:
        def operation(session):
            self._require_warehouse(session, warehouse_id)
            return ActionResult.ok(
                data=OccupancyService(session, clock=self._clock).occupied_coordinates(warehouse_id)
            )

        return self._execute('occupied_coordinates', operation)

    def warehouse_statistics(self, warehouse_id: int) -> ActionResult:
        """Slot statistics and occupancy summary for one warehouse."""
        def operation(session):
            self._require_warehouse(session, warehouse_id)
            occupancy = OccupancyService(session, clock=self._clock)
            data = occupancy.statistics(warehouse_id)
            data.update(occupancy.warehouse_summary(warehouse_id))
            return ActionResult.ok(data=data)

        return self._execute('warehouse_statistics', operation)

    def warehouse_summary_all(self) -> ActionResult:
        """Occupancy summaries of all warehouses, highest occupancy first."""
        def operation(session):
            return ActionResult.ok(data=OccupancyService(session, clock=self._clock).warehouse_summary_all())

        return self._execute('warehouse_summary_all', operation)

    def location_coverage(self) -> ActionResult:
        def operation(session):
            return ActionResult.ok(data=OccupancyService(session, clock=self._clock).location_coverage())

        return self._execute('location_coverage', operation)
