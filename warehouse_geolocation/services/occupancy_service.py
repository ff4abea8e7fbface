# warehouse_geolocation/services/occupancy_service.py
from datetime import datetime
from typing import Callable, Dict, List, Optional
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from warehouse_geolocation.models import SlotAssignment, Sku, Warehouse
from warehouse_geolocation.exceptions import NotFoundError
from warehouse_geolocation.services.slot_registry import SlotRegistry
from warehouse_geolocation.utils.location_codec import format_location_code

from warehouse_geolocation.logging_setup import logger
logger = logging.getLogger(__name__)


class OccupancyService:
    """Read-only occupancy views derived from the slot registry."""

    def __init__(self, session: Session, clock: Optional[Callable[[], datetime]] = None):
        """Initialize the occupancy service.

        Args:
            session: Database session
            clock: Optional callable returning the current time
        """
        self.session = session
        self.registry = SlotRegistry(session, clock=clock)
        self._clock = clock or datetime.now

    def _require_warehouse(self, warehouse_id: int) -> Warehouse:
        warehouse = self.session.get(Warehouse, warehouse_id)
        if warehouse is None:
            raise NotFoundError(f"Warehouse with ID {warehouse_id} not found", details={'warehouse_id': warehouse_id})
        return warehouse

    def _occupied(self, warehouse_id: int) -> List[SlotAssignment]:
        return [a for a in self.registry.get_by_warehouse(warehouse_id) if a.sku_id is not None]

    def occupancy_map(self, warehouse_id: int) -> List[Dict]:
        """Build the occupancy map of a warehouse.

        Only slots that currently hold a SKU are listed; there is no fixed
        universe of slots to report free ones against.

        Args:
            warehouse_id: Warehouse ID

        Returns:
            List of slot dictionaries sorted by location code
        """
        self._require_warehouse(warehouse_id)

        assignments = self.session.query(SlotAssignment).options(
            joinedload(SlotAssignment.sku)
        ).filter(
            SlotAssignment.warehouse_id == warehouse_id,
            SlotAssignment.sku_id.isnot(None)
        ).all()

        slots = []
        for assignment in assignments:
            sku = assignment.sku
            slots.append({
                'rack': assignment.rack,
                'level': assignment.level,
                'aisle': assignment.aisle,
                'location_code': format_location_code(assignment.rack, assignment.level, assignment.aisle),
                'occupied': True,
                'sku': {
                    'id': sku.id,
                    'code': sku.code,
                    'description': sku.description
                },
                'assigned_at': assignment.assigned_at
            })

        slots.sort(key=lambda slot: slot['location_code'])
        return slots

    def occupied_coordinates(self, warehouse_id: int) -> List[Dict]:
        """List the bare coordinates of the occupied slots in a warehouse."""
        self._require_warehouse(warehouse_id)
        return [
            {'rack': a.rack, 'level': a.level, 'aisle': a.aisle}
            for a in self._occupied(warehouse_id)
        ]

    def statistics(self, warehouse_id: int) -> Dict:
        """Count occupied slots and distinct coordinate values in a warehouse.

        Args:
            warehouse_id: Warehouse ID

        Returns:
            Dictionary with slot statistics
        """
        self._require_warehouse(warehouse_id)
        occupied = self._occupied(warehouse_id)

        racks = sorted({a.rack for a in occupied})
        levels = sorted({a.level for a in occupied})
        aisles = sorted({a.aisle for a in occupied})

        return {
            'warehouse_id': warehouse_id,
            'total_occupied_slots': len(occupied),
            'distinct_racks': len(racks),
            'distinct_levels': len(levels),
            'distinct_aisles': len(aisles),
            'racks': racks,
            'levels': levels,
            'aisles': aisles
        }

    def _summary(self, warehouse: Warehouse) -> Dict:
        assignments = self.registry.get_by_warehouse(warehouse.id)
        occupied = sum(1 for a in assignments if a.sku_id is not None)

        if warehouse.capacity is not None:
            total = warehouse.capacity
        else:
            # Without a declared capacity the denominator is the number of
            # assignment rows recorded for the warehouse.
            total = len(assignments)

        # Half-up rounding to a whole percentage
        percentage = int(occupied * 100 / total + 0.5) if total > 0 else 0

        return {
            'warehouse_id': warehouse.id,
            'warehouse_name': warehouse.name,
            'capacity': warehouse.capacity,
            'total_slots': total,
            'occupied_slots': occupied,
            'free_slots': max(total - occupied, 0),
            'occupancy_percentage': percentage,
            'last_updated': self._clock()
        }

    def warehouse_summary(self, warehouse_id: int) -> Dict:
        """Occupancy summary for one warehouse."""
        return self._summary(self._require_warehouse(warehouse_id))

    def warehouse_summary_all(self) -> List[Dict]:
        """Occupancy summaries for all warehouses, highest occupancy first.

        Ties keep warehouse ID order.
        """
        warehouses = self.session.query(Warehouse).order_by(Warehouse.id).all()
        summaries = [self._summary(warehouse) for warehouse in warehouses]
        summaries.sort(key=lambda s: s['occupancy_percentage'], reverse=True)
        return summaries

    def location_coverage(self) -> Dict:
        """Count located and unlocated SKUs across all warehouses."""
        total = self.session.query(func.count(Sku.id)).scalar() or 0
        located = self.session.query(func.count(SlotAssignment.id)).filter(
            SlotAssignment.sku_id.isnot(None)
        ).scalar() or 0

        return {
            'total': total,
            'located': located,
            'unlocated': total - located,
            'located_percentage': (located / total * 100) if total > 0 else 0.0
        }
