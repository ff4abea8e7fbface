# warehouse_geolocation/services/slot_registry.py
from datetime import datetime
from typing import Callable, List, Optional
import logging

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from warehouse_geolocation.models import SlotAssignment, Sku, Warehouse
from warehouse_geolocation.exceptions import ConflictError, NotFoundError
from warehouse_geolocation.utils.location_codec import (
    SlotLocation, require_valid_location, format_location_code
)

from warehouse_geolocation.logging_setup import logger
logger = logging.getLogger(__name__)

SKU_CONSTRAINT_NAME = 'uq_slot_assignment_sku'
SKU_CONSTRAINT_COLUMN = 'slot_assignment.sku_id'


def _violates_sku_constraint(error: IntegrityError) -> bool:
    """Tell whether a unique violation came from the one-slot-per-SKU constraint.

    PostgreSQL drivers report the constraint name; SQLite only names the
    offending columns in its message, which never contains key values.
    """
    diag = getattr(error.orig, 'diag', None)
    constraint_name = getattr(diag, 'constraint_name', None)
    if constraint_name:
        return constraint_name == SKU_CONSTRAINT_NAME

    message = str(error.orig).split('\n', 1)[0]
    return SKU_CONSTRAINT_NAME in message or message.rstrip().endswith(SKU_CONSTRAINT_COLUMN)


class SlotRegistry:
    """Sole writer of slot assignments.

    Keeps two invariants: a physical slot (warehouse, rack, level, aisle)
    holds at most one SKU, and a SKU holds at most one slot. Both are backed
    by unique constraints on the slot_assignment table, so a concurrent
    writer that slips past the occupancy pre-check still fails, and that
    failure is reported as a ConflictError.
    """

    def __init__(self, session: Session, clock: Optional[Callable[[], datetime]] = None):
        """Initialize the slot registry.

        Args:
            session: Database session
            clock: Optional callable returning the current time
        """
        self.session = session
        self._clock = clock or datetime.now

    def get_by_id(self, assignment_id: int) -> Optional[SlotAssignment]:
        return self.session.get(SlotAssignment, assignment_id)

    def get_by_warehouse(self, warehouse_id: int) -> List[SlotAssignment]:
        """Get all slot assignments in a warehouse.

        Args:
            warehouse_id: Warehouse ID

        Returns:
            List of assignments ordered by ID
        """
        return self.session.query(SlotAssignment).filter(
            SlotAssignment.warehouse_id == warehouse_id
        ).order_by(SlotAssignment.id).all()

    def get_by_sku(self, sku_id: int) -> Optional[SlotAssignment]:
        """Get the current slot assignment of a SKU, if any."""
        return self.session.query(SlotAssignment).filter(
            SlotAssignment.sku_id == sku_id
        ).first()

    def get_by_rack(self, rack: str, warehouse_id: Optional[int] = None) -> List[SlotAssignment]:
        """Get assignments on an exact rack, optionally in one warehouse."""
        query = self.session.query(SlotAssignment).filter(SlotAssignment.rack == rack.strip())
        if warehouse_id is not None:
            query = query.filter(SlotAssignment.warehouse_id == warehouse_id)
        return query.order_by(SlotAssignment.id).all()

    def get_by_aisle(self, aisle: str, warehouse_id: Optional[int] = None) -> List[SlotAssignment]:
        """Get assignments in an exact aisle, optionally in one warehouse."""
        query = self.session.query(SlotAssignment).filter(SlotAssignment.aisle == aisle.strip())
        if warehouse_id is not None:
            query = query.filter(SlotAssignment.warehouse_id == warehouse_id)
        return query.order_by(SlotAssignment.id).all()

    def search(self, term: str, warehouse_id: Optional[int] = None) -> List[SlotAssignment]:
        """Find assignments whose rack, level or aisle contains the term.

        Matching is case-insensitive; LIKE wildcards in the term are matched
        literally.

        Args:
            term: Coordinate fragment
            warehouse_id: Optional warehouse ID filter

        Returns:
            List of matching assignments ordered by ID
        """
        fragment = (term or '').strip().lower()
        query = self.session.query(SlotAssignment).filter(
            or_(
                func.lower(SlotAssignment.rack).contains(fragment, autoescape=True),
                func.lower(SlotAssignment.level).contains(fragment, autoescape=True),
                func.lower(SlotAssignment.aisle).contains(fragment, autoescape=True)
            )
        )
        if warehouse_id is not None:
            query = query.filter(SlotAssignment.warehouse_id == warehouse_id)
        return query.order_by(SlotAssignment.id).all()

    def is_occupied(
        self,
        warehouse_id: int,
        rack: str,
        level: str,
        aisle: str,
        excluding_assignment_id: Optional[int] = None
    ) -> bool:
        """Check whether a slot currently holds a SKU.

        Args:
            warehouse_id: Warehouse ID
            rack: Rack label
            level: Level label
            aisle: Aisle label
            excluding_assignment_id: Optional assignment to ignore, used when
                                     a SKU is moved onto its own slot

        Returns:
            True if another assignment holds the slot
        """
        query = self.session.query(SlotAssignment.id).filter(
            SlotAssignment.warehouse_id == warehouse_id,
            SlotAssignment.rack == rack.strip(),
            SlotAssignment.level == level.strip(),
            SlotAssignment.aisle == aisle.strip(),
            SlotAssignment.sku_id.isnot(None)
        )
        if excluding_assignment_id is not None:
            query = query.filter(SlotAssignment.id != excluding_assignment_id)
        return query.first() is not None

    def assign(self, sku_id: int, warehouse_id: int, rack: str, level: str, aisle: str) -> SlotAssignment:
        """Slot a SKU. A SKU that already has a slot is moved instead.

        Raises:
            ValidationError: If the coordinates are malformed
            NotFoundError: If the SKU or warehouse does not exist
            ConflictError: If another SKU occupies the slot
        """
        location = require_valid_location(rack, level, aisle)
        self._require_references(sku_id, warehouse_id)

        current = self.get_by_sku(sku_id)
        if current is not None:
            logger.debug(f"SKU {sku_id} already located, treating assign as move")
            return self._relocate(current, warehouse_id, location)

        return self._insert(sku_id, warehouse_id, location)

    def move(self, sku_id: int, warehouse_id: int, rack: str, level: str, aisle: str) -> SlotAssignment:
        """Move a SKU to a new slot, creating its assignment if it had none.

        The assignment record keeps its identity; coordinates, warehouse and
        timestamp are replaced.

        Raises:
            ValidationError: If the coordinates are malformed
            NotFoundError: If the SKU or warehouse does not exist
            ConflictError: If another SKU occupies the destination
        """
        location = require_valid_location(rack, level, aisle)
        self._require_references(sku_id, warehouse_id)

        current = self.get_by_sku(sku_id)
        if current is None:
            return self._insert(sku_id, warehouse_id, location)

        return self._relocate(current, warehouse_id, location)

    def vacate(self, sku_id: int) -> bool:
        """Remove the SKU's slot assignment.

        Returns:
            True if an assignment was deleted, False if the SKU had none
        """
        current = self.get_by_sku(sku_id)
        if current is None:
            return False

        code = format_location_code(current.rack, current.level, current.aisle)
        self.session.delete(current)
        self.session.flush()

        logger.info(f"Vacated slot {code} in warehouse {current.warehouse_id} (SKU {sku_id})")
        return True

    def _require_references(self, sku_id: int, warehouse_id: int):
        if self.session.get(Sku, sku_id) is None:
            raise NotFoundError(f"SKU with ID {sku_id} not found", details={'sku_id': sku_id})
        if self.session.get(Warehouse, warehouse_id) is None:
            raise NotFoundError(f"Warehouse with ID {warehouse_id} not found", details={'warehouse_id': warehouse_id})

    def _raise_if_occupied(self, warehouse_id: int, location: SlotLocation, excluding_assignment_id=None):
        if self.is_occupied(warehouse_id, location.rack, location.level, location.aisle, excluding_assignment_id):
            raise ConflictError(
                f"Location {location.code} is already occupied",
                details={'warehouse_id': warehouse_id, 'location_code': location.code}
            )

    def _insert(self, sku_id: int, warehouse_id: int, location: SlotLocation) -> SlotAssignment:
        self._raise_if_occupied(warehouse_id, location)

        assignment = SlotAssignment(
            sku_id=sku_id,
            warehouse_id=warehouse_id,
            rack=location.rack,
            level=location.level,
            aisle=location.aisle,
            assigned_at=self._clock()
        )
        self.session.add(assignment)
        self._flush(warehouse_id, location)

        logger.info(f"Assigned SKU {sku_id} to {location.code} in warehouse {warehouse_id}")
        return assignment

    def _relocate(self, current: SlotAssignment, warehouse_id: int, location: SlotLocation) -> SlotAssignment:
        self._raise_if_occupied(warehouse_id, location, excluding_assignment_id=current.id)

        source = format_location_code(current.rack, current.level, current.aisle)
        source_warehouse_id = current.warehouse_id

        current.warehouse = self.session.get(Warehouse, warehouse_id)
        current.warehouse_id = warehouse_id
        current.rack = location.rack
        current.level = location.level
        current.aisle = location.aisle
        current.assigned_at = self._clock()
        self._flush(warehouse_id, location)

        logger.info(
            f"Moved SKU {current.sku_id} from {source} (warehouse {source_warehouse_id}) "
            f"to {location.code} (warehouse {warehouse_id})"
        )
        return current

    def _flush(self, warehouse_id: int, location: SlotLocation):
        """Flush pending writes, turning constraint violations into conflicts."""
        try:
            self.session.flush()
        except IntegrityError as e:
            self.session.rollback()
            logger.warning(f"Concurrent slot assignment conflict at {location.code} in warehouse {warehouse_id}")
            if _violates_sku_constraint(e):
                raise ConflictError(
                    "The SKU was located concurrently by another request",
                    details={'warehouse_id': warehouse_id, 'location_code': location.code}
                )
            raise ConflictError(
                f"Location {location.code} is already occupied",
                details={'warehouse_id': warehouse_id, 'location_code': location.code}
            )
