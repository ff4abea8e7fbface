# warehouse_geolocation/services/warehouse_service.py
from typing import List, Optional
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from warehouse_geolocation.models import Warehouse
from warehouse_geolocation.exceptions import ConflictError, ValidationError
from warehouse_geolocation.utils.validation import validate_warehouse_name, raise_for_errors

from warehouse_geolocation.logging_setup import logger
logger = logging.getLogger(__name__)


class WarehouseService:
    """Warehouse registry."""

    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, warehouse_id: int) -> Optional[Warehouse]:
        return self.session.get(Warehouse, warehouse_id)

    def get_by_name(self, name: str) -> Optional[Warehouse]:
        return self.session.query(Warehouse).filter(Warehouse.name == name.strip()).first()

    def get_all(self) -> List[Warehouse]:
        """Get all warehouses ordered by ID."""
        return self.session.query(Warehouse).order_by(Warehouse.id).all()

    def exists(self, name: str) -> bool:
        return self.get_by_name(name) is not None

    def create(self, name: str, capacity: Optional[int] = None) -> Warehouse:
        """Create a warehouse.

        Args:
            name: Display name, unique across warehouses
            capacity: Optional number of physical slots

        Returns:
            The created Warehouse

        Raises:
            ValidationError: If the name is blank or the capacity is negative
            ConflictError: If the name is already taken
        """
        raise_for_errors(validate_warehouse_name(name))
        name = name.strip()

        if capacity is not None and capacity < 0:
            raise ValidationError("Warehouse capacity cannot be negative", details={'capacity': capacity})

        if self.exists(name):
            raise ConflictError(f"A warehouse named '{name}' already exists", details={'name': name})

        warehouse = Warehouse(name=name, capacity=capacity)
        self.session.add(warehouse)

        try:
            self.session.flush()
        except IntegrityError:
            self.session.rollback()
            raise ConflictError(f"A warehouse named '{name}' already exists", details={'name': name})

        logger.info(f"Created warehouse '{name}' (id={warehouse.id})")
        return warehouse
