# warehouse_geolocation/services/sku_service.py
from datetime import datetime
from typing import List, Optional
import logging

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from warehouse_geolocation.models import Sku, Container, SlotAssignment
from warehouse_geolocation.exceptions import ConflictError, NotFoundError
from warehouse_geolocation.utils.validation import validate_sku_code, raise_for_errors

from warehouse_geolocation.logging_setup import logger
logger = logging.getLogger(__name__)


class SkuService:
    """SKU registry: identity resolution and registration of SKUs."""

    def __init__(self, session: Session):
        """Initialize the SKU service.

        Args:
            session: Database session
        """
        self.session = session

    def get_by_id(self, sku_id: int) -> Optional[Sku]:
        """Get a SKU by ID.

        Args:
            sku_id: SKU ID

        Returns:
            Sku object or None if not found
        """
        return self.session.get(Sku, sku_id)

    def get_by_code(self, code: str) -> Optional[Sku]:
        """Get a SKU by its external code.

        Args:
            code: SKU code

        Returns:
            Sku object or None if not found
        """
        if not code:
            return None
        return self.session.query(Sku).filter(Sku.code == code.strip()).first()

    def exists(self, code: str, exclude_id: Optional[int] = None) -> bool:
        """Check whether a SKU code is already registered.

        Args:
            code: SKU code
            exclude_id: Optional SKU ID to ignore

        Returns:
            True if another SKU holds the code
        """
        query = self.session.query(Sku.id).filter(Sku.code == code.strip())
        if exclude_id is not None:
            query = query.filter(Sku.id != exclude_id)
        return query.first() is not None

    def create(
        self,
        code: str,
        description: Optional[str] = None,
        container_id: Optional[int] = None
    ) -> Sku:
        """Register a new SKU.

        Args:
            code: Unique SKU code
            description: Free-text description
            container_id: Optional originating container ID

        Returns:
            The created Sku

        Raises:
            ValidationError: If the code is malformed
            ConflictError: If the code is already registered
            NotFoundError: If the container does not exist
        """
        raise_for_errors(validate_sku_code(code))
        code = code.strip()

        if self.exists(code):
            raise ConflictError(f"SKU code already exists: {code}", details={'code': code})

        if container_id is not None and self.session.get(Container, container_id) is None:
            raise NotFoundError(f"Container with ID {container_id} not found")

        sku = Sku(
            code=code,
            description=description,
            container_id=container_id,
            registered_at=datetime.now()
        )
        self.session.add(sku)

        try:
            self.session.flush()
        except IntegrityError:
            self.session.rollback()
            raise ConflictError(f"SKU code already exists: {code}", details={'code': code})

        logger.info(f"Registered SKU {code} (id={sku.id})")
        return sku

    def search_by_description(self, term: str) -> List[Sku]:
        """Find SKUs whose description contains the term (case-insensitive).

        LIKE wildcards in the term are matched literally.

        Args:
            term: Search term

        Returns:
            List of matching SKUs ordered by code
        """
        return self.session.query(Sku).filter(
            func.lower(Sku.description).contains((term or '').lower(), autoescape=True)
        ).order_by(Sku.code).all()

    def get_unlocated(self) -> List[Sku]:
        """Get SKUs that have no slot assignment."""
        return self.session.query(Sku).outerjoin(
            SlotAssignment, SlotAssignment.sku_id == Sku.id
        ).filter(SlotAssignment.id.is_(None)).order_by(Sku.code).all()
