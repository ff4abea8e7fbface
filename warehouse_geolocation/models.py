# warehouse_geolocation/models.py
from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, UniqueConstraint, Index
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

class Warehouse(Base):
    __tablename__ = 'warehouse'

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False, unique=True)

    # Number of physical slots, when known. Without it occupancy percentages
    # are computed against the assignment rows recorded for the warehouse.
    capacity = Column(Integer, nullable=True)

    slot_assignments = relationship("SlotAssignment", back_populates="warehouse")

    def __repr__(self):
        return f"<Warehouse(id={self.id}, name='{self.name}')>"

class Container(Base):
    __tablename__ = 'container'

    id = Column(Integer, primary_key=True)
    code = Column(String(50), nullable=False, unique=True)
    arrived_at = Column(DateTime, default=datetime.now)

    skus = relationship("Sku", back_populates="container")

class Sku(Base):
    __tablename__ = 'sku'

    id = Column(Integer, primary_key=True)
    code = Column(String(50), nullable=False, unique=True)
    description = Column(Text)
    container_id = Column(Integer, ForeignKey('container.id'), nullable=True)
    registered_at = Column(DateTime, default=datetime.now)

    container = relationship("Container", back_populates="skus")
    slot_assignment = relationship("SlotAssignment", back_populates="sku", uselist=False)

    def __repr__(self):
        return f"<Sku(id={self.id}, code='{self.code}')>"

class SlotAssignment(Base):
    """Binding of one SKU to one physical slot (warehouse, rack, level, aisle)."""
    __tablename__ = 'slot_assignment'

    id = Column(Integer, primary_key=True)
    sku_id = Column(Integer, ForeignKey('sku.id'), nullable=True)
    warehouse_id = Column(Integer, ForeignKey('warehouse.id'), nullable=False)
    rack = Column(String(20), nullable=False)
    level = Column(String(20), nullable=False)
    aisle = Column(String(20), nullable=False)
    assigned_at = Column(DateTime, default=datetime.now)

    sku = relationship("Sku", back_populates="slot_assignment")
    warehouse = relationship("Warehouse", back_populates="slot_assignments")

    __table_args__ = (
        UniqueConstraint('warehouse_id', 'rack', 'level', 'aisle', name='uq_slot_assignment_slot'),
        UniqueConstraint('sku_id', name='uq_slot_assignment_sku'),
        Index('ix_slot_assignment_assigned_at', 'assigned_at'),
    )

    @property
    def is_occupied(self):
        return self.sku_id is not None

    def __repr__(self):
        return (
            f"<SlotAssignment(id={self.id}, sku_id={self.sku_id}, warehouse_id={self.warehouse_id}, "
            f"rack='{self.rack}', level='{self.level}', aisle='{self.aisle}')>"
        )
