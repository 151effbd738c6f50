"""
SQLAlchemy ORM models.

Tables
------
* ``service_tiers`` -- priced tiers offered per service (reference data
  prefetched when a flow enters that service)

Indexes
-------
* **B-Tree** on ``(service, is_active)`` for the per-service tier listing.
"""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    Index,
    Integer,
    String,
    func,
)

from .database import Base
from src.domain.entities import ServiceTier
from src.domain.enums import ServiceType, VehicleType


class ServiceTierModel(Base):
    __tablename__ = "service_tiers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    service = Column(Enum(ServiceType), nullable=False)
    name = Column(String(80), nullable=False)
    vehicle_type = Column(Enum(VehicleType), nullable=True)
    base_fare = Column(Float, nullable=False)
    per_km_rate = Column(Float, nullable=False)
    per_minute_rate = Column(Float, default=0.0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_service_tiers_service", "service", "is_active"),
    )

    def to_entity(self) -> ServiceTier:
        return ServiceTier(
            id=self.id,
            service=self.service,
            name=self.name,
            base_fare=self.base_fare,
            per_km_rate=self.per_km_rate,
            per_minute_rate=self.per_minute_rate or 0.0,
            vehicle_type=self.vehicle_type,
        )
