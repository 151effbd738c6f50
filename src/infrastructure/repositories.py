"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import ServiceTierModel
from src.domain.enums import ServiceType, VehicleType


class ServiceTierRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        *,
        service: ServiceType,
        name: str,
        base_fare: float,
        per_km_rate: float,
        per_minute_rate: float = 0.0,
        vehicle_type: VehicleType | None = None,
        is_active: bool = True,
    ) -> ServiceTierModel:
        tier = ServiceTierModel(
            service=service,
            name=name,
            base_fare=base_fare,
            per_km_rate=per_km_rate,
            per_minute_rate=per_minute_rate,
            vehicle_type=vehicle_type,
            is_active=is_active,
        )
        self.session.add(tier)
        await self.session.flush()
        return tier

    async def get_by_id(self, tier_id: int) -> Optional[ServiceTierModel]:
        return await self.session.get(ServiceTierModel, tier_id)

    async def list_active(self, service: ServiceType) -> list[ServiceTierModel]:
        result = await self.session.execute(
            select(ServiceTierModel)
            .where(
                ServiceTierModel.service == service,
                ServiceTierModel.is_active.is_(True),
            )
            .order_by(ServiceTierModel.base_fare, ServiceTierModel.id)
        )
        return list(result.scalars().all())

    async def count_active(self, service: ServiceType | None = None) -> int:
        query = (
            select(func.count())
            .select_from(ServiceTierModel)
            .where(ServiceTierModel.is_active.is_(True))
        )
        if service is not None:
            query = query.where(ServiceTierModel.service == service)
        result = await self.session.execute(query)
        return result.scalar() or 0
