"""
Fare Quotes  (Strategy Pattern)
===============================

Formula
-------
Price = (Base_Fare + Distance x Per_KM + Minutes x Per_Minute) x Surge_Multiplier

* **Distance** is the Haversine distance between the confirmed origin and
  destination; **Minutes** is that distance at ``distance.AVERAGE_SPEED_KMH``.
* **Surge_Multiplier** = clamp(active_requests / available_agents, 1.0, 3.0)

Each ``ServiceTier`` carries its own rates.  A service with no tiers is
quoted against ``PricingEngine.default_tier``, built from the configured
base fare and per-km rate.

Complexity: O(1) per tier.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence

from .distance import estimate_minutes, haversine_km
from .entities import Location, ServiceTier


@dataclass(frozen=True)
class FareQuote:
    tier_id: Optional[int]
    tier_name: str
    distance_km: float
    duration_minutes: float
    price: float


# ── Strategy hierarchy ────────────────────────────────────────────────


class PricingStrategy(ABC):
    @abstractmethod
    def calculate(
        self, distance_km: float, minutes: float, tier: ServiceTier
    ) -> float: ...


class StandardPricing(PricingStrategy):
    def calculate(
        self, distance_km: float, minutes: float, tier: ServiceTier
    ) -> float:
        raw = (
            tier.base_fare
            + distance_km * tier.per_km_rate
            + minutes * tier.per_minute_rate
        )
        return round(raw, 2)


class SurgePricing(PricingStrategy):
    def __init__(self, surge_multiplier: float = 1.0):
        self.surge_multiplier = surge_multiplier

    def calculate(
        self, distance_km: float, minutes: float, tier: ServiceTier
    ) -> float:
        raw = StandardPricing().calculate(distance_km, minutes, tier)
        return round(raw * self.surge_multiplier, 2)


# ── Engine facade ─────────────────────────────────────────────────────


class PricingEngine:
    """High-level API used by the quote route."""

    def __init__(self, base_fare: float = 50.0, rate_per_km: float = 15.0):
        self.base_fare = base_fare
        self.rate_per_km = rate_per_km

    @staticmethod
    def compute_surge(active_requests: int, available_agents: int) -> float:
        if available_agents <= 0:
            return 3.0
        return min(3.0, max(1.0, active_requests / available_agents))

    def default_tier(self, service) -> ServiceTier:
        return ServiceTier(
            id=0,
            service=service,
            name="Standard",
            base_fare=self.base_fare,
            per_km_rate=self.rate_per_km,
        )

    def quote(
        self,
        origin: Location,
        destination: Location,
        tiers: Sequence[ServiceTier],
        active_requests: int = 1,
        available_agents: int = 1,
    ) -> list[FareQuote]:
        """One quote per tier, cheapest first."""
        distance = haversine_km(origin, destination)
        minutes = estimate_minutes(distance)
        strategy = SurgePricing(self.compute_surge(active_requests, available_agents))

        quotes = []
        for tier in tiers:
            quotes.append(
                FareQuote(
                    tier_id=tier.id or None,
                    tier_name=tier.name,
                    distance_km=round(distance, 3),
                    duration_minutes=round(minutes, 1),
                    price=strategy.calculate(distance, minutes, tier),
                )
            )
        quotes.sort(key=lambda q: q.price)
        return quotes
