"""
Vendor commission rates.
---
Each vendor pays either a share of the order value (percentage) or a fixed
referral fee per conversion (flat). Rates come from settings and can be
replaced at runtime by swapping the whole table; records already created
keep the amount computed at the time.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Iterable, Mapping, Union

from affiliate_engine.errors import UnknownVendor
from affiliate_engine.models import AffiliateLink, Vendor

logger = logging.getLogger(__name__)


class RateKind(str, Enum):
    PERCENTAGE = "percentage"
    FLAT = "flat"


@dataclass(frozen=True)
class PercentageRate:
    rate: float  # 0.08 = 8%

    kind = RateKind.PERCENTAGE

    def commission_for(self, order_value: float) -> float:
        return order_value * self.rate

    @property
    def value(self) -> float:
        return self.rate


@dataclass(frozen=True)
class FlatRate:
    amount: float  # paid per conversion, regardless of order value

    kind = RateKind.FLAT

    def commission_for(self, order_value: float) -> float:
        return self.amount

    @property
    def value(self) -> float:
        return self.amount


VendorRate = Union[PercentageRate, FlatRate]

DEFAULT_RATES: dict[Vendor, VendorRate] = {
    Vendor.VIATOR: PercentageRate(0.08),
    Vendor.GOLFNOW: PercentageRate(0.12),
    Vendor.TURO: FlatRate(25.00),
    Vendor.AMAZON: PercentageRate(0.04),
    Vendor.AWIN: PercentageRate(0.05),
}
DEFAULT_FALLBACK_RATE = PercentageRate(0.05)


def make_rate(kind: str, value: float) -> VendorRate:
    if RateKind(kind.lower()) is RateKind.FLAT:
        return FlatRate(value)
    return PercentageRate(value)


class RateTable:
    """Immutable vendor → rate mapping plus the fallback for unknown vendors."""

    def __init__(
        self,
        rates: Mapping[Vendor, VendorRate] | None = None,
        default_rate: VendorRate = DEFAULT_FALLBACK_RATE,
    ):
        merged = dict(DEFAULT_RATES)
        merged.update(rates or {})
        self._rates = MappingProxyType(merged)
        self.default_rate = default_rate

    @classmethod
    def from_settings(cls, settings) -> "RateTable":
        rates = {
            vendor: make_rate(
                getattr(settings, f"COMMISSION_TYPE_{vendor.name}"),
                getattr(settings, f"COMMISSION_RATE_{vendor.name}"),
            )
            for vendor in Vendor
        }
        return cls(rates, PercentageRate(settings.DEFAULT_COMMISSION_RATE))

    @property
    def rates(self) -> Mapping[Vendor, VendorRate]:
        return self._rates

    def rate_for(self, vendor: str | Vendor) -> VendorRate:
        """Rate for a known vendor. Raises UnknownVendor otherwise."""
        return self._rates[Vendor.parse(vendor)]

    def resolve(self, vendor: str | Vendor) -> tuple[VendorRate, bool]:
        """(rate, fell_back). Unknown vendors get the default rate."""
        try:
            return self.rate_for(vendor), False
        except UnknownVendor:
            return self.default_rate, True

    def to_dict(self) -> dict:
        return {
            "rates": {
                v.value: {"type": r.kind.value, "value": r.value} for v, r in self._rates.items()
            },
            "default": {"type": self.default_rate.kind.value, "value": self.default_rate.value},
        }


class RateTableHolder:
    """Shared reference to the current table. Readers call ``current()`` once
    per operation so a swap never mixes two tables within one computation."""

    def __init__(self, table: RateTable | None = None):
        self._table = table or RateTable()
        self._lock = threading.Lock()

    def current(self) -> RateTable:
        return self._table

    def swap(self, table: RateTable) -> RateTable:
        with self._lock:
            previous, self._table = self._table, table
        logger.info("Commission rate table replaced")
        return previous

    def reload(self, settings) -> RateTable:
        return self.swap(RateTable.from_settings(settings))


def estimate_potential_commission(links: Iterable[AffiliateLink], table: RateTable) -> float:
    """Commission if every recommended item converted once at its live price."""
    total = 0.0
    for link in links:
        rate, _ = table.resolve(link.vendor)
        total += rate.commission_for(link.price)
    return round(total, 2)
