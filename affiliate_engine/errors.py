"""Domain errors for the affiliate engine.

The HTTP layer maps each of these to a status code in ``api/main.py``:

- ValidationError         → 400 (malformed input, nothing written)
- CommissionNotFound      → 404
- InvalidStateTransition  → 409 (commission lifecycle misuse, nothing written)
- StorageUnavailable      → 503 (retry-safe)

``VendorFetchFailure`` and ``UnknownVendor`` never reach the HTTP layer: the
inventory monitor collects the former per product, and the commission ledger
falls back to the default rate on the latter.
"""
from __future__ import annotations


class AffiliateError(Exception):
    """Base class for all affiliate engine errors."""


class ValidationError(AffiliateError):
    """Input rejected before any side effect."""


class CommissionNotFound(AffiliateError):
    def __init__(self, commission_id: str):
        super().__init__(f"Commission not found: {commission_id}")
        self.commission_id = commission_id


class StorageUnavailable(AffiliateError):
    """The persistence layer could not be reached. Safe to retry."""


class InvalidStateTransition(AffiliateError):
    def __init__(self, commission_id: str, current: str, target: str):
        super().__init__(
            f"Commission {commission_id} cannot move from {current} to {target}"
        )
        self.commission_id = commission_id
        self.current = current
        self.target = target


class VendorFetchFailure(AffiliateError):
    def __init__(self, vendor: str, product_id: str, reason: str):
        super().__init__(f"{vendor}/{product_id}: {reason}")
        self.vendor = vendor
        self.product_id = product_id
        self.reason = reason


class UnknownVendor(AffiliateError):
    def __init__(self, vendor: str):
        super().__init__(f"Unknown vendor: {vendor}")
        self.vendor = vendor
