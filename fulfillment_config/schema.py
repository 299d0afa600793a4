"""
Fulfillment settings schema.

Frozen dataclasses produced by the loader.  Nothing here reads files or
the environment.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class AssignmentPolicySettings:
    """Feature flags and bounds for automatic assignment."""

    auto_assign_enabled: bool = True
    auto_reassign_after_rejection: bool = True
    max_reassign_attempts: int = 3
    default_max_active_orders: int = 5


@dataclass(frozen=True)
class WorkerSettings:
    """Background task pool sizing."""

    background_workers: int = 4
    drain_timeout_seconds: int = 30


@dataclass(frozen=True)
class PaymentSettings:
    webhook_secret: str = ""
    currency: str = "NGN"
    invoice_expiry_hours: int = 24


@dataclass(frozen=True)
class FulfillmentSettings:
    """
    Effective runtime settings.

    ``checksum`` identifies the exact values in force (after environment
    overrides) and is logged on every load.
    """

    config_id: str
    version: int
    database_url: str
    assignment: AssignmentPolicySettings
    workers: WorkerSettings
    payments: PaymentSettings
    checksum: str = ""
