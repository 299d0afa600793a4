"""
Configuration Loader (``fulfillment_config.loader``).

Responsibility
--------------
Reads the YAML settings file, applies environment overrides and parses the
result into ``fulfillment_config.schema`` dataclasses.  Callers use
``fulfillment_config.get_active_config()``; this module is its internals.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Bad values raise ``ValueError`` naming the offending key; nothing is
  silently defaulted once a key is present.
* ``compute_checksum`` is deterministic for identical effective settings.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unparseable boolean / non-positive integer  -> ``ValueError``.
"""

from __future__ import annotations

import copy
import hashlib
import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from fulfillment_config.schema import (
    AssignmentPolicySettings,
    FulfillmentSettings,
    PaymentSettings,
    WorkerSettings,
)

# Environment variable -> (section, key) in the YAML document
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "AUTO_ASSIGN_ENABLED": ("assignment", "auto_assign_enabled"),
    "AUTO_REASSIGN_AFTER_REJECTION": ("assignment", "auto_reassign_after_rejection"),
    "MAX_REASSIGN_ATTEMPTS": ("assignment", "max_reassign_attempts"),
    "DEFAULT_MAX_ACTIVE_ORDERS": ("assignment", "default_max_active_orders"),
    "BACKGROUND_WORKERS": ("workers", "background_workers"),
    "DATABASE_URL": ("database", "url"),
    "PAYMENT_WEBHOOK_SECRET": ("payments", "webhook_secret"),
}

_TRUE = frozenset({"true", "1", "yes", "on"})
_FALSE = frozenset({"false", "0", "no", "off"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file and return its contents as a dict."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_bool(key: str, value: Any) -> bool:
    """
    Parse a boolean flag from YAML or an environment string.

    Raises:
        ValueError: if ``value`` is not a recognised boolean spelling.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in _TRUE:
        return True
    if isinstance(value, str) and value.strip().lower() in _FALSE:
        return False
    raise ValueError(f"{key}: expected a boolean, got {value!r}")


def parse_positive_int(key: str, value: Any) -> int:
    """
    Parse an integer >= 1.

    Raises:
        ValueError: if ``value`` is not an integer or is below 1.
    """
    if isinstance(value, bool):
        raise ValueError(f"{key}: expected a positive integer, got {value!r}")
    try:
        parsed = int(str(value).strip())
    except ValueError:
        raise ValueError(f"{key}: expected a positive integer, got {value!r}") from None
    if parsed < 1:
        raise ValueError(f"{key}: must be >= 1, got {parsed}")
    return parsed


def apply_env_overrides(
    data: dict[str, Any],
    environ: Mapping[str, str],
) -> dict[str, Any]:
    """Return a copy of ``data`` with environment overrides applied."""
    merged = copy.deepcopy(data)
    for env_key, (section, key) in ENV_OVERRIDES.items():
        if env_key in environ:
            merged.setdefault(section, {})[key] = environ[env_key]
    return merged


def parse_settings(data: dict[str, Any]) -> FulfillmentSettings:
    """Parse the merged settings document."""
    assignment = data.get("assignment", {})
    workers = data.get("workers", {})
    payments = data.get("payments", {})
    database = data.get("database", {})

    defaults = AssignmentPolicySettings()
    policy = AssignmentPolicySettings(
        auto_assign_enabled=parse_bool(
            "AUTO_ASSIGN_ENABLED",
            assignment.get("auto_assign_enabled", defaults.auto_assign_enabled),
        ),
        auto_reassign_after_rejection=parse_bool(
            "AUTO_REASSIGN_AFTER_REJECTION",
            assignment.get(
                "auto_reassign_after_rejection", defaults.auto_reassign_after_rejection
            ),
        ),
        max_reassign_attempts=parse_positive_int(
            "MAX_REASSIGN_ATTEMPTS",
            assignment.get("max_reassign_attempts", defaults.max_reassign_attempts),
        ),
        default_max_active_orders=parse_positive_int(
            "DEFAULT_MAX_ACTIVE_ORDERS",
            assignment.get(
                "default_max_active_orders", defaults.default_max_active_orders
            ),
        ),
    )

    worker_defaults = WorkerSettings()
    worker_settings = WorkerSettings(
        background_workers=parse_positive_int(
            "BACKGROUND_WORKERS",
            workers.get("background_workers", worker_defaults.background_workers),
        ),
        drain_timeout_seconds=parse_positive_int(
            "drain_timeout_seconds",
            workers.get("drain_timeout_seconds", worker_defaults.drain_timeout_seconds),
        ),
    )

    payment_defaults = PaymentSettings()
    payment_settings = PaymentSettings(
        webhook_secret=str(payments.get("webhook_secret") or ""),
        currency=str(payments.get("currency", payment_defaults.currency)),
        invoice_expiry_hours=parse_positive_int(
            "invoice_expiry_hours",
            payments.get("invoice_expiry_hours", payment_defaults.invoice_expiry_hours),
        ),
    )

    database_url = database.get("url")
    if not database_url:
        raise ValueError("DATABASE_URL: a database url is required")

    return FulfillmentSettings(
        config_id=str(data.get("config_id", "fulfillment")),
        version=int(data.get("version", 1)),
        database_url=str(database_url),
        assignment=policy,
        workers=worker_settings,
        payments=payment_settings,
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
