"""
fulfillment_config -- single public entrypoint for fulfillment settings.

Responsibility:
    ``get_active_config()`` is the only way runtime code obtains feature
    flags, retry bounds, worker sizing and connection settings.  No other
    component reads the settings file or these environment variables.

Architecture position:
    Configuration.  Sits above ``fulfillment_kernel`` and below
    ``fulfillment_services``.  The kernel never imports from here; the
    engine facade passes plain values into kernel services.

Failure modes:
    - ``FileNotFoundError`` -- the settings file does not exist.
    - ``ValueError`` -- an override or file value fails validation.

Audit relevance:
    Every load logs ``fulfillment_config_loaded`` with the checksum of the
    effective settings, tying behaviour to the exact flags in force.
"""

from __future__ import annotations

import dataclasses
import logging
import os
from collections.abc import Mapping
from pathlib import Path

from fulfillment_config.loader import (
    apply_env_overrides,
    compute_checksum,
    load_yaml_file,
    parse_settings,
)
from fulfillment_config.schema import (
    AssignmentPolicySettings,
    FulfillmentSettings,
    PaymentSettings,
    WorkerSettings,
)

_logger = logging.getLogger("fulfillment_kernel.config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"

__all__ = [
    "AssignmentPolicySettings",
    "FulfillmentSettings",
    "PaymentSettings",
    "WorkerSettings",
    "get_active_config",
]


def get_active_config(
    config_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> FulfillmentSettings:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: Settings YAML.  Defaults to fulfillment_config/sets/default.yaml.
        environ: Environment to read overrides from.  Defaults to ``os.environ``.

    Returns:
        Frozen ``FulfillmentSettings`` with ``checksum`` populated.

    Raises:
        FileNotFoundError: If the settings file is missing.
        ValueError: If a value fails validation.
    """
    path = config_path or _DEFAULT_CONFIG_PATH
    env = os.environ if environ is None else environ

    data = apply_env_overrides(load_yaml_file(path), env)
    settings = parse_settings(data)

    # The secret stays out of the checksum input and the log line.
    fingerprint_source = dataclasses.asdict(settings)
    fingerprint_source["payments"]["webhook_secret"] = bool(
        settings.payments.webhook_secret
    )
    settings = dataclasses.replace(settings, checksum=compute_checksum(fingerprint_source))

    _logger.info(
        "fulfillment_config_loaded",
        extra={
            "config_id": settings.config_id,
            "config_version": settings.version,
            "checksum": settings.checksum,
            "auto_assign_enabled": settings.assignment.auto_assign_enabled,
            "auto_reassign_after_rejection": settings.assignment.auto_reassign_after_rejection,
            "max_reassign_attempts": settings.assignment.max_reassign_attempts,
            "background_workers": settings.workers.background_workers,
        },
    )
    return settings
