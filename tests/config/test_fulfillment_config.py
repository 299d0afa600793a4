"""
fulfillment_config: YAML defaults, environment overrides, validation and
the load-time checksum log.
"""

import json
import logging

import pytest

from fulfillment_config import get_active_config
from fulfillment_config.loader import parse_bool, parse_positive_int


class TestDefaults:
    def test_default_file(self):
        settings = get_active_config(environ={})
        assert settings.config_id == "fulfillment-default"
        assert settings.assignment.auto_assign_enabled is True
        assert settings.assignment.auto_reassign_after_rejection is True
        assert settings.assignment.max_reassign_attempts == 3
        assert settings.assignment.default_max_active_orders == 5
        assert settings.workers.background_workers == 4
        assert settings.payments.currency == "NGN"
        assert settings.payments.webhook_secret == ""
        assert len(settings.checksum) == 64

    def test_custom_file(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text(
            "config_id: staging\n"
            "version: 7\n"
            "assignment:\n"
            "  max_reassign_attempts: 5\n"
            "database:\n"
            "  url: sqlite:///staging.db\n"
        )
        settings = get_active_config(config_path=path, environ={})
        assert settings.config_id == "staging"
        assert settings.version == 7
        assert settings.assignment.max_reassign_attempts == 5
        assert settings.assignment.auto_assign_enabled is True

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(config_path=tmp_path / "absent.yaml", environ={})


class TestEnvironmentOverrides:
    def test_overrides_applied(self):
        settings = get_active_config(
            environ={
                "AUTO_ASSIGN_ENABLED": "false",
                "AUTO_REASSIGN_AFTER_REJECTION": "0",
                "MAX_REASSIGN_ATTEMPTS": "7",
                "DEFAULT_MAX_ACTIVE_ORDERS": "2",
                "BACKGROUND_WORKERS": "8",
                "DATABASE_URL": "postgresql://u:p@db/fulfillment",
                "PAYMENT_WEBHOOK_SECRET": "s3cret",
            }
        )
        assert settings.assignment.auto_assign_enabled is False
        assert settings.assignment.auto_reassign_after_rejection is False
        assert settings.assignment.max_reassign_attempts == 7
        assert settings.assignment.default_max_active_orders == 2
        assert settings.workers.background_workers == 8
        assert settings.database_url == "postgresql://u:p@db/fulfillment"
        assert settings.payments.webhook_secret == "s3cret"

    def test_unrelated_variables_ignored(self):
        assert get_active_config(environ={"HOME": "/root"}).checksum == (
            get_active_config(environ={}).checksum
        )

    @pytest.mark.parametrize(
        "key,value",
        [
            ("AUTO_ASSIGN_ENABLED", "maybe"),
            ("MAX_REASSIGN_ATTEMPTS", "0"),
            ("MAX_REASSIGN_ATTEMPTS", "three"),
            ("BACKGROUND_WORKERS", "-2"),
        ],
    )
    def test_bad_values_name_the_key(self, key, value):
        with pytest.raises(ValueError, match=key):
            get_active_config(environ={key: value})

    def test_checksum_tracks_effective_values(self):
        base = get_active_config(environ={})
        changed = get_active_config(environ={"MAX_REASSIGN_ATTEMPTS": "4"})
        assert base.checksum != changed.checksum


class TestLoadLog:
    def test_load_is_logged_without_secret(self, captured_logs):
        settings = get_active_config(environ={"PAYMENT_WEBHOOK_SECRET": "s3cret"})

        [record] = [r for r in captured_logs() if r["message"] == "fulfillment_config_loaded"]
        assert record["checksum"] == settings.checksum
        assert record["max_reassign_attempts"] == 3
        assert "s3cret" not in json.dumps(record)

    def test_secret_value_not_in_checksum_input(self):
        """Two different secrets give the same fingerprint."""
        a = get_active_config(environ={"PAYMENT_WEBHOOK_SECRET": "one"})
        b = get_active_config(environ={"PAYMENT_WEBHOOK_SECRET": "two"})
        assert a.checksum == b.checksum


class TestParsers:
    @pytest.mark.parametrize("raw", ["true", "TRUE", "1", "yes", "on", True])
    def test_parse_bool_true(self, raw):
        assert parse_bool("FLAG", raw) is True

    @pytest.mark.parametrize("raw", ["false", "0", "no", "off", False])
    def test_parse_bool_false(self, raw):
        assert parse_bool("FLAG", raw) is False

    def test_parse_positive_int_rejects_bool(self):
        with pytest.raises(ValueError):
            parse_positive_int("N", True)

    def test_parse_positive_int(self):
        assert parse_positive_int("N", " 12 ") == 12
