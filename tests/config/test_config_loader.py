"""
Tests for dairy_config -- YAML loading, validation and overrides.
"""

from datetime import date
from decimal import Decimal

import pytest

from dairy_config import DEFAULTS_PATH, get_active_config
from dairy_config.loader import load_config, parse_config
from dairy_engines.schedule import WEEKDAY_NAMES, weekday_number


def _write(tmp_path, text: str):
    path = tmp_path / "dairy.yaml"
    path.write_text(text)
    return path


# =============================================================================
# Packaged defaults
# =============================================================================


class TestDefaults:
    def test_defaults_load(self):
        config = load_config(DEFAULTS_PATH)
        assert config.timezone == "Asia/Kolkata"
        assert config.scheduling.alternate_epoch == date(2024, 1, 1)
        assert config.scheduling.weekly_delivery_day == 6
        assert config.billing.invoice_prefix == "INV"
        assert config.billing.sequence_width == 3
        assert config.billing.due_days == 15
        assert config.cattle.dry_off_window_days == 60
        assert config.notifications.large_payment_threshold == Decimal("10000")

    def test_default_jobs_cover_every_task(self):
        config = load_config(DEFAULTS_PATH)
        assert {j.task_type for j in config.jobs} == {
            "deliveries.schedule",
            "deliveries.auto_deliver",
            "billing.monthly_invoices",
            "ledger.sync_invoices",
            "cattle.status_sweep",
            "integrity.check",
        }
        monthly = next(j for j in config.jobs if j.name == "monthly-invoices")
        assert monthly.cron_expression == "0 6 1 * *"
        assert monthly.frequency == "monthly"

    def test_empty_document_uses_dataclass_defaults(self):
        config = parse_config({})
        assert config.jobs == ()
        assert config.database.url == "sqlite:///dairy.db"


# =============================================================================
# Validation
# =============================================================================


class TestValidation:
    def test_unknown_timezone(self):
        with pytest.raises(ValueError, match="Unknown timezone"):
            parse_config({"timezone": "Mars/Olympus"})

    def test_weekday_by_name_or_number(self):
        assert parse_config({"scheduling": {"weekly_delivery_day": "Monday"}}).scheduling.weekly_delivery_day == 0
        assert parse_config({"scheduling": {"weekly_delivery_day": 3}}).scheduling.weekly_delivery_day == 3
        with pytest.raises(ValueError, match="weekly_delivery_day"):
            parse_config({"scheduling": {"weekly_delivery_day": "someday"}})

    @pytest.mark.parametrize("name", WEEKDAY_NAMES)
    def test_weekday_names_match_delivery_policy(self, name):
        parsed = parse_config({"scheduling": {"weekly_delivery_day": f" {name.title()} "}})
        assert parsed.scheduling.weekly_delivery_day == weekday_number(name)

    @pytest.mark.parametrize("value", [True, 7, -1, 2.0])
    def test_weekday_rejects_non_names(self, value):
        with pytest.raises(ValueError, match="weekly_delivery_day"):
            parse_config({"scheduling": {"weekly_delivery_day": value}})

    def test_non_positive_width_rejected(self):
        with pytest.raises(ValueError, match="sequence_width"):
            parse_config({"billing": {"sequence_width": 0}})

    def test_zero_due_days_allowed(self):
        assert parse_config({"billing": {"due_days": 0}}).billing.due_days == 0

    def test_empty_prefix_rejected(self):
        with pytest.raises(ValueError, match="invoice_prefix"):
            parse_config({"billing": {"invoice_prefix": "  "}})

    def test_threshold_must_be_numeric(self):
        with pytest.raises(ValueError, match="large_payment_threshold"):
            parse_config({"notifications": {"large_payment_threshold": "lots"}})

    def test_job_requires_task_type(self):
        with pytest.raises(KeyError):
            parse_config({"jobs": [{"name": "x"}]})

    def test_duplicate_job_names(self):
        jobs = [
            {"name": "x", "task_type": "integrity.check"},
            {"name": "x", "task_type": "cattle.status_sweep"},
        ]
        with pytest.raises(ValueError, match="Duplicate job names"):
            parse_config({"jobs": jobs})


# =============================================================================
# Resolution and overrides
# =============================================================================


class TestGetActiveConfig:
    def test_explicit_path(self, tmp_path):
        path = _write(tmp_path, "timezone: UTC\nbilling:\n  invoice_prefix: MLK\n")
        config = get_active_config(path)
        assert config.timezone == "UTC"
        assert config.billing.invoice_prefix == "MLK"

    def test_env_var_path(self, tmp_path, monkeypatch):
        path = _write(tmp_path, "billing:\n  due_days: 7\n")
        monkeypatch.setenv("DAIRY_CONFIG", str(path))
        assert get_active_config().billing.due_days == 7

    def test_database_url_override(self, monkeypatch):
        monkeypatch.delenv("DAIRY_CONFIG", raising=False)
        monkeypatch.setenv("DAIRY_DATABASE_URL", "postgresql://dairy@localhost/dairy")
        assert get_active_config().database.url == "postgresql://dairy@localhost/dairy"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "nope.yaml")

    def test_load_is_logged(self, captured_logs, monkeypatch):
        monkeypatch.delenv("DAIRY_CONFIG", raising=False)
        get_active_config()
        assert any(r["message"] == "config_loaded" for r in captured_logs())
