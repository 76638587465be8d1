from sqlalchemy import func, select

from app.models.system_config import DEFAULT_FEATURE_FLAGS, SystemConfig
from app.services.system_config import (
    config_as_dict,
    get_system_config,
    update_system_config,
)


def test_defaults_created_on_first_read(db):
    config = get_system_config(db)
    again = get_system_config(db)

    assert config.id == again.id
    assert db.scalar(select(func.count()).select_from(SystemConfig)) == 1
    assert config_as_dict(config) == {
        "inr_thresholds": {"critical_low": 1.5, "critical_high": 4.5},
        "session_timeout_minutes": 30,
        "rate_limit": {"max_requests": 100, "window_minutes": 15},
        "feature_flags": DEFAULT_FEATURE_FLAGS,
        "is_active": True,
    }


def test_partial_update_merges_nested_keys(db):
    before, config = update_system_config(
        db,
        {
            "inr_thresholds": {"critical_high": 5.0},
            "feature_flags": {"maintenance_mode": True},
        },
    )

    assert before["inr_thresholds"]["critical_high"] == 4.5
    current = config_as_dict(config)
    assert current["inr_thresholds"] == {"critical_low": 1.5, "critical_high": 5.0}
    assert current["feature_flags"] == {
        "registration_enabled": True,
        "maintenance_mode": True,
        "beta_features": False,
    }
    assert current["rate_limit"] == {"max_requests": 100, "window_minutes": 15}


def test_none_values_do_not_clear_settings(db):
    _, config = update_system_config(
        db,
        {
            "session_timeout_minutes": None,
            "rate_limit": {"max_requests": None, "window_minutes": 30},
        },
    )

    assert config.session_timeout_minutes == 30
    assert config.rate_limit_max_requests == 100
    assert config.rate_limit_window_minutes == 30


def test_new_feature_flag_added(db):
    _, config = update_system_config(db, {"feature_flags": {"sms_alerts": True}})
    assert config.feature_flags["sms_alerts"] is True
    assert config.feature_flags["registration_enabled"] is True
