import json

import pytest
from pydantic import ValidationError

from app.types.alert_contract import Destination, MonitorConfig, ThresholdRule, TimeRemaining
from config import load_monitor_config


def _config_dict(**overrides):
    data = {
        "router": {"url": "http://192.168.178.1/", "device_name": "Leos-11"},
        "destinations": [
            {
                "number": "+441234567890",
                "is_admin": True,
                "thresholds": [{"minutes": 30, "message": "30 left"}, {"minutes": 0, "message": "done"}],
            }
        ],
    }
    data.update(overrides)
    return data


def test_valid_config():
    cfg = MonitorConfig.model_validate(_config_dict())
    assert cfg.router.url == "http://192.168.178.1"
    assert cfg.router.usage_page == "kidLis"
    assert [d.number for d in cfg.admins] == ["+441234567890"]


def test_duplicate_threshold_minutes_rejected():
    with pytest.raises(ValidationError, match="duplicate threshold"):
        Destination(
            number="+441234567890",
            thresholds=[ThresholdRule(minutes=15, message="a"), ThresholdRule(minutes=15, message="b")],
        )


def test_negative_minutes_rejected():
    with pytest.raises(ValidationError):
        ThresholdRule(minutes=-1, message="nope")


def test_number_must_be_e164():
    with pytest.raises(ValidationError, match="E.164"):
        Destination(number="07700 900123")


def test_at_least_one_admin_required():
    data = _config_dict()
    data["destinations"][0]["is_admin"] = False
    with pytest.raises(ValidationError, match="admin"):
        MonitorConfig.model_validate(data)


def test_number_listed_twice_rejected():
    data = _config_dict()
    data["destinations"].append(
        {"number": "+441234567890", "thresholds": [{"minutes": 30, "message": "again"}]}
    )
    with pytest.raises(ValidationError, match="more than once"):
        MonitorConfig.model_validate(data)


def test_time_remaining_is_immutable():
    state = TimeRemaining.exhausted()
    with pytest.raises(ValidationError):
        state.remaining_minutes = 10


def test_load_monitor_config(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(_config_dict()), encoding="utf-8")
    assert load_monitor_config(path).router.device_name == "Leos-11"

    with pytest.raises(FileNotFoundError):
        load_monitor_config(tmp_path / "missing.json")
