import pytest
from pydantic import ValidationError

from playhouse_biz_api.config import Settings


def test_settings_read_pos_prefixed_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("POS_BUSINESS_TIMEZONE", "UTC")
    monkeypatch.setenv("POS_DUAL_RATE_CUTOVER", "7:5")
    settings = Settings()
    assert settings.business_timezone == "UTC"
    assert settings.dual_rate_cutover == "07:05"


def test_settings_reject_bad_cutover_and_timezone() -> None:
    with pytest.raises(ValidationError):
        Settings(dual_rate_cutover="25:00")
    with pytest.raises(ValidationError):
        Settings(dual_rate_cutover="six pm")
    with pytest.raises(ValidationError):
        Settings(business_timezone="Mars/Olympus_Mons")
