import pytest

from ideabox.config import DEFAULT_LOCAL_MODEL, DEFAULT_TEMPERATURE, get_settings


def test_defaults_without_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in (
        "OPENAI_API_KEY",
        "IDEABOX_MANAGED_ENABLED",
        "IDEABOX_MANAGED_STATE",
        "IDEABOX_TEMPERATURE",
        "IDEABOX_LOCAL_MODEL",
        "IDEABOX_ALLOWED_ORIGINS",
    ):
        monkeypatch.delenv(key, raising=False)

    settings = get_settings()

    assert settings.has_managed_credentials is False
    assert settings.managed_enabled is True
    assert settings.managed_state is None
    assert settings.temperature == DEFAULT_TEMPERATURE
    assert settings.local_model == DEFAULT_LOCAL_MODEL
    assert "http://localhost:3000" in settings.allowed_origins


def test_reads_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "test-openai")
    monkeypatch.setenv("IDEABOX_MANAGED_ENABLED", "false")
    monkeypatch.setenv("IDEABOX_MANAGED_STATE", " Initializing ")
    monkeypatch.setenv("IDEABOX_TEMPERATURE", "0.7")
    monkeypatch.setenv("IDEABOX_FIELD_DELAY_SECONDS", "0")
    monkeypatch.setenv("IDEABOX_ALLOWED_ORIGINS", "https://a.example, https://b.example")
    monkeypatch.setenv("IDEABOX_LOG_LEVEL", "debug")

    settings = get_settings()

    assert settings.has_managed_credentials is True
    assert settings.managed_enabled is False
    assert settings.managed_state == "initializing"
    assert settings.temperature == 0.7
    assert settings.field_delay_seconds == 0.0
    assert settings.allowed_origins == ["https://a.example", "https://b.example"]
    assert settings.log_level == "DEBUG"


@pytest.mark.parametrize("raw", ["warm", "-1"])
def test_invalid_temperature_falls_back(monkeypatch: pytest.MonkeyPatch, raw: str) -> None:
    monkeypatch.setenv("IDEABOX_TEMPERATURE", raw)

    assert get_settings().temperature == DEFAULT_TEMPERATURE


def test_settings_are_cached(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("IDEABOX_LOCAL_MODEL", "first")
    first = get_settings()
    monkeypatch.setenv("IDEABOX_LOCAL_MODEL", "second")

    assert get_settings() is first
    get_settings.cache_clear()
    assert get_settings().local_model == "second"
