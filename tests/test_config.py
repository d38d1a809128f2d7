from __future__ import annotations

from pathlib import Path

import pytest

from klarity.config import DEFAULT_LINK_BASE_URL, DEFAULT_LINK_TTL_DAYS, load_settings

SETTING_KEYS = (
    "OPENAI_API_KEY",
    "OPENAI_BASE_URL",
    "KLARITY_VISION_MODEL",
    "USE_MOCK",
    "KLARITY_LINK_BASE_URL",
    "KLARITY_LINK_TTL_DAYS",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in SETTING_KEYS:
        monkeypatch.delenv(key, raising=False)


def _write_env(folder: Path, **values: str) -> None:
    lines = [f"{key}={value}" for key, value in values.items()]
    (folder / ".env").write_text("\n".join(lines) + "\n", encoding="utf-8")


def test_defaults_without_env_or_dotenv(tmp_path: Path) -> None:
    settings = load_settings(str(tmp_path))
    assert settings.openai_api_key is None
    assert settings.openai_base_url is None
    assert settings.vision_model == "gpt-4o"
    assert settings.use_mock is False
    assert settings.link_base_url == DEFAULT_LINK_BASE_URL
    assert settings.link_ttl_days == DEFAULT_LINK_TTL_DAYS


def test_environment_wins_over_dotenv(tmp_path: Path, monkeypatch) -> None:
    _write_env(tmp_path, OPENAI_API_KEY="sk-from-file", KLARITY_VISION_MODEL="gpt-4o-mini")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-from-env")

    settings = load_settings(str(tmp_path))
    assert settings.openai_api_key == "sk-from-env"
    assert settings.vision_model == "gpt-4o-mini"


def test_dotenv_is_found_from_a_subdirectory(tmp_path: Path) -> None:
    _write_env(tmp_path, OPENAI_BASE_URL="https://proxy.example/v1")
    nested = tmp_path / "src" / "klarity"
    nested.mkdir(parents=True)
    assert load_settings(str(nested)).openai_base_url == "https://proxy.example/v1"


@pytest.mark.parametrize(
    "raw, expected",
    [("1", True), ("true", True), ("YES", True), ("on", True), ("0", False), ("no", False), ("mock", False)],
)
def test_use_mock_truthy_values(tmp_path: Path, monkeypatch, raw, expected) -> None:
    monkeypatch.setenv("USE_MOCK", raw)
    assert load_settings(str(tmp_path)).use_mock is expected


@pytest.mark.parametrize("raw", ["abc", "0", "-3", "1.5"])
def test_invalid_link_ttl_falls_back_to_default(tmp_path: Path, monkeypatch, raw) -> None:
    monkeypatch.setenv("KLARITY_LINK_TTL_DAYS", raw)
    assert load_settings(str(tmp_path)).link_ttl_days == 15


def test_link_settings_from_dotenv(tmp_path: Path) -> None:
    _write_env(tmp_path, KLARITY_LINK_BASE_URL="https://devis.cabinet.fr/", KLARITY_LINK_TTL_DAYS="30")
    settings = load_settings(str(tmp_path))
    assert settings.link_base_url == "https://devis.cabinet.fr"
    assert settings.link_ttl_days == 30
