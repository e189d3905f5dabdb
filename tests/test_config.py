"""Tests for configuration loading."""

from pathlib import Path

from parcel_tracker.config import DEFAULT_GEMINI_MODEL, AppConfig


def test_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("CLOUDINARY_CLOUD_NAME", "demo")
    monkeypatch.setenv("CLOUDINARY_UPLOAD_PRESET", "parcels")
    monkeypatch.setenv("GEMINI_API_KEY", "")
    monkeypatch.setenv("PUBLIC_API_URL", "https://api.example.com/")
    monkeypatch.setenv("OFFLINE_DB_PATH", str(tmp_path / "queue.db"))
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.delenv("GEMINI_MODEL", raising=False)

    config = AppConfig.from_env()
    assert config.media_enabled
    assert not config.ai_scan_enabled
    assert config.gemini_model == DEFAULT_GEMINI_MODEL
    assert config.public_api_url == "https://api.example.com"
    assert config.offline_db_path == Path(tmp_path / "queue.db")
    assert config.log_level == "DEBUG"


def test_signed_uploads_do_not_need_a_preset():
    config = AppConfig(cloudinary_cloud_name="demo", cloudinary_api_key="k", cloudinary_api_secret="s")
    assert config.media_enabled
    assert not AppConfig(cloudinary_cloud_name="demo").media_enabled
