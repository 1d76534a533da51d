"""Unit tests for application settings configuration."""

from pathlib import Path

from client_tracker.config import Settings


def test_settings_uses_project_env_file_independent_of_cwd():
    """Settings should always include the project-level .env as an env source."""
    env_files = Settings.model_config.get("env_file")
    assert env_files is not None

    normalized = {str(Path(item)) for item in env_files}
    expected_project_env = str(Path(__file__).resolve().parents[2] / ".env")

    assert expected_project_env in normalized
    assert str(Path(".env")) in normalized


def test_sync_settings_can_be_set_from_environment(monkeypatch):
    monkeypatch.setenv("API_BASE_URL", "https://tracker.example.com/api/v1")
    monkeypatch.setenv("CONNECTIVITY_CHECK_INTERVAL", "2.5")
    monkeypatch.setenv("OFFLINE_STORAGE_DIR", "/tmp/tracker-offline")

    settings = Settings()

    assert settings.api_base_url == "https://tracker.example.com/api/v1"
    assert settings.connectivity_check_interval == 2.5
    assert settings.offline_storage_dir == "/tmp/tracker-offline"


def test_api_settings_ignore_a_settings_json_in_the_working_directory(tmp_path, monkeypatch):
    """Only the environment and .env files configure the API client."""
    (tmp_path / "data").mkdir()
    (tmp_path / "data" / "settings.json").write_text(
        '{"api_base_url": "http://elsewhere.invalid", "api_token": "stale"}', "utf-8"
    )
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("API_BASE_URL", "https://tracker.example.com/api/v1")
    monkeypatch.delenv("API_TOKEN", raising=False)

    settings = Settings(_env_file=None)

    assert settings.api_base_url == "https://tracker.example.com/api/v1"
    assert settings.api_token == ""
