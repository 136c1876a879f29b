from pathlib import Path

import pytest
from pydantic import ValidationError

from app.utils.config import Settings
from domains.auto_register.watcher import main


REQUIRED = ("CONTAINER_WATCH_PATH", "HOST_WATCH_PATH", "NAUTMANAGER_API_URL")


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in REQUIRED + ("DEBOUNCE_MS", "API_TIMEOUT_SECONDS", "LOG_LEVEL", "INITIAL_SCAN"):
        monkeypatch.delenv(name, raising=False)
    # Keep a stray ./.env from leaking into the tests.
    monkeypatch.chdir(tmp_path)
    return monkeypatch


def test_settings_read_from_environment(clean_env):
    clean_env.setenv("CONTAINER_WATCH_PATH", "/watched")
    clean_env.setenv("HOST_WATCH_PATH", "/home/me/projects/")
    clean_env.setenv("NAUTMANAGER_API_URL", "http://server:3001/api/")
    clean_env.setenv("DEBOUNCE_MS", "2500")

    settings = Settings()

    assert settings.debounce_seconds == 2.5
    assert settings.nautmanager_api_url == "http://server:3001/api"
    assert settings.api_timeout_seconds == 10.0
    assert settings.container_watch_path == Path("/watched")
    assert settings.host_watch_path == "/home/me/projects/"


def test_defaults(clean_env):
    settings = Settings(
        container_watch_path="/watched",
        host_watch_path="/host",
        nautmanager_api_url="http://api",
    )

    assert settings.debounce_ms == 5000
    assert settings.initial_scan is True
    assert settings.log_level == "INFO"


@pytest.mark.parametrize("missing", REQUIRED)
def test_missing_required_setting_is_an_error(clean_env, missing):
    values = {
        "CONTAINER_WATCH_PATH": "/watched",
        "HOST_WATCH_PATH": "/host",
        "NAUTMANAGER_API_URL": "http://api",
    }
    for name, value in values.items():
        if name != missing:
            clean_env.setenv(name, value)

    with pytest.raises(ValidationError):
        Settings()


def test_env_file_is_read(clean_env, tmp_path):
    env_file = tmp_path / "watcher.env"
    env_file.write_text(
        "CONTAINER_WATCH_PATH=/watched\nHOST_WATCH_PATH=/host\nNAUTMANAGER_API_URL=http://api\n"
    )

    settings = Settings(_env_file=env_file)

    assert settings.host_watch_path == "/host"


@pytest.mark.parametrize("blank", REQUIRED)
def test_blank_required_setting_is_an_error(clean_env, blank):
    values = {
        "CONTAINER_WATCH_PATH": "/watched",
        "HOST_WATCH_PATH": "/host",
        "NAUTMANAGER_API_URL": "http://api",
    }
    values[blank] = "  "
    for name, value in values.items():
        clean_env.setenv(name, value)

    with pytest.raises(ValidationError):
        Settings()


def test_empty_container_path_in_env_file_is_an_error(clean_env, tmp_path):
    env_file = tmp_path / "watcher.env"
    env_file.write_text("CONTAINER_WATCH_PATH=\nHOST_WATCH_PATH=/host\nNAUTMANAGER_API_URL=http://api\n")

    with pytest.raises(ValidationError):
        Settings(_env_file=env_file)


def test_log_level_is_normalised(clean_env):
    settings = Settings(
        container_watch_path="/watched",
        host_watch_path="/host",
        nautmanager_api_url="http://api",
        log_level="debug",
    )

    assert settings.log_level == "DEBUG"


def test_unknown_log_level_is_an_error(clean_env):
    with pytest.raises(ValidationError):
        Settings(
            container_watch_path="/watched",
            host_watch_path="/host",
            nautmanager_api_url="http://api",
            log_level="VERBOSE",
        )


def test_main_exits_when_configuration_missing(clean_env, tmp_path):
    clean_env.setattr("domains.auto_register.watcher.configure_logging", lambda level="INFO": None)
    empty_env = tmp_path / "empty.env"
    empty_env.write_text("")

    assert main(["--env-file", str(empty_env)]) == 1


def test_main_exits_when_watch_root_missing(clean_env, tmp_path):
    clean_env.setattr("domains.auto_register.watcher.configure_logging", lambda level="INFO": None)
    env_file = tmp_path / "watcher.env"
    env_file.write_text(
        f"CONTAINER_WATCH_PATH={tmp_path / 'absent'}\n"
        "HOST_WATCH_PATH=/host\n"
        "NAUTMANAGER_API_URL=http://api\n"
    )

    assert main(["--env-file", str(env_file)]) == 1


def test_main_exits_on_unknown_log_level(clean_env, tmp_path):
    clean_env.setattr("domains.auto_register.watcher.configure_logging", lambda level="INFO": None)
    (tmp_path / "root").mkdir()
    env_file = tmp_path / "watcher.env"
    env_file.write_text(
        f"CONTAINER_WATCH_PATH={tmp_path / 'root'}\n"
        "HOST_WATCH_PATH=/host\n"
        "NAUTMANAGER_API_URL=http://api\n"
        "LOG_LEVEL=VERBOSE\n"
    )

    assert main(["--env-file", str(env_file)]) == 1
