"""Tests for greader_sync.config: precedence, validation and password references.

YAML discovery lives in test_config_loader.py; this module only covers
how the sources are merged into a ``Config``.
"""

import pytest

from greader_sync.config import (
    Config,
    load_config,
    resolve_password,
    validate_config,
)
from greader_sync.config_schema import build_config

URL = "https://reader.example.com/api/greader.php"

# -------------------------------------------------------------------------
# validate_config()
# -------------------------------------------------------------------------


class TestValidateConfig:
    def test_valid_config_strips_trailing_slash(self):
        config = Config(server_url=f" {URL}/ ", username="u", password="p")
        validate_config(config)
        assert config.server_url == URL

    def test_invalid_scheme(self):
        config = Config(server_url="ftp://example.com", username="u", password="p")
        with pytest.raises(ValueError, match="must start with http"):
            validate_config(config)

    def test_missing_hostname(self):
        config = Config(server_url="https://", username="u", password="p")
        with pytest.raises(ValueError, match="hostname"):
            validate_config(config)

    def test_empty_username(self):
        config = Config(server_url=URL, username="  ", password="p")
        with pytest.raises(ValueError, match="Username cannot be empty"):
            validate_config(config)

    def test_empty_password(self):
        config = Config(server_url=URL, username="u", password=" ")
        with pytest.raises(ValueError, match="Password cannot be empty"):
            validate_config(config)

    def test_insecure_logs_warning(self, caplog):
        config = Config(server_url=URL, username="u", password="p", insecure=True)
        validate_config(config)
        assert "SSL verification disabled" in caplog.text


# -------------------------------------------------------------------------
# resolve_password()
# -------------------------------------------------------------------------


class TestResolvePassword:
    def test_literal(self):
        assert resolve_password("hunter2") == "hunter2"

    def test_env_reference(self, monkeypatch):
        monkeypatch.setenv("MY_READER_PW", "from-env")
        assert resolve_password("$env:MY_READER_PW") == "from-env"

    def test_env_reference_unset(self, monkeypatch):
        monkeypatch.delenv("MY_READER_PW", raising=False)
        with pytest.raises(ValueError, match="MY_READER_PW"):
            resolve_password("$env:MY_READER_PW")

    def test_file_reference_is_stripped(self, tmp_path):
        secret = tmp_path / "pw.txt"
        secret.write_text("  from-file\n")
        assert resolve_password(f"file:{secret}") == "from-file"

    def test_file_reference_relative_to_base_dir(self, tmp_path):
        (tmp_path / "pw.txt").write_text("relative")
        assert resolve_password("file:./pw.txt", tmp_path) == "relative"

    def test_file_reference_expands_env(self, tmp_path, monkeypatch):
        (tmp_path / "pw.txt").write_text("expanded")
        monkeypatch.setenv("SECRETS_DIR", str(tmp_path))
        assert resolve_password("file:$SECRETS_DIR/pw.txt") == "expanded"

    def test_file_reference_missing(self, tmp_path):
        with pytest.raises(ValueError, match="not found"):
            resolve_password(f"file:{tmp_path / 'nope.txt'}")

    def test_file_reference_empty(self, tmp_path):
        secret = tmp_path / "pw.txt"
        secret.write_text("\n")
        with pytest.raises(ValueError, match="empty"):
            resolve_password(f"file:{secret}")


# -------------------------------------------------------------------------
# load_config()
# -------------------------------------------------------------------------


class TestLoadConfig:
    def test_env_vars(self, monkeypatch):
        monkeypatch.setenv("GREADER_URL", URL)
        monkeypatch.setenv("GREADER_USERNAME", "env-user")
        monkeypatch.setenv("GREADER_PASSWORD", "env-pass")

        config = load_config()

        assert config.server_url == URL
        assert config.username == "env-user"
        assert config.password == "env-pass"
        assert config.insecure is False
        assert config.debug is False

    def test_cli_overrides_env(self, monkeypatch):
        monkeypatch.setenv("GREADER_URL", "https://env.example.com")
        monkeypatch.setenv("GREADER_USERNAME", "env-user")
        monkeypatch.setenv("GREADER_PASSWORD", "env-pass")

        config = load_config(url=URL, username="cli-user", password="cli-pass")

        assert config.server_url == URL
        assert config.username == "cli-user"
        assert config.password == "cli-pass"

    def test_env_overrides_file(self, monkeypatch):
        monkeypatch.setenv("GREADER_USERNAME", "env-user")
        file_config = build_config(
            {"server": {"url": URL, "username": "file-user", "password": "p"}}
        )

        config = load_config(file_config=file_config)

        assert config.username == "env-user"
        assert config.server_url == URL

    def test_file_sections_applied(self, tmp_path):
        file_config = build_config(
            {
                "server": {
                    "url": URL,
                    "username": "u",
                    "password": "p",
                    "timeout": 5,
                },
                "sync": {"page_size": 200, "db_path": str(tmp_path / "x.db")},
                "worker": {"interval": 2.5, "batch_size": 3},
                "logging": {"level": "WARNING", "file": str(tmp_path / "x.log")},
            }
        )

        config = load_config(file_config=file_config)

        assert config.timeout == 5
        assert config.page_size == 200
        assert config.db_path == str(tmp_path / "x.db")
        assert config.worker_interval == 2.5
        assert config.worker_batch_size == 3
        assert config.log_level == "WARNING"
        assert config.log_file == str(tmp_path / "x.log")

    def test_db_path_env_overrides_file(self, monkeypatch, tmp_path):
        monkeypatch.setenv("GREADER_DB_PATH", str(tmp_path / "env.db"))
        file_config = build_config(
            {
                "server": {"url": URL, "username": "u", "password": "p"},
                "sync": {"db_path": str(tmp_path / "file.db")},
            }
        )

        config = load_config(file_config=file_config)

        assert config.db_path == str(tmp_path / "env.db")

    def test_default_state_paths(self, tmp_path):
        config = load_config(url=URL, username="u", password="p")

        state_dir = tmp_path / "xdg-state" / "greader_sync"
        assert config.db_path == str(state_dir / "greader_sync.sqlite")
        assert config.log_file == str(state_dir / "greader_sync.log")
        assert config.page_size == 1000
        assert config.worker_interval == 5.0
        assert config.worker_batch_size == 10

    def test_password_reference_resolved_against_config_dir(self, tmp_path):
        (tmp_path / "pw").write_text("secret")
        file_config = build_config(
            {"server": {"url": URL, "username": "u", "password": "file:./pw"}}
        )

        config = load_config(file_config=file_config, config_dir=tmp_path)

        assert config.password == "secret"

    @pytest.mark.parametrize(
        "missing, message",
        [
            ("GREADER_URL", "Server URL not found"),
            ("GREADER_USERNAME", "Username not found"),
            ("GREADER_PASSWORD", "Password not found"),
        ],
    )
    def test_missing_required(self, monkeypatch, missing, message):
        values = {
            "GREADER_URL": URL,
            "GREADER_USERNAME": "u",
            "GREADER_PASSWORD": "p",
        }
        for key, value in values.items():
            if key != missing:
                monkeypatch.setenv(key, value)

        with pytest.raises(ValueError, match=message):
            load_config()

    def test_insecure_and_debug_from_env(self, monkeypatch):
        monkeypatch.setenv("GREADER_INSECURE", "yes")
        monkeypatch.setenv("GREADER_DEBUG", "1")

        config = load_config(url=URL, username="u", password="p")

        assert config.insecure is True
        assert config.debug is True

    def test_insecure_env_false_overrides_file(self, monkeypatch):
        monkeypatch.setenv("GREADER_INSECURE", "false")
        file_config = build_config(
            {"server": {"url": URL, "username": "u", "password": "p", "insecure": True}}
        )

        assert load_config(file_config=file_config).insecure is False
