"""Runtime configuration.

Merges CLI args, environment variables, .env files and the YAML config file
into one validated ``Config``.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    GREADER_URL: Service API base URL (required)
    GREADER_USERNAME: Login name (required)
    GREADER_PASSWORD: Password, or a $env:/file: reference (required)
    GREADER_INSECURE: Skip SSL verification (optional, default: false)
    GREADER_DEBUG: Enable debug logging (optional, default: false)
    GREADER_DB_PATH: SQLite database path (optional)
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

from .config_loader import state_file
from .config_schema import FileConfig

logger = logging.getLogger(__name__)

ENV_PREFIX = "$env:"
FILE_PREFIX = "file:"


@dataclass
class Config:
    server_url: str
    username: str
    password: str
    insecure: bool = False
    debug: bool = False
    timeout: float = 20.0
    page_size: int = 1000
    worker_interval: float = 5.0
    worker_batch_size: int = 10
    db_path: str = field(
        default_factory=lambda: str(state_file("greader_sync.sqlite"))
    )
    log_file: str = field(
        default_factory=lambda: str(state_file("greader_sync.log"))
    )
    log_level: str = "INFO"


def resolve_password(raw: str, base_dir: Path | None = None) -> str:
    """Resolve a password reference.

    * ``$env:NAME`` -- value of env var NAME.
    * ``file:PATH`` -- stripped content of PATH. Env vars in PATH are
      expanded and ``./`` is resolved against *base_dir*.
    * anything else -- returned unchanged.

    Raises:
        ValueError: If the env var is unset/empty, or the file is missing
            or empty.
    """
    if raw.startswith(ENV_PREFIX):
        name = raw[len(ENV_PREFIX) :]
        value = os.getenv(name, "")
        if not value:
            raise ValueError(f"Password env var '{name}' is unset")
        return value

    if raw.startswith(FILE_PREFIX):
        location = os.path.expandvars(raw[len(FILE_PREFIX) :])
        path = Path(location).expanduser()
        if location.startswith("./") and base_dir is not None:
            path = base_dir / location[2:]
        if not path.is_file():
            raise ValueError(f"Password file not found: {path}")
        value = path.read_text(encoding="utf-8").strip()
        if not value:
            raise ValueError(f"Password file is empty: {path}")
        return value

    return raw


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If URL format is invalid or credentials are empty.
    """
    config.server_url = config.server_url.strip()

    if not config.server_url.startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid server URL '{config.server_url}': must start with http:// or https://"
        )

    parsed = urlparse(config.server_url)
    if not parsed.hostname:
        raise ValueError(
            f"Invalid server URL '{config.server_url}': URL must include a hostname"
        )

    config.server_url = config.server_url.removesuffix("/")

    if not config.username.strip():
        raise ValueError(
            "Username cannot be empty. Set GREADER_USERNAME or server.username."
        )

    if not config.password.strip():
        raise ValueError(
            "Password cannot be empty. Set GREADER_PASSWORD or server.password."
        )

    if config.insecure:
        logger.warning(
            "SSL verification disabled (insecure=True). Use only for development."
        )


def _env_bool(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def load_config(
    url: str | None = None,
    username: str | None = None,
    password: str | None = None,
    insecure: bool = False,
    debug: bool = False,
    file_config: FileConfig | None = None,
    config_dir: Path | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > file_config > built-in default

    The caller is responsible for calling ``load_dotenv()`` first.

    Args:
        url: Override server URL.
        username: Override username.
        password: Override password (may be a $env:/file: reference).
        insecure: Skip SSL verification (CLI flag).
        debug: Enable debug logging (CLI flag).
        file_config: Parsed YAML config, used as fallback.
        config_dir: Directory of the config file, for ``file:./...``
            password references.

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If required settings are missing after checking all
            sources, or a password reference cannot be resolved.
    """
    fc = file_config or FileConfig()

    server_url = url or os.getenv("GREADER_URL") or fc.server.url
    if not server_url:
        raise ValueError(
            "Server URL not found. Set GREADER_URL, pass --url, "
            "or add server.url to the config file."
        )

    login = username or os.getenv("GREADER_USERNAME") or fc.server.username
    if not login:
        raise ValueError(
            "Username not found. Set GREADER_USERNAME, pass --username, "
            "or add server.username to the config file."
        )

    raw_password = (
        password or os.getenv("GREADER_PASSWORD") or fc.server.password
    )
    if not raw_password:
        raise ValueError(
            "Password not found. Set GREADER_PASSWORD, pass --password, "
            "or add server.password to the config file."
        )
    resolved_password = resolve_password(raw_password, config_dir)

    if insecure:
        final_insecure = True
    else:
        env_insecure = _env_bool("GREADER_INSECURE")
        final_insecure = (
            env_insecure if env_insecure is not None else fc.server.insecure
        )

    if debug:
        final_debug = True
    else:
        final_debug = bool(_env_bool("GREADER_DEBUG"))

    config = Config(
        server_url=server_url,
        username=login.strip(),
        password=resolved_password,
        insecure=final_insecure,
        debug=final_debug,
        timeout=fc.server.timeout,
        page_size=fc.sync.page_size,
        worker_interval=fc.worker.interval,
        worker_batch_size=fc.worker.batch_size,
        log_level=fc.logging.level,
    )

    db_path = os.getenv("GREADER_DB_PATH") or fc.sync.db_path
    if db_path:
        config.db_path = os.path.expanduser(db_path)
    if fc.logging.file:
        config.log_file = os.path.expanduser(fc.logging.file)

    validate_config(config)

    return config
