from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from errors import ConfigurationError

log = logging.getLogger(__name__)

ROOT_DIR = Path(__file__).resolve().parent

DEFAULT_PORT = 3000
DEFAULT_ENVIRONMENT = "development"
DEPLOYED_ENVIRONMENTS = ("production", "staging")

# Only the literal "false" switches a flag off. Unset means enabled.
FLAG_DEFAULTS = {
    "USE_HTTPS": True,
    "USE_AUTH": True,
    "USE_BROWSER_SYNC": True,
}


@dataclass(frozen=True)
class RuntimeConfig:
    environment_name: str = DEFAULT_ENVIRONMENT
    force_https: bool = True
    require_auth: bool = True
    live_reload_enabled: bool = True
    username: Optional[str] = None
    password: Optional[str] = None
    requested_port: int = DEFAULT_PORT

    @property
    def is_deployed(self) -> bool:
        return self.environment_name in DEPLOYED_ENVIRONMENTS


def parse_flag(value: Optional[str], default: bool = True) -> bool:
    if value is None:
        return default
    return value.strip().lower() != "false"


def parse_port(value: Optional[str]) -> int:
    if value is None or not value.strip():
        return DEFAULT_PORT
    try:
        port = int(value)
    except ValueError:
        raise ConfigurationError(f"PORT must be an integer, got {value!r}") from None
    if port <= 0:
        raise ConfigurationError(f"PORT must be positive, got {port}")
    return port


def resolve_config(environ: Optional[Mapping[str, str]] = None) -> RuntimeConfig:
    """Build the process configuration from environment variables.

    Reads ``os.environ`` unless a mapping is given. ``load_environment`` is
    expected to have run first so values from ``.env`` are visible.
    """
    env = os.environ if environ is None else environ

    name = (env.get("NODE_ENV") or DEFAULT_ENVIRONMENT).strip().lower()

    return RuntimeConfig(
        environment_name=name,
        force_https=parse_flag(env.get("USE_HTTPS"), FLAG_DEFAULTS["USE_HTTPS"]),
        require_auth=parse_flag(env.get("USE_AUTH"), FLAG_DEFAULTS["USE_AUTH"]),
        live_reload_enabled=parse_flag(env.get("USE_BROWSER_SYNC"), FLAG_DEFAULTS["USE_BROWSER_SYNC"]),
        username=env.get("USERNAME") or None,
        password=env.get("PASSWORD") or None,
        requested_port=parse_port(env.get("PORT")),
    )


def load_environment(root: Path | str = ROOT_DIR) -> bool:
    """Load ``.env`` from the project root into the process environment."""
    return load_dotenv(Path(root) / ".env")


def ensure_env_file(root: Path | str = ROOT_DIR) -> bool:
    """Create ``.env`` from ``lib/template.env`` if it does not exist yet.

    Returns True when a file was written.
    """
    root = Path(root)
    env_file = root / ".env"
    template = root / "lib" / "template.env"
    if env_file.exists():
        return False
    if not template.exists():
        log.warning("No .env and no template at %s", template)
        return False
    shutil.copyfile(template, env_file)
    log.info("Created %s from %s", env_file, template)
    return True
