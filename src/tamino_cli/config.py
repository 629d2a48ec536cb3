"""
CLI Configuration

Connection profiles for the tamino command, read from YAML.
"""

import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

PASSWORD_ENV = "TAMINO_PASSWORD"

# Searched in order when no --config is given
DEFAULT_CONFIG_PATHS = [
    Path.home() / ".tamino" / "config.yaml",
    Path.home() / ".tamino" / "config.yml",
    Path("/etc/tamino/config.yaml"),
    Path("tamino_config.yaml"),
]


@dataclass
class ServerConfig:
    """Where the Tamino web server lives."""
    host: str
    database: str
    port: int = 80
    scheme: str = "http"
    timeout: Optional[float] = None


@dataclass
class CredentialsConfig:
    """Basic authentication user."""
    username: Optional[str] = None
    password: Optional[str] = None


@dataclass
class OptionsConfig:
    """Request defaults applied to every command."""
    collection: str = ""
    encoding: str = "UTF-8"
    http_method: str = "GET"
    media_type: str = ""
    isolation_level: str = ""
    lock_mode: str = ""
    lock_wait: str = ""


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    return data.get(name) or {}


def _text(data: Dict[str, Any], key: str, default: str = "") -> str:
    value = data.get(key)
    return default if value is None else str(value)


@dataclass
class CLIConfig:
    """One resolved profile of the configuration file."""
    server: ServerConfig
    credentials: CredentialsConfig = field(default_factory=CredentialsConfig)
    options: OptionsConfig = field(default_factory=OptionsConfig)
    profile: str = "default"

    @classmethod
    def from_dict(cls, data: dict, profile: str = "default") -> "CLIConfig":
        """
        Build a profile from parsed YAML.

        A profile listed under "profiles" replaces the top-level
        sections; an unknown profile falls back to them.

        Args:
            data: Configuration mapping
            profile: Profile name

        Returns:
            CLIConfig

        Raises:
            ValueError: If host or database is missing
        """
        profiles = data.get("profiles") or {}
        selected = profiles.get(profile, data)

        server_data = _section(selected, "server")
        for required in ("host", "database"):
            if not server_data.get(required):
                raise ValueError(f"server.{required} is required in configuration")

        credentials_data = _section(selected, "credentials")
        options_data = _section(selected, "options")

        return cls(
            server=ServerConfig(
                host=str(server_data["host"]),
                database=str(server_data["database"]),
                port=int(server_data.get("port", 80)),
                scheme=_text(server_data, "scheme", "http"),
                timeout=server_data.get("timeout"),
            ),
            credentials=CredentialsConfig(
                username=credentials_data.get("username"),
                password=credentials_data.get("password"),
            ),
            options=OptionsConfig(
                collection=_text(options_data, "collection"),
                encoding=_text(options_data, "encoding", "UTF-8"),
                http_method=_text(options_data, "http_method", "GET").upper(),
                media_type=_text(options_data, "media_type"),
                isolation_level=_text(options_data, "isolation_level"),
                lock_mode=_text(options_data, "lock_mode"),
                lock_wait=_text(options_data, "lock_wait"),
            ),
            profile=profile,
        )

    @classmethod
    def from_file(cls, path: Path, profile: str = "default") -> "CLIConfig":
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data or {}, profile)

    @classmethod
    def find_and_load(cls, profile: str = "default") -> Optional["CLIConfig"]:
        """First file of DEFAULT_CONFIG_PATHS that exists, or None."""
        for path in DEFAULT_CONFIG_PATHS:
            if path.exists():
                return cls.from_file(path, profile)
        return None

    def to_settings(self) -> Dict[str, Any]:
        """Flat settings keyed like ClientConfig fields."""
        settings = {}
        for section in (self.server, self.credentials, self.options):
            settings.update(asdict(section))
        return settings


def password_from_env() -> Optional[str]:
    return os.environ.get(PASSWORD_ENV)


def create_sample_config() -> str:
    """Sample YAML written by `tamino config init`."""
    return f"""# Tamino Client Configuration
# Copy to ~/.tamino/config.yaml

server:
  host: localhost
  port: 80
  database: welcome_4_4_1
  # timeout: 30

credentials:
  username: tamino
  # password: secret  # {PASSWORD_ENV} is used if not set

options:
  collection: people
  encoding: UTF-8
  http_method: POST
  # isolation_level: serializable
  # lock_mode: protected
  # lock_wait: "yes"

# Select with --profile NAME
profiles:
  production:
    server:
      host: tamino.example.com
      port: 80
      database: mydb
    credentials:
      username: app

  test:
    server:
      host: tamino-test.example.com
      port: 8080
      database: mydb_test
"""
