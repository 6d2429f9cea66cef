"""
Connection and extraction settings.

Settings come from explicit arguments, a .env file (python-dotenv) or a YAML
options file. Validation happens here, before any connection is attempted.
"""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import ArgumentError

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONNECT_TIMEOUT_SECONDS = 10
DEFAULT_QUERY_TIMEOUT_SECONDS = 30
DEFAULT_MAX_WORKERS = 4

BOOLEAN_SAMPLE_LIMIT = 10
BOOLEAN_MAX_DISTINCT = 3
UUID_SAMPLE_LIMIT = 100
MIN_VALID_UUIDS = 10

CLASSIFIER_CONFIDENCE_THRESHOLD = 0.7

ENGINE_ALIASES = {
    "postgres": "postgresql",
    "postgresql": "postgresql",
    "pgsql": "postgresql",
    "mysql": "mysql",
    "mariadb": "mysql",
    "mssql": "mssql",
    "sqlserver": "mssql",
    "sql_server": "mssql",
    "sqlite": "sqlite",
    "sqlite3": "sqlite",
    "oracle": "oracle",
}


def canonical_engine_name(name: Optional[str]) -> str:
    """Normalize an engine kind ("postgres", "SqlServer", "mariadb") to its dialect name."""
    key = (name or "").strip().lower().replace("-", "_").replace(" ", "_")
    return ENGINE_ALIASES.get(key, key)


def load_env() -> None:
    """Load .env from the working directory. Existing environment values win."""
    env_path = Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(env_path, override=False)
        logger.debug(f"Loaded environment from {env_path}")


def fallback_namespace(dialect_default: str) -> str:
    """Namespace used when neither a filter nor the server provides one."""
    return os.environ.get("SCHEMA", "").strip() or dialect_default


@dataclass
class ConnectionDescriptor:
    """Where to connect. Either ``url`` or the individual parts must be given."""

    engine: str = ""
    url: Optional[str] = None
    host: Optional[str] = None
    port: Optional[int] = None
    database: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    driver: Optional[str] = None
    query: Dict[str, str] = field(default_factory=dict)
    connect_timeout: int = DEFAULT_CONNECT_TIMEOUT_SECONDS

    @classmethod
    def from_url(cls, url: str, engine: Optional[str] = None) -> "ConnectionDescriptor":
        if not url or not url.strip():
            raise ConfigurationError("Missing connection parameter: url")
        try:
            parsed = make_url(url)
        except ArgumentError as e:
            raise ConfigurationError(f"Invalid database URL: {e}") from e
        return cls(engine=canonical_engine_name(engine or parsed.get_backend_name()), url=url)

    @property
    def engine_name(self) -> str:
        if self.engine:
            return canonical_engine_name(self.engine)
        if self.url:
            try:
                return canonical_engine_name(make_url(self.url).get_backend_name())
            except ArgumentError:
                return ""
        return ""

    def validate(self) -> None:
        """Raise ConfigurationError naming the first missing parameter."""
        if not self.engine_name:
            raise ConfigurationError("Missing connection parameter: engine")
        if self.url:
            try:
                make_url(self.url)
            except ArgumentError as e:
                raise ConfigurationError(f"Invalid database URL: {e}") from e
            return
        if self.engine_name == "sqlite":
            required = ("database",)
        else:
            required = ("host", "database", "username")
        for name in required:
            value = getattr(self, name)
            if value is None or not str(value).strip():
                raise ConfigurationError(f"Missing connection parameter: {name}")

    def to_url(self, default_driver: Optional[str] = None) -> URL:
        if self.url:
            return make_url(self.url)
        drivername = self.driver or default_driver or self.engine_name
        return URL.create(
            drivername,
            username=self.username,
            password=self.password,
            host=self.host,
            port=int(self.port) if self.port else None,
            database=self.database,
            query=dict(self.query),
        )

    def safe_repr(self) -> str:
        """Connection target for log messages, password hidden."""
        try:
            return self.to_url().render_as_string(hide_password=True)
        except Exception:
            return self.engine_name or "<unknown>"


def connection_from_env(prefix: str = "DATABASE") -> ConnectionDescriptor:
    """
    Build a descriptor from the environment.

    ``{prefix}_URL`` wins when set; otherwise ``{prefix}_ENGINE``, ``_HOST``,
    ``_PORT``, ``_NAME``, ``_USER``, ``_PASSWORD`` and ``_DRIVER`` are used.
    """
    url = os.environ.get(f"{prefix}_URL", "").strip()
    engine = os.environ.get(f"{prefix}_ENGINE", "").strip()
    if url:
        return ConnectionDescriptor.from_url(url, engine=engine or None)
    port = os.environ.get(f"{prefix}_PORT", "").strip()
    return ConnectionDescriptor(
        engine=canonical_engine_name(engine),
        host=os.environ.get(f"{prefix}_HOST") or None,
        port=int(port) if port.isdigit() else None,
        database=os.environ.get(f"{prefix}_NAME") or None,
        username=os.environ.get(f"{prefix}_USER") or None,
        password=os.environ.get(f"{prefix}_PASSWORD") or None,
        driver=os.environ.get(f"{prefix}_DRIVER") or None,
    )


@dataclass
class ExtractionOptions:
    """What to extract and how hard to look."""

    schema_filter: Optional[str] = None
    enable_type_inference: bool = True
    enable_data_sampling: bool = True
    include_views: bool = True
    include_stored_procedures: bool = True
    include_user_defined_functions: bool = True
    include_relationships: bool = True
    enable_legacy_relationship_inference: bool = False
    max_workers: int = DEFAULT_MAX_WORKERS
    query_timeout_seconds: Optional[int] = DEFAULT_QUERY_TIMEOUT_SECONDS
    deadline_seconds: Optional[float] = None

    def validate(self) -> None:
        if self.max_workers < 1:
            raise ConfigurationError(f"max_workers must be at least 1, got {self.max_workers}")
        if self.query_timeout_seconds is not None and self.query_timeout_seconds <= 0:
            raise ConfigurationError("query_timeout_seconds must be positive")
        if self.deadline_seconds is not None and self.deadline_seconds <= 0:
            raise ConfigurationError("deadline_seconds must be positive")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExtractionOptions":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"Unknown extraction option(s): {', '.join(unknown)}")
        return cls(**data)


def load_options(path: str) -> ExtractionOptions:
    """Read ExtractionOptions from a YAML mapping."""
    p = Path(path)
    if not p.exists():
        raise ConfigurationError(f"Options file not found: {path}")
    with open(p, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Options file must contain a mapping: {path}")
    return ExtractionOptions.from_dict(data)
