"""
Digest configuration management.

Loads the department enumeration, keyword list, storage backend and operator
settings from a YAML file, with environment overrides for secrets.
"""

import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from .errors import ConfigurationError

DEFAULT_DEPARTMENTS = ["蔬果", "水产", "肉品冻品", "熟食", "烘焙", "食百", "后勤", "仓库"]
DEFAULT_DEPARTMENT = "后勤"

# Firestore-style documents cap out at 1 MiB; refuse writes well before that.
DEFAULT_HARD_LIMIT_BYTES = 1_048_576
DEFAULT_SOFT_LIMIT_BYTES = 900_000


class JsonBinSettings(BaseModel):
    base_url: str = "https://api.jsonbin.io/v3/b"
    bin_id: str | None = None
    api_key: str | None = None
    timeout: float = 15.0


class PostgresSettings(BaseModel):
    host: str = "localhost"
    port: int = 5432
    database: str = "reports"
    user: str = "digest"
    password: str | None = None
    table: str = "daily_report"


class StorageSettings(BaseModel):
    """
    Attributes:
        mode: "snapshot" (one overwritable blob) or "live" (addressable records)
        backend: Concrete backend for the mode
        path: JSON file used by the local_file backend
        soft_limit_bytes: Snapshot writes above this size are refused
        hard_limit_bytes: The backend's own capacity limit
    """

    mode: Literal["snapshot", "live"] = "snapshot"
    backend: Literal["local_file", "jsonbin", "postgres"] = "local_file"
    path: str = "data/reports.json"
    soft_limit_bytes: int = Field(DEFAULT_SOFT_LIMIT_BYTES, gt=0)
    hard_limit_bytes: int = Field(DEFAULT_HARD_LIMIT_BYTES, gt=0)

    @model_validator(mode="after")
    def check_backend_matches_mode(self):
        """Snapshot backends hold one blob; postgres holds one row per record."""
        snapshot_backends = ("local_file", "jsonbin")
        if self.mode == "snapshot" and self.backend not in snapshot_backends:
            raise ValueError(f"backend '{self.backend}' does not support snapshot mode")
        if self.mode == "live" and self.backend in snapshot_backends:
            raise ValueError(f"backend '{self.backend}' does not support live mode")
        if self.soft_limit_bytes >= self.hard_limit_bytes:
            raise ValueError(
                f"soft_limit_bytes ({self.soft_limit_bytes}) must be smaller than "
                f"hard_limit_bytes ({self.hard_limit_bytes})"
            )
        return self


class ExtractionSettings(BaseModel):
    model: str = "gemini-2.5-flash"
    api_key: str | None = None
    endpoint: str = "https://generativelanguage.googleapis.com/v1beta/models"
    timeout: float = 120.0


class DigestConfig(BaseModel):
    """
    Externally supplied configuration surface.

    Attributes:
        departments: Department enumeration, in display order
        default_department: Fallback for unrecognized classifications
        keywords: Keywords flagged in report text
        storage: Persistence mode and backend
        operator_passphrase: Shared secret for destructive operations
    """

    departments: list[str] = Field(default_factory=lambda: list(DEFAULT_DEPARTMENTS), min_length=1)
    default_department: str = DEFAULT_DEPARTMENT
    keywords: list[str] = Field(default_factory=list)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    jsonbin: JsonBinSettings = Field(default_factory=JsonBinSettings)
    postgres: PostgresSettings = Field(default_factory=PostgresSettings)
    extraction: ExtractionSettings = Field(default_factory=ExtractionSettings)
    # Placeholder for a real authorization mechanism; a shared string is not a trust boundary.
    operator_passphrase: str | None = None

    @model_validator(mode="after")
    def check_departments(self):
        if len(set(self.departments)) != len(self.departments):
            raise ValueError("departments must not contain duplicates")
        if self.default_department not in self.departments:
            raise ValueError(
                f"default_department '{self.default_department}' is not one of {self.departments}"
            )
        return self

    @property
    def active_keywords(self) -> list[str]:
        """Configured keywords without empties or duplicates, in configured order."""
        seen: list[str] = []
        for keyword in self.keywords:
            if keyword and keyword not in seen:
                seen.append(keyword)
        return seen


class DigestConfigLoader:
    """
    Loads the digest configuration from a YAML file.

    Expected YAML format:
    ```yaml
    departments: [蔬果, 水产, 肉品冻品, 熟食, 烘焙, 食百, 后勤, 仓库]
    default_department: 后勤
    keywords: [损耗, 报修]
    storage:
      mode: snapshot
      backend: local_file
      path: data/reports.json
      soft_limit_bytes: 900000
    ```

    Secrets are read from the environment when absent from the file:
    DIGEST_OPERATOR_PASSPHRASE, JSONBIN_BIN_ID, JSONBIN_API_KEY, GEMINI_API_KEY,
    DB_HOST, DB_PORT, DB_NAME, DB_USER, DB_PASSWORD.
    """

    def __init__(self, config_path: str | Path):
        """
        Initialize the config loader.

        Args:
            config_path: Path to the YAML configuration file
        """
        self.config_path = Path(config_path)
        if not self.config_path.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

    def load(self) -> DigestConfig:
        """
        Load, apply environment overrides and validate the configuration.

        Raises:
            ConfigurationError: If YAML is invalid or fails validation
        """
        try:
            with open(self.config_path, encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {self.config_path}: {e}") from e

        if not isinstance(raw, dict):
            raise ConfigurationError("Configuration file must contain a mapping at the top level")

        return build_config(apply_env_overrides(raw))


def apply_env_overrides(raw: dict[str, Any]) -> dict[str, Any]:
    """Fill secrets and connection settings from environment variables."""
    raw = dict(raw)

    passphrase = os.getenv("DIGEST_OPERATOR_PASSPHRASE")
    if passphrase and not raw.get("operator_passphrase"):
        raw["operator_passphrase"] = passphrase

    jsonbin = dict(raw.get("jsonbin") or {})
    jsonbin.setdefault("bin_id", os.getenv("JSONBIN_BIN_ID"))
    jsonbin.setdefault("api_key", os.getenv("JSONBIN_API_KEY"))
    raw["jsonbin"] = {k: v for k, v in jsonbin.items() if v is not None}

    extraction = dict(raw.get("extraction") or {})
    extraction.setdefault("api_key", os.getenv("GEMINI_API_KEY"))
    raw["extraction"] = {k: v for k, v in extraction.items() if v is not None}

    postgres = dict(raw.get("postgres") or {})
    env_map = {
        "host": "DB_HOST",
        "port": "DB_PORT",
        "database": "DB_NAME",
        "user": "DB_USER",
        "password": "DB_PASSWORD",
    }
    for key, env_var in env_map.items():
        value = os.getenv(env_var)
        if value and key not in postgres:
            postgres[key] = value
    raw["postgres"] = postgres

    return raw


def build_config(raw: dict[str, Any]) -> DigestConfig:
    """Validate a raw mapping into a DigestConfig."""
    try:
        return DigestConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


class DigestConfigBuilder:
    """
    Programmatically build digest configurations (for testing or embedding).
    """

    def __init__(self):
        """Initialize with the default department enumeration."""
        self.raw: dict[str, Any] = {}

    def with_departments(self, departments: list[str], default: str) -> "DigestConfigBuilder":
        self.raw["departments"] = list(departments)
        self.raw["default_department"] = default
        return self

    def with_keywords(self, *keywords: str) -> "DigestConfigBuilder":
        self.raw["keywords"] = list(keywords)
        return self

    def with_snapshot_file(
        self,
        path: str | Path,
        soft_limit_bytes: int = DEFAULT_SOFT_LIMIT_BYTES,
        hard_limit_bytes: int = DEFAULT_HARD_LIMIT_BYTES,
    ) -> "DigestConfigBuilder":
        self.raw["storage"] = {
            "mode": "snapshot",
            "backend": "local_file",
            "path": str(path),
            "soft_limit_bytes": soft_limit_bytes,
            "hard_limit_bytes": hard_limit_bytes,
        }
        return self

    def with_jsonbin(self, bin_id: str, api_key: str) -> "DigestConfigBuilder":
        self.raw["storage"] = {"mode": "snapshot", "backend": "jsonbin"}
        self.raw["jsonbin"] = {"bin_id": bin_id, "api_key": api_key}
        return self

    def with_postgres(self, **settings: Any) -> "DigestConfigBuilder":
        self.raw["storage"] = {"mode": "live", "backend": "postgres"}
        self.raw["postgres"] = settings
        return self

    def with_passphrase(self, passphrase: str) -> "DigestConfigBuilder":
        self.raw["operator_passphrase"] = passphrase
        return self

    def build(self) -> DigestConfig:
        return build_config(self.raw)
