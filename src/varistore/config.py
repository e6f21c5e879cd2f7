"""varistore configuration.

Settings are read from environment variables once per load_settings() call
and validated with pydantic. Uploaders that are not given explicit settings
use load_settings().

Environment Variables:
    VARISTORE_STORE_DIR: Path prefix for stored artifacts (default: "uploads")
    VARISTORE_CACHE_DIR: Path prefix for cached artifacts (default: "uploads/tmp")
    VARISTORE_VERSION_SEPARATOR: Joins variant names in filenames (default: "_")
    VARISTORE_BASE_URL: Prefix of computed locations (default: "/")
    VARISTORE_ENABLE_PROCESSING: Run processing steps (default: "true")
    VARISTORE_DELETE_CACHE_AFTER_STORE: Remove cached copy once stored (default: "true")
    VARISTORE_REDECLARE_POLICY: "last_wins", "first_wins" or "strict" (default: "last_wins")
"""

from __future__ import annotations

import os
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

VARISTORE_STORE_DIR_ENV = "VARISTORE_STORE_DIR"
VARISTORE_CACHE_DIR_ENV = "VARISTORE_CACHE_DIR"
VARISTORE_VERSION_SEPARATOR_ENV = "VARISTORE_VERSION_SEPARATOR"
VARISTORE_BASE_URL_ENV = "VARISTORE_BASE_URL"
VARISTORE_ENABLE_PROCESSING_ENV = "VARISTORE_ENABLE_PROCESSING"
VARISTORE_DELETE_CACHE_AFTER_STORE_ENV = "VARISTORE_DELETE_CACHE_AFTER_STORE"
VARISTORE_REDECLARE_POLICY_ENV = "VARISTORE_REDECLARE_POLICY"


class RedeclarePolicy(StrEnum):
    """How a redeclared variant's options merge with the existing definition.

    LAST_WINS: explicitly passed options override the existing ones.
    FIRST_WINS: existing options are kept; only the body is applied.
    STRICT: differing options raise DuplicateVariantError.
    """

    LAST_WINS = "last_wins"
    FIRST_WINS = "first_wins"
    STRICT = "strict"


class VariantSettings(BaseModel):
    """Validated runtime settings for uploaders.

    Attributes:
        store_dir: Path prefix under which stored artifacts are written.
        cache_dir: Path prefix under which cached artifacts are written.
        version_separator: Separator joining variant names in qualified names.
        base_url: Prefix for locations returned by url().
        enable_processing: Default for definitions that do not set it.
        delete_cache_after_store: Remove the cached copy after a store.
        redeclare_policy: Default policy for new definition registries.
    """

    model_config = ConfigDict(frozen=True)

    store_dir: str = Field(default="uploads", min_length=1)
    cache_dir: str = Field(default="uploads/tmp", min_length=1)
    version_separator: str = Field(default="_", min_length=1, max_length=4)
    base_url: str = "/"
    enable_processing: bool = True
    delete_cache_after_store: bool = True
    redeclare_policy: RedeclarePolicy = RedeclarePolicy.LAST_WINS

    @field_validator("store_dir", "cache_dir")
    @classmethod
    def _strip_slashes(cls, value: str) -> str:
        stripped = value.strip().strip("/")
        if not stripped:
            raise ValueError("directory prefix must not be empty")
        return stripped

    @field_validator("version_separator")
    @classmethod
    def _reject_path_separator(cls, value: str) -> str:
        if "/" in value or "\\" in value:
            raise ValueError("version separator must not contain path separators")
        return value


def _get_env_bool(key: str, default: bool) -> bool:
    """Get boolean from environment variable."""
    val = os.environ.get(key, "").strip().lower()
    if val in ("1", "true", "yes"):
        return True
    if val in ("0", "false", "no"):
        return False
    return default


def load_settings() -> VariantSettings:
    """Build settings from the environment.

    Raises:
        pydantic.ValidationError: If an environment value is invalid.
    """
    raw: dict[str, object] = {}

    for env_key, field_name in (
        (VARISTORE_STORE_DIR_ENV, "store_dir"),
        (VARISTORE_CACHE_DIR_ENV, "cache_dir"),
        (VARISTORE_VERSION_SEPARATOR_ENV, "version_separator"),
        (VARISTORE_BASE_URL_ENV, "base_url"),
        (VARISTORE_REDECLARE_POLICY_ENV, "redeclare_policy"),
    ):
        value = os.environ.get(env_key)
        if value is not None and value.strip():
            raw[field_name] = value.strip().lower() if field_name == "redeclare_policy" else value

    raw["enable_processing"] = _get_env_bool(VARISTORE_ENABLE_PROCESSING_ENV, True)
    raw["delete_cache_after_store"] = _get_env_bool(VARISTORE_DELETE_CACHE_AFTER_STORE_ENV, True)

    return VariantSettings.model_validate(raw)
