"""
Configuration for the Sweep Engine.

Reads the sweep settings from a YAML file and validates them into a
SweepConfig. Keys may be given in snake_case or in the camelCase form
used by older sweep configurations (searchRoots, retentionDays, ...).
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .exceptions import ConfigError
from .models import SearchScope

logger = logging.getLogger(__name__)


class DirectorySettings(BaseModel):
    """Connection settings for the directory connector."""
    model_config = ConfigDict(populate_by_name=True)

    mock_mode: bool = Field(False, alias="mockMode")
    server: Optional[str] = None
    user: Optional[str] = None
    password: Optional[str] = None
    use_ssl: bool = Field(True, alias="useSsl")
    page_size: int = Field(500, ge=1, alias="pageSize")
    mock_accounts: List[Dict[str, Any]] = Field(default_factory=list, alias="mockAccounts")


class SweepConfig(BaseModel):
    """All options recognised by a sweep invocation."""
    model_config = ConfigDict(populate_by_name=True)

    search_roots: List[str] = Field(..., alias="searchRoots")
    search_scope: SearchScope = Field(SearchScope.SUBTREE, alias="searchScope")
    inactivity_days: int = Field(..., ge=1, alias="inactivityDays")
    exception_names: Set[str] = Field(default_factory=set, alias="exceptionNames")
    quarantine_path: str = Field(..., alias="quarantinePath")
    retention_days: int = Field(..., ge=0, alias="retentionDays")

    log_file: str = Field("computer_sweep.log", alias="logFile")
    log_max_age_days: int = Field(365, ge=1, alias="logMaxAgeDays")
    log_max_lines: Optional[int] = Field(None, ge=1, alias="logMaxLines")
    protect_exceptions_in_quarantine: bool = Field(False, alias="protectExceptionsInQuarantine")
    local_time: bool = Field(True, alias="localTime")
    directory: DirectorySettings = Field(default_factory=DirectorySettings)

    @field_validator('search_roots')
    @classmethod
    def validate_search_roots(cls, v: List[str]) -> List[str]:
        roots = [root.strip() for root in v if root and root.strip()]
        if not roots:
            raise ValueError('at least one search root is required')
        return roots

    @field_validator('quarantine_path')
    @classmethod
    def validate_quarantine_path(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError('quarantine path is required')
        return v.strip()

    @field_validator('exception_names', mode='before')
    @classmethod
    def normalize_exception_names(cls, v: Any) -> Any:
        """Accept a single name or a list; drop blanks."""
        if v is None:
            return set()
        if isinstance(v, str):
            v = [v]
        return {str(name).strip() for name in v if name and str(name).strip()}


def _normalize_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    """Map camelCase aliases to field names so overrides replace file values."""
    aliases = {field.alias: name for name, field in SweepConfig.model_fields.items() if field.alias}
    return {aliases.get(key, key): value for key, value in data.items()}


def load_config(
    config_path: Optional[Union[str, Path]] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> SweepConfig:
    """
    Load and validate the sweep configuration.

    Args:
        config_path: Path to a YAML configuration file (optional)
        overrides: Values that replace the file's top-level keys

    Returns:
        Validated SweepConfig

    Raises:
        ConfigError: If the file is missing, unreadable or invalid
    """
    data: Dict[str, Any] = {}

    if config_path:
        path = Path(config_path)
        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")

        try:
            with open(path, encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Configuration in {path} must be a mapping")

        logger.info(f"Loaded sweep configuration from {path}")

    data = _normalize_keys(data)
    if overrides:
        data.update({k: v for k, v in _normalize_keys(overrides).items() if v is not None})

    try:
        return SweepConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid sweep configuration: {e}") from e
