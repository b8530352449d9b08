"""
Schema definitions for the Casbin MongoDB adapter.

This module defines the Pydantic models used throughout the adapter:
- CasbinRule: The flat record stored once per policy rule
- PolicyFilter: Field constraints for filtered policy loading
- AdapterConfig: Connection settings, loadable from YAML

Design Decisions:
    - Records are immutable (frozen=True)
    - Stored fields are positional (v0..v5), never named
    - Absent trailing fields are empty strings
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from casbin_mongo_adapter.errors import ConfigError


# =============================================================================
# Constants
# =============================================================================

DEFAULT_URL = "mongodb://localhost:27017"
DEFAULT_DATABASE = "casbin"
DEFAULT_COLLECTION = "casbin_rule"
DEFAULT_TIMEOUT_MS = 5000

# Positional value fields, in order
VALUE_FIELDS = ("v0", "v1", "v2", "v3", "v4", "v5")
RECORD_FIELDS = ("ptype", *VALUE_FIELDS)
MAX_FIELDS = len(VALUE_FIELDS)


# =============================================================================
# Stored Record
# =============================================================================


class CasbinRule(BaseModel):
    """
    One policy rule as stored in MongoDB.

    Attributes:
        ptype: Policy type (e.g., "p", "g", "g2")
        v0..v5: Rule fields by position; "" when the rule is shorter
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    ptype: str = ""
    v0: str = ""
    v1: str = ""
    v2: str = ""
    v3: str = ""
    v4: str = ""
    v5: str = ""

    @property
    def values(self) -> tuple[str, ...]:
        """All six positional values, including empty ones."""
        return tuple(getattr(self, name) for name in VALUE_FIELDS)

    def to_document(self) -> dict[str, str]:
        """Convert to the document inserted into the collection."""
        return {name: getattr(self, name) for name in RECORD_FIELDS}

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "CasbinRule":
        """
        Build a record from a raw MongoDB document.

        Unknown keys (including _id) are ignored. Missing or null values
        become empty strings and other scalars are stringified, so any
        document in the collection decodes to something.
        """
        data = {}
        for name in RECORD_FIELDS:
            value = doc.get(name)
            data[name] = "" if value is None else str(value)
        return cls(**data)


# =============================================================================
# Filtered Loading
# =============================================================================


class PolicyFilter(BaseModel):
    """
    Constraints for loading a subset of the stored policy.

    Each non-empty list restricts the matching field to those values.
    Empty lists place no constraint on their field.

    Example:
        PolicyFilter(ptype=["p"], v0=["alice", "bob"])
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    ptype: list[str] = Field(default_factory=list)
    v0: list[str] = Field(default_factory=list)
    v1: list[str] = Field(default_factory=list)
    v2: list[str] = Field(default_factory=list)
    v3: list[str] = Field(default_factory=list)
    v4: list[str] = Field(default_factory=list)
    v5: list[str] = Field(default_factory=list)

    def to_query(self) -> dict[str, Any]:
        """Build the MongoDB query for this filter."""
        query: dict[str, Any] = {}
        for name in RECORD_FIELDS:
            values = getattr(self, name)
            if values:
                query[name] = {"$in": list(values)}
        return query


# =============================================================================
# Configuration
# =============================================================================


class AdapterConfig(BaseModel):
    """
    Connection settings for the adapter.

    Attributes:
        url: MongoDB connection URL; may carry the database name as its path
        database: Database name, overriding the one in the URL
        collection: Collection holding the rules
        timeout_ms: Server selection timeout in milliseconds
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    url: str = Field(
        default=DEFAULT_URL,
        description="MongoDB connection URL",
        min_length=1,
    )
    database: str | None = Field(
        default=None,
        description="Database name (defaults to the URL path, then 'casbin')",
    )
    collection: str = Field(
        default=DEFAULT_COLLECTION,
        description="Collection holding the policy rules",
        min_length=1,
    )
    timeout_ms: int = Field(
        default=DEFAULT_TIMEOUT_MS,
        description="Server selection timeout in milliseconds",
        gt=0,
        le=600_000,
    )


# =============================================================================
# YAML Loading Helpers
# =============================================================================


def load_config(path: Path | str) -> AdapterConfig:
    """
    Load adapter settings from a YAML file.

    Args:
        path: Path to the YAML file

    Returns:
        Validated AdapterConfig object

    Raises:
        ConfigError: If the file can't be read or doesn't match the schema
    """
    path = Path(path)
    try:
        with path.open() as f:
            content = f.read()
    except OSError as e:
        raise ConfigError(path=str(path), underlying_error=str(e)) from e

    return _parse_config(content, str(path))


def load_config_from_string(content: str) -> AdapterConfig:
    """Load adapter settings from a YAML string."""
    return _parse_config(content, "")


def _parse_config(content: str, path: str) -> AdapterConfig:
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(path=path, underlying_error=str(e)) from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(
            path=path,
            underlying_error=f"expected a mapping, got {type(data).__name__}",
        )

    try:
        return AdapterConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(path=path, underlying_error=str(e)) from e
