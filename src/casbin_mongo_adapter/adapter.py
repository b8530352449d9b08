"""
Casbin adapter backed by MongoDB.

MongoAdapter implements pycasbin's adapter contract on top of MongoSession:
the enforcer calls load_policy() at startup and save_policy() whenever the
policy is persisted. Rules are translated with the record codec.

How it works:
    1. Construction opens the session (connection, ping, indexes)
    2. load_policy streams every record into model[section][ptype].policy
    3. save_policy drops the collection and reinserts sections "p" and "g"
    4. Single-rule mutations raise UnsupportedOperationError

Usage:
    with MongoAdapter("mongodb://localhost:27017/casbin") as adapter:
        enforcer = casbin.Enforcer("rbac_model.conf", adapter)
        enforcer.enforce("alice", "data1", "read")
"""

from typing import Any

from casbin import persist

from casbin_mongo_adapter.codec import decode, encode
from casbin_mongo_adapter.errors import (
    FilteredPolicySaveError,
    UnsupportedOperationError,
)
from casbin_mongo_adapter.logging import get_logger
from casbin_mongo_adapter.schema import (
    DEFAULT_COLLECTION,
    DEFAULT_TIMEOUT_MS,
    AdapterConfig,
    PolicyFilter,
)
from casbin_mongo_adapter.store import MongoSession

logger = get_logger(__name__)

# Model sections persisted by save_policy, in write order
SAVED_SECTIONS = ("p", "g")


class MongoAdapter(persist.Adapter):
    """
    Load/save-only Casbin adapter storing rules in a MongoDB collection.

    Attributes:
        session: The MongoSession holding the connection
    """

    def __init__(
        self,
        url: str,
        database: str | None = None,
        collection: str = DEFAULT_COLLECTION,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> None:
        """
        Connect to MongoDB and prepare the rule collection.

        Args:
            url: MongoDB connection URL; its path may name the database
            database: Database name, overriding the URL (default "casbin")
            collection: Collection holding the rules
            timeout_ms: Server selection timeout in milliseconds

        Raises:
            StorageConnectionError: If the URL is invalid or the server unreachable
            StorageIndexError: If the indexes can't be created
        """
        self.session = MongoSession(
            url,
            database=database,
            collection=collection,
            timeout_ms=timeout_ms,
        )
        self._filtered = False

    @classmethod
    def from_config(cls, config: AdapterConfig) -> "MongoAdapter":
        """Create an adapter from validated settings."""
        return cls(
            config.url,
            database=config.database,
            collection=config.collection,
            timeout_ms=config.timeout_ms,
        )

    def close(self) -> None:
        """Close the MongoDB connection. Safe to call more than once."""
        self.session.close()

    def __enter__(self) -> "MongoAdapter":
        """Enter context manager."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Exit context manager."""
        self.close()

    # =========================================================================
    # Load / Save
    # =========================================================================

    def load_policy(self, model: Any) -> None:
        """
        Load every stored rule into the model.

        Rules are appended in collection order. Records whose policy type
        isn't defined in the model are skipped.

        Raises:
            StorageReadError: If the cursor fails
        """
        self._load(model, None)
        self._filtered = False

    def load_filtered_policy(self, model: Any, filter: Any = None) -> None:
        """
        Load only the stored rules matching a filter.

        Args:
            model: The Casbin model to fill
            filter: PolicyFilter, or any mapping/object with ptype and v0..v5
                lists. None loads everything.
        """
        if filter is None:
            self.load_policy(model)
            return

        if not isinstance(filter, PolicyFilter):
            filter = PolicyFilter.model_validate(filter, from_attributes=True)

        self._load(model, filter.to_query())
        self._filtered = True

    def is_filtered(self) -> bool:
        """Whether the last load was a filtered one."""
        return self._filtered

    def _load(self, model: Any, query: dict[str, Any] | None) -> None:
        loaded = 0
        skipped = 0
        for record in self.session.iter_records(query):
            section, ptype, rule = decode(record)
            assertion = _find_assertion(model, section, ptype)
            if assertion is None:
                skipped += 1
                logger.debug("record_skipped", ptype=ptype, rule=rule)
                continue
            assertion.policy.append(rule)
            loaded += 1

        logger.info(
            "policy_loaded",
            collection=self.session.collection_name,
            rules=loaded,
            skipped=skipped,
            filtered=query is not None,
        )

    def save_policy(self, model: Any) -> bool:
        """
        Replace the stored rules with every "p" and "g" rule in the model.

        The collection is dropped first, so a failed insert leaves it
        partially filled. Other model sections are not stored.

        Raises:
            FilteredPolicySaveError: If the model came from a filtered load
            StorageWriteError: If the drop or insert fails
            StorageIndexError: If the indexes can't be recreated after the drop
        """
        if self._filtered:
            raise FilteredPolicySaveError()

        records = []
        for section in SAVED_SECTIONS:
            for ptype, assertion in model.model.get(section, {}).items():
                for rule in assertion.policy:
                    records.append(encode(ptype, rule))

        inserted = self.session.replace_all(records)
        logger.info(
            "policy_saved",
            collection=self.session.collection_name,
            rules=inserted,
        )
        return True

    # =========================================================================
    # Single-rule Mutations
    # =========================================================================

    def add_policy(self, sec: str, ptype: str, rule: list[str]) -> None:
        """Not supported; raises UnsupportedOperationError."""
        raise UnsupportedOperationError(operation="add_policy", section=sec, ptype=ptype)

    def remove_policy(self, sec: str, ptype: str, rule: list[str]) -> None:
        """Not supported; raises UnsupportedOperationError."""
        raise UnsupportedOperationError(operation="remove_policy", section=sec, ptype=ptype)

    def remove_filtered_policy(
        self,
        sec: str,
        ptype: str,
        field_index: int,
        *field_values: str,
    ) -> None:
        """Not supported; raises UnsupportedOperationError."""
        raise UnsupportedOperationError(
            operation="remove_filtered_policy",
            section=sec,
            ptype=ptype,
        )


def _find_assertion(model: Any, section: str, ptype: str) -> Any:
    """Return model[section][ptype], or None when the model doesn't define it."""
    sections = model.model
    if section not in sections or ptype not in sections[section]:
        return None
    return sections[section][ptype]
