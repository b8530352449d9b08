"""
MongoDB session for the Casbin adapter.

This module owns the client connection and the rule collection handle.
All rules live in a single collection, one document per rule.

Lifecycle:
    - Opened eagerly at construction: URL parsed, server pinged, indexes ensured
    - Any failure during opening closes the client and raises
    - close() is idempotent; a weakref finalizer closes the client if the
      session is garbage collected while still open

Indexes:
    Single-field ascending indexes on ptype and v0..v5 back filtered lookups.
"""

import re
import weakref
from collections.abc import Iterable, Iterator
from typing import Any

from pymongo import ASCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.errors import ConfigurationError, OperationFailure, PyMongoError
from pymongo.uri_parser import parse_uri

from casbin_mongo_adapter.errors import (
    StorageClosedError,
    StorageConnectionError,
    StorageIndexError,
    StorageReadError,
    StorageWriteError,
)
from casbin_mongo_adapter.logging import get_logger
from casbin_mongo_adapter.schema import (
    DEFAULT_COLLECTION,
    DEFAULT_DATABASE,
    DEFAULT_TIMEOUT_MS,
    RECORD_FIELDS,
    CasbinRule,
)

logger = get_logger(__name__)

# Server error code for a missing collection
NAMESPACE_NOT_FOUND = 26

_CREDENTIALS_RE = re.compile(r"//[^/@]*@")


def redact_url(url: str) -> str:
    """Hide credentials in a connection URL."""
    return _CREDENTIALS_RE.sub("//***@", url)


def _release(client: MongoClient) -> None:
    client.close()


def _is_namespace_not_found(error: OperationFailure) -> bool:
    return error.code == NAMESPACE_NOT_FOUND or "ns not found" in str(error)


class MongoSession:
    """
    Connection and collection handle for stored policy rules.

    Usage:
        session = MongoSession("mongodb://localhost:27017/casbin")
        session.replace_all(records)
        for record in session.iter_records():
            ...
        session.close()

    Or use as context manager:
        with MongoSession(url) as session:
            ...

    Attributes:
        url: Connection URL as given
        database_name: Resolved database name
        collection_name: Name of the rule collection
    """

    def __init__(
        self,
        url: str,
        database: str | None = None,
        collection: str = DEFAULT_COLLECTION,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> None:
        """
        Open the connection and ensure indexes.

        Args:
            url: MongoDB connection URL
            database: Database name; defaults to the URL path, then "casbin"
            collection: Collection holding the rules
            timeout_ms: Server selection timeout in milliseconds

        Raises:
            StorageConnectionError: If the URL is invalid, the server unreachable,
                or the database or collection name rejected
            StorageIndexError: If the indexes can't be created
        """
        self.url = url
        self.collection_name = collection
        self.database_name = database or DEFAULT_DATABASE
        self._client: MongoClient | None = None
        self._collection: Collection | None = None
        self._finalizer: weakref.finalize | None = None
        self._open(database, timeout_ms)

    def _open(self, database: str | None, timeout_ms: int) -> None:
        """Parse the URL, connect and select the collection."""
        try:
            parsed = parse_uri(self.url)
        except (ConfigurationError, ValueError) as e:
            raise StorageConnectionError(
                url=redact_url(self.url),
                operation="parse_url",
                underlying_error=str(e),
            ) from e

        self.database_name = database or parsed.get("database") or DEFAULT_DATABASE

        client = None
        try:
            client = MongoClient(self.url, serverSelectionTimeoutMS=timeout_ms)
            client.admin.command("ping")
        except PyMongoError as e:
            if client is not None:
                client.close()
            raise StorageConnectionError(
                url=redact_url(self.url),
                operation="connect",
                underlying_error=str(e),
            ) from e

        try:
            collection = client[self.database_name][self.collection_name]
        except PyMongoError as e:
            client.close()
            raise StorageConnectionError(
                url=redact_url(self.url),
                operation="select_collection",
                underlying_error=str(e),
            ) from e

        self._client = client
        self._collection = collection
        self._finalizer = weakref.finalize(self, _release, client)

        try:
            self.ensure_indexes()
        except StorageIndexError:
            self.close()
            raise

        logger.info(
            "session_opened",
            url=redact_url(self.url),
            database=self.database_name,
            collection=self.collection_name,
        )

    def _require(self, operation: str) -> Collection:
        """Return the collection, or raise if the session is closed."""
        if self._collection is None:
            raise StorageClosedError(operation=operation)
        return self._collection

    @property
    def closed(self) -> bool:
        """Whether close() has been called."""
        return self._collection is None

    @property
    def collection(self) -> Collection:
        """The underlying pymongo collection."""
        return self._require("access collection")

    def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        if self._finalizer is not None and self._finalizer.alive:
            self._finalizer()
            logger.debug("session_closed", collection=self.collection_name)
        self._client = None
        self._collection = None

    def __enter__(self) -> "MongoSession":
        """Enter context manager."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Exit context manager."""
        self.close()

    # =========================================================================
    # Collection Lifecycle
    # =========================================================================

    def ensure_indexes(self) -> None:
        """
        Create single-field indexes on ptype and v0..v5.

        Raises:
            StorageIndexError: If any index can't be created
        """
        collection = self._require("ensure_indexes")
        for name in RECORD_FIELDS:
            try:
                collection.create_index([(name, ASCENDING)])
            except PyMongoError as e:
                raise StorageIndexError(
                    operation="ensure_indexes",
                    field_name=name,
                    underlying_error=str(e),
                ) from e

        logger.debug("indexes_ensured", collection=self.collection_name)

    def index_names(self) -> list[str]:
        """Names of the indexes on the collection."""
        collection = self._require("index_names")
        try:
            return list(collection.index_information())
        except PyMongoError as e:
            raise StorageReadError(
                operation="index_names",
                underlying_error=str(e),
            ) from e

    def drop_all(self) -> None:
        """
        Drop the collection and recreate its indexes.

        A collection that doesn't exist yet counts as already dropped.

        Raises:
            StorageWriteError: If the drop fails for any other reason
            StorageIndexError: If the indexes can't be recreated
        """
        collection = self._require("drop_all")
        try:
            collection.drop()
        except OperationFailure as e:
            if not _is_namespace_not_found(e):
                raise StorageWriteError(
                    operation="drop_all",
                    underlying_error=str(e),
                ) from e
        except PyMongoError as e:
            raise StorageWriteError(
                operation="drop_all",
                underlying_error=str(e),
            ) from e

        logger.debug("collection_dropped", collection=self.collection_name)
        self.ensure_indexes()

    # =========================================================================
    # Record Operations
    # =========================================================================

    def iter_records(self, query: dict[str, Any] | None = None) -> Iterator[CasbinRule]:
        """
        Stream stored records in collection order.

        Args:
            query: Optional MongoDB filter; everything when omitted

        Raises:
            StorageReadError: If the cursor fails
        """
        collection = self._require("iter_records")
        try:
            for doc in collection.find(query or {}, {"_id": False}):
                yield CasbinRule.from_document(doc)
        except PyMongoError as e:
            raise StorageReadError(
                operation="iter_records",
                underlying_error=str(e),
            ) from e

    def insert_records(self, records: Iterable[CasbinRule]) -> int:
        """
        Bulk insert records.

        Returns:
            Number of records inserted

        Raises:
            StorageWriteError: If the insert fails; earlier documents may remain
        """
        collection = self._require("insert_records")
        documents = [record.to_document() for record in records]
        if not documents:
            return 0

        try:
            collection.insert_many(documents)
        except PyMongoError as e:
            raise StorageWriteError(
                operation="insert_records",
                underlying_error=str(e),
            ) from e
        return len(documents)

    def replace_all(self, records: Iterable[CasbinRule]) -> int:
        """
        Replace every stored record with the given ones.

        Not atomic: readers may see an empty or partial collection meanwhile.

        Returns:
            Number of records inserted
        """
        records = list(records)
        self.drop_all()
        return self.insert_records(records)

    def count(self) -> int:
        """Number of stored records."""
        collection = self._require("count")
        try:
            return collection.count_documents({})
        except PyMongoError as e:
            raise StorageReadError(
                operation="count",
                underlying_error=str(e),
            ) from e
