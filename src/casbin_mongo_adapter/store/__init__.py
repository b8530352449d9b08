"""
Storage module for the Casbin MongoDB adapter.

This module provides the MongoDB session that holds policy rules.

Collection:
    - casbin_rule: one document per rule {ptype, v0, v1, v2, v3, v4, v5}

Design principles:
    - Eager: connection and indexes are checked at construction
    - Bulk replace: saving drops the collection and reinserts every rule
    - Fail fast: no partially opened session is ever returned
"""

from casbin_mongo_adapter.store.session import MongoSession, redact_url

__all__ = [
    "MongoSession",
    "redact_url",
]
