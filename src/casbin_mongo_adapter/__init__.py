"""
casbin-mongo-adapter - MongoDB policy storage for Casbin.

Stores pycasbin policy rules in a MongoDB collection, one document per rule:
    {ptype, v0, v1, v2, v3, v4, v5}

The adapter is load/save only:
- load_policy streams every stored rule into the enforcer's model
- save_policy replaces the whole collection with the model's "p" and "g" rules
- Single-rule add/remove raise UnsupportedOperationError

Example usage:
    >>> import casbin
    >>> from casbin_mongo_adapter import MongoAdapter
    >>> adapter = MongoAdapter("mongodb://localhost:27017/casbin")
    >>> enforcer = casbin.Enforcer("rbac_model.conf", adapter)
"""

__version__ = "0.1.0"
__author__ = "casbin-mongo-adapter Contributors"

from casbin_mongo_adapter.adapter import MongoAdapter
from casbin_mongo_adapter.errors import (
    AdapterError,
    FilteredPolicySaveError,
    StorageError,
    UnsupportedOperationError,
)
from casbin_mongo_adapter.schema import AdapterConfig, CasbinRule, PolicyFilter, load_config

__all__ = [
    "__version__",
    "__author__",
    "AdapterConfig",
    "AdapterError",
    "CasbinRule",
    "FilteredPolicySaveError",
    "MongoAdapter",
    "PolicyFilter",
    "StorageError",
    "UnsupportedOperationError",
    "load_config",
]
