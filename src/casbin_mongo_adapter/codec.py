"""
Rule record codec.

Converts between the engine's variable-length rules (lists of up to six
strings) and the fixed-shape CasbinRule records kept in MongoDB.

Known limitations:
    - Fields past the sixth are dropped on encode.
    - An empty value ends the rule on decode, so a rule whose real field
      is "" is truncated at that field. ["alice", "", "read"] is stored as
      v0="alice", v1="", v2="read" and comes back as ["alice"].
"""

from collections.abc import Sequence

from casbin_mongo_adapter.schema import MAX_FIELDS, VALUE_FIELDS, CasbinRule


def section_of(ptype: str) -> str:
    """Return the model section a policy type belongs to ("g2" -> "g")."""
    return ptype[:1]


def encode(ptype: str, rule: Sequence[str]) -> CasbinRule:
    """
    Map a rule onto a stored record by position.

    Args:
        ptype: Policy type of the rule
        rule: Ordered rule fields; only the first six are kept

    Returns:
        CasbinRule with v0..vN set and the rest left empty
    """
    values = dict(zip(VALUE_FIELDS, rule[:MAX_FIELDS]))
    return CasbinRule(ptype=ptype, **values)


def decode(record: CasbinRule) -> tuple[str, str, list[str]]:
    """
    Recover (section, ptype, rule) from a stored record.

    The rule is read from v0 onwards and stops at the first empty value.
    """
    rule: list[str] = []
    for value in record.values:
        if value == "":
            break
        rule.append(value)

    return section_of(record.ptype), record.ptype, rule
