"""
Database identifier normalization.

Unquoted identifiers are folded the way the database stores them, so that
names supplied by users compare equal to names reported by the catalog.
"""

from __future__ import annotations

from typing import Dict, Iterable, Mapping, Optional, Set, TypeVar

from dbmd.models import CaseSensitivity

QUOTE_CHAR = '"'

# Explicit request for the empty-named schema (as opposed to no schema at all).
EMPTY_NAME_MARKER = "<none>"

V = TypeVar("V")


def is_quoted(id: str) -> bool:
    return len(id) >= 2 and id.startswith(QUOTE_CHAR) and id.endswith(QUOTE_CHAR)


def normalize_identifier(
    id: Optional[str],
    case_sensitivity: CaseSensitivity,
    unquote_if_safe: bool = False,
) -> Optional[str]:
    """
    Normalize a database identifier according to a case sensitivity policy.

    Args:
        id: Identifier as given by a user or configuration, possibly quoted
        case_sensitivity: How the database stores unquoted identifiers
        unquote_if_safe: Strip quotes when the quoted text is already in the
            form the database would store the unquoted identifier in

    Returns:
        The normalized identifier, or None when no identifier was given.
    """
    if id is None or id == "":
        return None
    if id == EMPTY_NAME_MARKER:
        return ""

    if is_quoted(id):
        if unquote_if_safe:
            inner = id[1:-1]
            if inner and _fold(inner, case_sensitivity) == inner and _folds_case(case_sensitivity):
                return inner
        return id

    return _fold(id, case_sensitivity)


def normalize_names(
    names: Optional[Iterable[str]],
    case_sensitivity: CaseSensitivity,
) -> Optional[Set[str]]:
    """Normalize a collection of names into a set, passing None through."""
    if names is None:
        return None
    return {normalize_identifier(name, case_sensitivity) for name in names}


def normalize_name_keys(
    mapping: Mapping[str, V],
    case_sensitivity: CaseSensitivity,
) -> Dict[Optional[str], V]:
    """Return a copy of a mapping with its identifier keys normalized."""
    return {normalize_identifier(k, case_sensitivity): v for k, v in mapping.items()}


def _folds_case(case_sensitivity: CaseSensitivity) -> bool:
    return case_sensitivity in (
        CaseSensitivity.INSENSITIVE_STORED_LOWER,
        CaseSensitivity.INSENSITIVE_STORED_UPPER,
    )


def _fold(id: str, case_sensitivity: CaseSensitivity) -> str:
    if case_sensitivity == CaseSensitivity.INSENSITIVE_STORED_LOWER:
        return id.lower()
    elif case_sensitivity == CaseSensitivity.INSENSITIVE_STORED_UPPER:
        return id.upper()
    else:
        return id
