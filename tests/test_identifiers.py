"""Tests for identifier normalization."""

import pytest

from dbmd.identifiers import (
    EMPTY_NAME_MARKER,
    is_quoted,
    normalize_identifier,
    normalize_name_keys,
    normalize_names,
)
from dbmd.models import CaseSensitivity


class TestNormalizeIdentifier:
    """Tests for normalize_identifier."""

    def test_upper_folding(self):
        assert normalize_identifier("Orders", CaseSensitivity.INSENSITIVE_STORED_UPPER) == "ORDERS"

    def test_lower_folding(self):
        assert normalize_identifier("Orders", CaseSensitivity.INSENSITIVE_STORED_LOWER) == "orders"

    @pytest.mark.parametrize("case_sens", [
        CaseSensitivity.INSENSITIVE_STORED_MIXED,
        CaseSensitivity.SENSITIVE,
    ])
    def test_no_folding(self, case_sens):
        assert normalize_identifier("Orders", case_sens) == "Orders"

    @pytest.mark.parametrize("case_sens", list(CaseSensitivity))
    def test_quoted_unchanged(self, case_sens):
        assert normalize_identifier('"Orders"', case_sens) == '"Orders"'

    @pytest.mark.parametrize("value", [None, ""])
    def test_absent(self, value):
        assert normalize_identifier(value, CaseSensitivity.INSENSITIVE_STORED_UPPER) is None

    def test_empty_name_marker(self):
        assert normalize_identifier(EMPTY_NAME_MARKER, CaseSensitivity.INSENSITIVE_STORED_UPPER) == ""
        assert normalize_identifier("<none>", CaseSensitivity.SENSITIVE) == ""

    def test_unquote_if_safe(self):
        upper = CaseSensitivity.INSENSITIVE_STORED_UPPER
        assert normalize_identifier('"ORDERS"', upper, unquote_if_safe=True) == "ORDERS"
        assert normalize_identifier('"Orders"', upper, unquote_if_safe=True) == '"Orders"'

        lower = CaseSensitivity.INSENSITIVE_STORED_LOWER
        assert normalize_identifier('"orders"', lower, unquote_if_safe=True) == "orders"

    def test_unquote_never_for_non_folding_policies(self):
        assert normalize_identifier(
            '"orders"', CaseSensitivity.SENSITIVE, unquote_if_safe=True
        ) == '"orders"'
        assert normalize_identifier(
            '"orders"', CaseSensitivity.INSENSITIVE_STORED_MIXED, unquote_if_safe=True
        ) == '"orders"'

    def test_empty_quoted_kept(self):
        assert normalize_identifier('""', CaseSensitivity.INSENSITIVE_STORED_UPPER, unquote_if_safe=True) == '""'

    def test_idempotent(self):
        upper = CaseSensitivity.INSENSITIVE_STORED_UPPER
        once = normalize_identifier("Orders", upper)
        assert normalize_identifier(once, upper) == once


class TestHelpers:
    """Tests for the quoting and collection helpers."""

    def test_is_quoted(self):
        assert is_quoted('"A"')
        assert is_quoted('""')
        assert not is_quoted('"')
        assert not is_quoted("A")
        assert not is_quoted('"A')

    def test_normalize_names(self):
        names = normalize_names(["customer_id", "Id"], CaseSensitivity.INSENSITIVE_STORED_UPPER)
        assert names == {"CUSTOMER_ID", "ID"}

    def test_normalize_names_none(self):
        assert normalize_names(None, CaseSensitivity.INSENSITIVE_STORED_UPPER) is None

    def test_normalize_name_keys(self):
        normd = normalize_name_keys({"a": 1, '"b"': 2}, CaseSensitivity.INSENSITIVE_STORED_UPPER)
        assert normd == {"A": 1, '"b"': 2}
