"""Tests for value coercion (importer_ingestion/mapping/coercion.py)."""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from importer_ingestion.domain.types import FieldDefinition, FieldType
from importer_ingestion.mapping.coercion import (
    apply_default,
    apply_transforms,
    cast_type,
    coerce_value,
    split_value,
    trim,
)


class TestTrimAndDefault:
    def test_trim_strings_only(self):
        assert trim("  a b  ") == "a b"
        assert trim(5) == 5
        assert trim(None) is None

    def test_default_for_empty(self):
        fdef = FieldDefinition(key="status", default="draft")
        assert apply_default("", fdef) == "draft"
        assert apply_default(None, fdef) == "draft"
        assert apply_default("live", fdef) == "live"

    def test_zero_is_not_empty(self):
        fdef = FieldDefinition(key="qty", default="5")
        assert apply_default("0", fdef) == "0"

    def test_no_default_configured(self):
        assert apply_default("", FieldDefinition(key="x")) == ""


class TestTransforms:
    def test_uppercase(self):
        assert apply_transforms("abc", FieldDefinition(key="x", uppercase=True)) == "ABC"

    def test_lowercase(self):
        assert apply_transforms("AbC", FieldDefinition(key="x", lowercase=True)) == "abc"

    def test_non_strings_untouched(self):
        assert apply_transforms(12, FieldDefinition(key="x", uppercase=True)) == 12


class TestSplit:
    def test_simple(self):
        assert split_value("a|b|c", "|") == ["a", "b", "c"]

    def test_pieces_trimmed(self):
        assert split_value(" a | b |c ", "|") == ["a", "b", "c"]

    def test_all_empty_segments(self):
        assert split_value("||", "|") == []

    def test_zero_piece_kept(self):
        assert split_value("0|1", "|") == ["0", "1"]

    def test_multi_char_separator_picks_present_candidate(self):
        assert split_value("red;blue", ",;") == ["red", "blue"]

    def test_no_separator_present_gives_single_piece(self):
        assert split_value("solo", "|") == ["solo"]


class TestCastType:
    def test_number_strips_currency_formatting(self):
        assert cast_type("$1,234.50", FieldType.NUMBER) == 1234.5

    def test_number_leaves_garbage_unchanged(self):
        assert cast_type("abc", FieldType.NUMBER) == "abc"

    def test_integer(self):
        assert cast_type("1,200", FieldType.INTEGER) == 1200
        assert cast_type("7.9", FieldType.INTEGER) == 7

    def test_integer_garbage_unchanged(self):
        assert cast_type("ten", FieldType.INTEGER) == "ten"

    @pytest.mark.parametrize("raw", ["1", "true", "YES", "on", "y"])
    def test_boolean_truthy(self, raw):
        assert cast_type(raw, FieldType.BOOLEAN) is True

    @pytest.mark.parametrize("raw", ["0", "false", "no", "off", "maybe"])
    def test_boolean_falsy(self, raw):
        assert cast_type(raw, FieldType.BOOLEAN) is False

    def test_currency_upper(self):
        assert cast_type(" usd ", FieldType.CURRENCY) == "USD"

    def test_empty_passes_through(self):
        assert cast_type("", FieldType.NUMBER) == ""
        assert cast_type(None, FieldType.INTEGER) is None


class TestCoerceValue:
    def test_full_chain(self):
        fdef = FieldDefinition(key="tags", separator=",", uppercase=True)
        assert coerce_value("  red, blue ,", fdef) == ["RED", "BLUE"]

    def test_default_then_cast(self):
        fdef = FieldDefinition(key="qty", type="integer", default="3")
        assert coerce_value("   ", fdef) == 3

    def test_entity_values_not_cast(self):
        fdef = FieldDefinition(key="cat", type="term")
        assert coerce_value(" 12 ", fdef) == "12"

    def test_list_values_not_cast(self):
        fdef = FieldDefinition(key="sizes", type="integer", separator="|")
        assert coerce_value("1|2", fdef) == ["1", "2"]


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------


_text = st.text(alphabet=st.characters(blacklist_categories=("Cs",)), max_size=30)


class TestCoercionProperties:
    @given(_text)
    @settings(max_examples=200)
    def test_trim_idempotent(self, value):
        assert trim(trim(value)) == trim(value)

    @given(_text)
    @settings(max_examples=200)
    def test_uppercase_idempotent(self, value):
        fdef = FieldDefinition(key="x", uppercase=True)
        once = coerce_value(value, fdef)
        assert coerce_value(once, fdef) == once

    @given(st.lists(st.text(alphabet="abcxyz ", max_size=5), max_size=6))
    @settings(max_examples=200)
    def test_split_yields_trimmed_nonempty_pieces(self, pieces):
        result = split_value("|".join(pieces), "|")
        assert result == [p.strip() for p in pieces if p.strip()]

    @given(st.decimals(min_value=-10**6, max_value=10**6, places=2, allow_nan=False))
    @settings(max_examples=200)
    def test_number_cast_idempotent(self, amount):
        fdef = FieldDefinition(key="price", type="number")
        once = coerce_value(f"{amount:,}", fdef)
        assert coerce_value(once, fdef) == once
        assert once == pytest.approx(float(amount))
