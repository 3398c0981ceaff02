"""Tests for the list query builder."""

import pytest

from certdispatch.core.errors import ValidationError
from certdispatch.core.listing import (
    FieldKind,
    FieldSpec,
    Filter,
    PageInfo,
    Sort,
    SortDirection,
    build_list_query,
    parse_filter,
    parse_sort,
)

FIELDS = {
    "name": FieldSpec("name"),
    "status": FieldSpec("status"),
    "user_id": FieldSpec("user_id", FieldKind.INTEGER),
    "is_ecc": FieldSpec("is_ecc", FieldKind.BOOLEAN),
}
COLUMNS = ("id", "name", "status")
DEFAULT_SORT = Sort(field="name")


def build(filters=(), page=None, count=False):
    return build_list_query(COLUMNS, "certificate", page or PageInfo(), DEFAULT_SORT, list(filters), FIELDS, count)


class TestCountMode:
    def test_count_query_has_no_order_or_limit(self):
        sql, params = build(count=True)
        assert sql == "SELECT COUNT(*) AS total FROM certificate WHERE is_deleted = 0"
        assert params == ()

    def test_count_query_binds_filters(self):
        sql, params = build([Filter("status", "equals", ("ready",))], count=True)
        assert "status = ?" in sql
        assert params == ("ready",)


class TestRowMode:
    def test_default_sort_and_pagination(self):
        sql, params = build(page=PageInfo(limit=5, offset=10))
        assert sql == (
            "SELECT id, name, status FROM certificate WHERE is_deleted = 0 "
            "ORDER BY name ASC LIMIT ? OFFSET ?"
        )
        assert params == (5, 10)

    def test_explicit_sort_replaces_default(self):
        page = PageInfo(sort=[Sort("status", SortDirection.DESC), Sort("name")])
        sql, _ = build(page=page)
        assert "ORDER BY status DESC, name ASC" in sql

    def test_unknown_sort_field_rejected(self):
        with pytest.raises(ValidationError):
            build(page=PageInfo(sort=[Sort("secret")]))

    @pytest.mark.parametrize("limit", [0, -1, 100_000])
    def test_limit_bounds(self, limit):
        with pytest.raises(ValidationError):
            build(page=PageInfo(limit=limit))

    def test_negative_offset_rejected(self):
        with pytest.raises(ValidationError):
            build(page=PageInfo(offset=-1))


class TestModifiers:
    @pytest.mark.parametrize(
        ("modifier", "clause", "bound"),
        [
            ("equals", "name = ?", "web"),
            ("not", "name != ?", "web"),
            ("contains", "name LIKE ?", "%web%"),
            ("starts", "name LIKE ?", "web%"),
            ("ends", "name LIKE ?", "%web"),
            ("min", "name >= ?", "web"),
            ("max", "name <= ?", "web"),
        ],
    )
    def test_single_value_modifiers(self, modifier, clause, bound):
        sql, params = build([Filter("name", modifier, ("web",))], count=True)
        assert clause in sql
        assert params == (bound,)

    def test_in_and_notin(self):
        sql, params = build(
            [Filter("status", "in", ("ready", "error")), Filter("name", "notin", ("a",))],
            count=True,
        )
        assert "status IN (?, ?)" in sql
        assert "name NOT IN (?)" in sql
        assert params == ("ready", "error", "a")

    def test_boolean_coercion(self):
        _, params = build([Filter("is_ecc", "equals", ("true",))], count=True)
        assert params == (1,)

    def test_integer_coercion(self):
        _, params = build([Filter("user_id", "min", ("3",))], count=True)
        assert params == (3,)

    @pytest.mark.parametrize(
        "flt",
        [
            Filter("secret", "equals", ("x",)),
            Filter("name", "regex", ("x",)),
            Filter("name", "equals", ()),
            Filter("user_id", "equals", ("abc",)),
            Filter("is_ecc", "equals", ("maybe",)),
        ],
    )
    def test_invalid_filters_rejected(self, flt):
        with pytest.raises(ValidationError):
            build([flt])


class TestParsing:
    def test_parse_sort(self):
        assert parse_sort("name") == Sort("name", SortDirection.ASC)
        assert parse_sort("expires_on.desc") == Sort("expires_on", SortDirection.DESC)

    def test_parse_sort_rejects_bad_direction(self):
        with pytest.raises(ValidationError):
            parse_sort("name.sideways")

    def test_parse_filter(self):
        assert parse_filter("status:in:ready,error") == Filter("status", "in", ("ready", "error"))
        assert parse_filter("name:web") == Filter("name", "equals", ("web",))

    def test_parse_filter_rejects_bare_field(self):
        with pytest.raises(ValidationError):
            parse_filter("name")
