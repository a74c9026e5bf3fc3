"""
tests/test_comparator.py
------------------------
Unit tests for core/comparator.py.
Run with: python -m pytest tests/
"""
from __future__ import annotations

import pytest

from core.comparator import Comparator
from core.schema import Column, ForeignKey, Index, Schema
from core.types import ColumnType
from tests.conftest import int_column, make_table, primary_key, uid_column, varchar_column


@pytest.fixture
def comparator(mysql) -> Comparator:
    return Comparator(mysql)


def _schema(*tables) -> Schema:
    return Schema.from_tables(tables, name="app")


# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------

class TestCompareTables:
    def test_identical_schemas(self, comparator, items_table) -> None:
        diff = comparator.compare(_schema(items_table), _schema(items_table))
        assert diff.is_empty

    def test_new_table(self, comparator, items_table) -> None:
        diff = comparator.compare(_schema(), _schema(items_table))
        assert list(diff.new_tables) == ["tx_ext_items"]

    def test_removed_table(self, comparator, items_table) -> None:
        diff = comparator.compare(_schema(items_table), _schema())
        assert list(diff.removed_tables) == ["tx_ext_items"]

    def test_table_names_case_insensitive(self, comparator, items_table) -> None:
        upper = make_table("TX_EXT_ITEMS", *items_table.columns, indexes=items_table.indexes)
        assert comparator.compare(_schema(items_table), _schema(upper)).is_empty

    def test_diff_keeps_live_schema(self, comparator, items_table) -> None:
        live = _schema(items_table)
        assert comparator.compare(live, _schema()).from_schema is live


# ---------------------------------------------------------------------------
# Columns
# ---------------------------------------------------------------------------

class TestCompareColumns:
    def test_added_and_removed(self, comparator) -> None:
        live = make_table("pages", uid_column(), int_column("sorting"))
        expected = make_table("pages", uid_column(), varchar_column("title"))
        table_diff = comparator.diff_table(live, expected)
        assert list(table_diff.added_columns) == ["title"]
        assert list(table_diff.removed_columns) == ["sorting"]

    def test_changed_type(self, comparator) -> None:
        live = make_table("pages", varchar_column("title", 255))
        expected = make_table("pages", varchar_column("title", 100))
        column_diff = comparator.diff_table(live, expected).changed_columns["title"]
        assert column_diff.changed_properties == ("type",)
        assert column_diff.from_column.length == 255
        assert column_diff.is_rename is False

    def test_equivalent_defaults_are_equal(self, comparator) -> None:
        live = make_table("pages", Column("price", ColumnType.DECIMAL, precision=10, scale=2, default="0.00"))
        expected = make_table("pages", Column("price", ColumnType.DECIMAL, precision=10, scale=2, default="0"))
        assert comparator.diff_table(live, expected).is_empty

    def test_notnull_and_default(self, comparator) -> None:
        live = make_table("pages", Column("pid", ColumnType.INTEGER, default=None))
        expected = make_table("pages", int_column("pid"))
        assert comparator.diff_column(live.columns[0], expected.columns[0]) == ("notnull", "default")

    def test_charset_only_compared_when_both_known(self, comparator) -> None:
        live = Column("slug", ColumnType.STRING, length=64, platform_options={"charset": "utf8mb4"})
        expected = Column("slug", ColumnType.STRING, length=64)
        assert comparator.diff_column(live, expected) == ()
        expected = Column("slug", ColumnType.STRING, length=64, platform_options={"charset": "ascii"})
        assert comparator.diff_column(live, expected) == ("charset",)

    def test_unique_rename_candidate_detected(self, comparator) -> None:
        live = make_table("pages", uid_column(), varchar_column("old_field"))
        expected = make_table("pages", uid_column(), varchar_column("new_field"))
        table_diff = comparator.diff_table(live, expected)
        assert list(table_diff.renamed_columns) == ["old_field"]
        assert table_diff.renamed_columns["old_field"].name == "new_field"
        assert table_diff.added_columns == {}
        assert table_diff.removed_columns == {}

    def test_ambiguous_rename_stays_add_and_remove(self, comparator) -> None:
        live = make_table("pages", varchar_column("a"), varchar_column("b"))
        expected = make_table("pages", varchar_column("c"))
        table_diff = comparator.diff_table(live, expected)
        assert table_diff.renamed_columns == {}
        assert list(table_diff.added_columns) == ["c"]
        assert list(table_diff.removed_columns) == ["a", "b"]


# ---------------------------------------------------------------------------
# Indexes, foreign keys and options
# ---------------------------------------------------------------------------

class TestCompareKeys:
    def test_changed_index(self, comparator) -> None:
        live = make_table("pages", indexes=[Index("parent", ("pid",))])
        expected = make_table("pages", indexes=[Index("parent", ("pid", "deleted"))])
        table_diff = comparator.diff_table(live, expected)
        assert list(table_diff.changed_indexes) == ["parent"]

    def test_renamed_index(self, comparator) -> None:
        live = make_table("pages", indexes=[Index("pid", ("pid",))])
        expected = make_table("pages", indexes=[Index("parent", ("pid",))])
        table_diff = comparator.diff_table(live, expected)
        assert table_diff.renamed_indexes["pid"].name == "parent"
        assert table_diff.added_indexes == {}
        assert table_diff.removed_indexes == {}

    def test_primary_key_matched_by_role(self, comparator) -> None:
        live = make_table("pages", indexes=[Index("PRIMARY", ("uid",), unique=True, primary=True)])
        expected = make_table("pages", indexes=[primary_key("uid")])
        assert comparator.diff_table(live, expected).is_empty

    def test_foreign_key_name_ignored_when_equivalent(self, comparator) -> None:
        # RESTRICT and NO ACTION are the same for immediate constraints
        live = make_table("items", foreign_keys=[ForeignKey("items_ibfk_1", ("pid",), "pages", ("uid",))])
        expected = make_table(
            "items", foreign_keys=[ForeignKey("fk_parent", ("pid",), "pages", ("uid",), on_delete="RESTRICT")],
        )
        assert comparator.diff_table(live, expected).is_empty

    def test_changed_foreign_key(self, comparator) -> None:
        live = make_table("items", foreign_keys=[ForeignKey("fk_parent", ("pid",), "pages", ("uid",))])
        expected = make_table(
            "items", foreign_keys=[ForeignKey("fk_parent", ("pid",), "pages", ("uid",), on_delete="CASCADE")],
        )
        table_diff = comparator.diff_table(live, expected)
        assert table_diff.changed_foreign_keys["fk_parent"].on_delete == "CASCADE"

    def test_new_and_removed_foreign_keys(self, comparator) -> None:
        live = make_table("items", foreign_keys=[ForeignKey("fk_old", ("pid",), "pages", ("uid",))])
        expected = make_table("items", foreign_keys=[ForeignKey("fk_cat", ("cat",), "categories", ("uid",))])
        table_diff = comparator.diff_table(live, expected)
        assert list(table_diff.added_foreign_keys) == ["fk_cat"]
        assert list(table_diff.removed_foreign_keys) == ["fk_old"]

    @pytest.mark.parametrize("live, expected, changed", [
        ({"engine": "InnoDB"}, {"engine": "innodb"}, {}),
        ({"engine": "InnoDB"}, {"engine": "MyISAM"}, {"engine": "MyISAM"}),
        ({}, {"engine": "MyISAM"}, {}),
        ({"comment": "Items"}, {"comment": "items"}, {"comment": "items"}),
    ])
    def test_table_options(self, comparator, live, expected, changed) -> None:
        assert comparator.diff_table_options(
            make_table("pages", options=live), make_table("pages", options=expected),
        ) == changed
