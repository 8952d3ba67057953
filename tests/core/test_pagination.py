"""Tests for activesql.core.pagination — Page, Order, resolve_page."""

from __future__ import annotations

import pytest

from activesql.core.dialect import DB2Dialect, OracleDialect, SQLiteDialect
from activesql.core.errors import InvalidPage
from activesql.core.pagination import Direction, Order, Page, PageResult, resolve_page


class TestOrder:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("name", Order("name", Direction.ASC)),
            ("name desc", Order("name", Direction.DESC)),
            ("name ASC", Order("name", Direction.ASC)),
            ("-created_at", Order("created_at", Direction.DESC)),
        ],
    )
    def test_parse(self, text, expected):
        assert Order.parse(text) == expected

    def test_bad_direction(self):
        with pytest.raises(InvalidPage):
            Order.parse("name sideways")


class TestPage:
    def test_defaults(self):
        page = Page()
        assert (page.page_number, page.page_size, page.offset) == (1, 20, 0)

    def test_offset_is_one_based(self):
        assert Page(3, 10).offset == 20
        assert Page(3, 10).limit == 10

    @pytest.mark.parametrize("number, size", [(0, 10), (1, 0), (-1, 5), (1, -5)])
    def test_out_of_range(self, number, size):
        with pytest.raises(InvalidPage):
            Page(number, size)

    @pytest.mark.parametrize("number, size", [("1", 10), (1, 2.5), (True, 10)])
    def test_non_integer(self, number, size):
        with pytest.raises(InvalidPage):
            Page(number, size)

    def test_offset_overflow(self):
        with pytest.raises(InvalidPage):
            Page(2**62, 4)

    def test_order_coerced(self):
        page = Page(1, 10, order_by="id desc")
        assert page.order_by == (Order("id", Direction.DESC),)
        assert Page(1, 10, order_by=("a", Order("b"))).order_by == (Order("a"), Order("b"))

    def test_next(self):
        assert Page(1, 10, order_by="id").next() == Page(2, 10, order_by="id")


class TestPageResult:
    def test_totals(self):
        result = PageResult(items=[1, 2, 3], page=Page(1, 3), total=7)
        assert result.total_pages == 3
        assert result.has_next
        assert len(result) == 3
        assert list(result) == [1, 2, 3]

    def test_last_page(self):
        assert not PageResult(items=[7], page=Page(3, 3), total=7).has_next

    def test_empty(self):
        result = PageResult(items=[], page=Page(), total=0)
        assert result.total_pages == 0
        assert not result.has_next


class TestResolvePage:
    def test_limit_offset_bound_as_parameters(self):
        sql, params = resolve_page("SELECT * FROM users ORDER BY id", Page(2, 10), SQLiteDialect())
        assert sql == "SELECT * FROM users ORDER BY id LIMIT ? OFFSET ?"
        assert params == (10, 10)

    def test_trailing_semicolon_stripped(self):
        sql, _ = resolve_page("SELECT * FROM users ORDER BY id;", Page(), SQLiteDialect())
        assert sql.endswith("ORDER BY id LIMIT ? OFFSET ?")

    def test_requested_order_appended(self):
        sql, _ = resolve_page("SELECT * FROM users", Page(1, 5, order_by="-id"), SQLiteDialect())
        assert sql == "SELECT * FROM users ORDER BY id DESC LIMIT ? OFFSET ?"

    def test_requested_order_wraps_ordered_query(self):
        sql, _ = resolve_page(
            "SELECT * FROM users ORDER BY name", Page(1, 5, order_by="id"), SQLiteDialect()
        )
        assert sql.startswith("SELECT * FROM (SELECT * FROM users ORDER BY name) page_base ORDER BY id")

    def test_db2_values_in_fragment_order(self):
        sql, params = resolve_page("SELECT * FROM t ORDER BY id", Page(3, 25), DB2Dialect())
        assert sql.endswith("OFFSET ? ROWS FETCH NEXT ? ROWS ONLY")
        assert params == (50, 25)

    def test_oracle_numbers_continue_after_start(self):
        sql, params = resolve_page("SELECT * FROM t WHERE a = :1 ORDER BY id", Page(1, 5), OracleDialect(), start=1)
        assert sql.endswith("OFFSET :2 ROWS FETCH NEXT :3 ROWS ONLY")
        assert params == (0, 5)

    def test_unordered_later_page_still_resolves(self):
        sql, params = resolve_page("SELECT * FROM users", Page(2, 10), SQLiteDialect())
        assert sql == "SELECT * FROM users LIMIT ? OFFSET ?"
        assert params == (10, 10)
