"""Tests for effective stock aggregation."""

from catalog.core.stock import aggregate_stock, effective_stock
from conftest import make_row


def test_stock_is_sum_of_variant_stocks():
    assert effective_stock(100, [2, 3, 4]) == 9


def test_stock_falls_back_to_product_stock():
    assert effective_stock(7, []) == 7
    assert effective_stock("7", None) == 7


def test_null_stock_is_zero():
    assert effective_stock(None, []) == 0


def test_null_variant_stocks_ignored():
    assert effective_stock(5, [None, 2]) == 2
    assert effective_stock(5, [None, None]) == 5


def test_stock_never_negative():
    assert effective_stock(-3, []) == 0
    assert effective_stock(0, [-5, 1]) == 0


def test_aggregate_drops_unavailable_rows():
    rows = [
        make_row(1, stock="4", has_variants=1),
        make_row(2, stock=0),
        make_row(3, stock=None),
        make_row(4, stock=-2),
    ]
    result = aggregate_stock(rows)

    assert [r["product_id"] for r in result] == [1]
    assert result[0]["stock"] == 4
    assert result[0]["has_variants"] is True
    assert result[0]["variants"] == []


def test_aggregate_can_keep_unavailable_rows():
    result = aggregate_stock([make_row(2, stock=None)], require_in_stock=False)
    assert result[0]["stock"] == 0
