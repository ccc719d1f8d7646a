"""
Unit tests for SafetyLimiter.
"""

import pytest

from nl2sql.repositories.safety_limits import SafetyLimiter


@pytest.fixture
def limiter():
    return SafetyLimiter(default_row_cap=1000)


class TestApplyLimits:
    def test_unfiltered_query_gets_row_cap(self, limiter):
        assert limiter.apply_limits("SELECT COUNT(*) FROM Orders") == "SELECT TOP 1000 COUNT(*) FROM Orders"

    def test_cap_goes_after_distinct(self, limiter):
        result = limiter.apply_limits("SELECT DISTINCT CategoryID FROM Products")
        assert result == "SELECT DISTINCT TOP 1000 CategoryID FROM Products"

    def test_filtered_query_unchanged(self, limiter):
        sql = "SELECT * FROM Orders WHERE Freight > 10"
        assert limiter.apply_limits(sql) == sql

    @pytest.mark.parametrize(
        "sql",
        [
            "SELECT TOP 5 * FROM Orders",
            "SELECT * FROM Orders ORDER BY OrderID OFFSET 0 ROWS FETCH NEXT 5 ROWS ONLY",
        ],
    )
    def test_existing_limit_unchanged(self, limiter, sql):
        assert limiter.apply_limits(sql) == sql

    def test_cte_caps_outer_select(self, limiter):
        sql = "WITH recent AS (SELECT OrderID FROM Orders) SELECT COUNT(*) FROM recent"
        expected = "WITH recent AS (SELECT OrderID FROM Orders) SELECT TOP 1000 COUNT(*) FROM recent"
        assert limiter.apply_limits(sql) == expected

    def test_where_inside_literal_does_not_count(self, limiter):
        result = limiter.apply_limits("SELECT 'where' AS w FROM Orders")
        assert result == "SELECT TOP 1000 'where' AS w FROM Orders"

    def test_custom_cap(self):
        assert SafetyLimiter(default_row_cap=50).apply_limits("SELECT * FROM Orders") == "SELECT TOP 50 * FROM Orders"


class TestExpenseReasons:
    def test_wildcard_without_where(self, limiter):
        assert limiter.expense_reasons("SELECT * FROM Orders") == [
            "Selects all columns (SELECT *) without a WHERE clause"
        ]

    def test_qualified_wildcard_without_where(self, limiter):
        assert limiter.is_expensive("SELECT o.* FROM Orders o")

    def test_wildcard_with_where_is_fine(self, limiter):
        assert limiter.expense_reasons("SELECT * FROM Orders WHERE Freight > 5") == []

    def test_count_star_is_not_a_wildcard(self, limiter):
        assert not limiter.is_expensive("SELECT COUNT(*) FROM Orders")

    def test_cross_join(self, limiter):
        sql = "SELECT c.CategoryName, p.ProductName FROM Categories c CROSS JOIN Products p"
        assert limiter.expense_reasons(sql) == ["Uses CROSS JOIN, which multiplies row counts"]

    def test_multi_join_without_where(self, limiter):
        sql = (
            "SELECT o.OrderID FROM Orders o "
            "JOIN OrderDetails d ON d.OrderID = o.OrderID "
            "JOIN Products p ON p.ProductID = d.ProductID"
        )
        assert limiter.expense_reasons(sql) == ["Joins 3 tables without a WHERE clause"]

    def test_multi_join_with_where_is_fine(self, limiter):
        sql = (
            "SELECT o.OrderID FROM Orders o "
            "JOIN OrderDetails d ON d.OrderID = o.OrderID "
            "JOIN Products p ON p.ProductID = d.ProductID WHERE o.Freight > 1"
        )
        assert limiter.expense_reasons(sql) == []
