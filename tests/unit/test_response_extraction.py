"""
Unit tests for ResponseExtractor.

Covers statement boundaries, fenced blocks, role markers, comments and
planning reply parsing.
"""

import pytest

from nl2sql.domain.base_enums import PlannerReplyKind
from nl2sql.repositories.response_extraction import DEFAULT_SUMMARY, ResponseExtractor


def sqls(text):
    return [candidate.sql for candidate in ResponseExtractor.extract(text)]


class TestExtract:
    """Candidate extraction from free text."""

    @pytest.mark.parametrize("text", ["", "I don't know how to answer that."])
    def test_no_sql_is_an_empty_list(self, text):
        assert ResponseExtractor.extract(text) == []

    def test_structured_reply(self):
        text = "EXPLANATION: count orders\nSQL:\nSELECT COUNT(*) FROM Orders;\n###"
        assert sqls(text) == ["SELECT COUNT(*) FROM Orders"]

    def test_fenced_block_wins_over_prose(self):
        text = "Here you go:\n```sql\nSELECT * FROM Orders;\n```\nThis SELECT returns everything from the table."
        assert sqls(text) == ["SELECT * FROM Orders"]

    def test_multiple_statements_in_order_with_duplicates_removed(self):
        text = (
            "SELECT COUNT(*) FROM Orders;\n"
            "SELECT COUNT(*)   FROM Orders;\n"
            "SELECT CategoryName FROM Categories;"
        )
        candidates = ResponseExtractor.extract(text)
        assert [c.sql for c in candidates] == ["SELECT COUNT(*) FROM Orders", "SELECT CategoryName FROM Categories"]
        assert [c.position for c in candidates] == [0, 1]

    def test_blank_line_ends_statement(self):
        text = "SELECT OrderID\nFROM Orders\n\nThis query lists ids."
        assert sqls(text) == ["SELECT OrderID\nFROM Orders"]

    def test_semicolon_wins_over_blank_line_inside_statement(self):
        text = "SELECT OrderID\nFROM Orders\n\nWHERE CustomerID = 'ALFKI';"
        assert sqls(text) == ["SELECT OrderID\nFROM Orders\n\nWHERE CustomerID = 'ALFKI'"]

    def test_blank_line_before_next_statement_still_splits(self):
        text = "SELECT OrderID FROM Orders\n\nSELECT CustomerID FROM Customers;"
        assert sqls(text) == ["SELECT OrderID FROM Orders", "SELECT CustomerID FROM Customers"]

    def test_semicolon_after_section_line_is_ignored(self):
        text = "SELECT OrderID FROM Orders\n\nAll ids\n### notes; more"
        assert sqls(text) == ["SELECT OrderID FROM Orders"]

    def test_section_line_ends_statement(self):
        assert sqls("SELECT OrderID FROM Orders\n### next") == ["SELECT OrderID FROM Orders"]

    def test_role_marker_cuts_hallucinated_turns(self):
        text = "SELECT OrderID FROM Orders;\nUser: now SELECT * FROM Customers;"
        assert sqls(text) == ["SELECT OrderID FROM Orders"]

    def test_commented_statement_is_skipped(self):
        text = "-- SELECT old FROM Archive\nSELECT OrderID FROM Orders;"
        assert sqls(text) == ["SELECT OrderID FROM Orders"]

    def test_statement_without_from_is_dropped(self):
        assert sqls("SELECT 1;") == []

    def test_filler_is_removed(self):
        assert sqls("/**/;/**/; SELECT OrderID FROM Orders") == ["SELECT OrderID FROM Orders"]

    def test_lowercase_select_in_prose_is_not_a_statement(self):
        text = "You can select the rows from the table.\nselect OrderID from Orders"
        assert sqls(text) == ["select OrderID from Orders"]

    def test_cte_is_one_statement(self):
        text = "WITH recent AS (SELECT OrderID FROM Orders) SELECT COUNT(*) FROM recent;"
        assert sqls(text) == ["WITH recent AS (SELECT OrderID FROM Orders) SELECT COUNT(*) FROM recent"]

    def test_semicolon_inside_literal_does_not_end_statement(self):
        text = "SELECT OrderID FROM Orders WHERE CustomerID = 'A;B';"
        assert sqls(text) == ["SELECT OrderID FROM Orders WHERE CustomerID = 'A;B'"]

    def test_first_statement(self):
        assert ResponseExtractor.first_statement("nothing here") is None
        assert ResponseExtractor.first_statement("SELECT a FROM b; SELECT c FROM d;") == "SELECT a FROM b"


class TestParseStepReply:
    """Planning turn parsing."""

    def test_next_step(self):
        text = (
            "EXPLANATION: Count orders per customer\n"
            "SQL:\n"
            "SELECT CustomerID, COUNT(*) FROM Orders GROUP BY CustomerID;\n"
            "###"
        )
        reply = ResponseExtractor.parse_step_reply(text, 1)
        assert reply.kind == PlannerReplyKind.NEXT_STEP
        assert reply.explanation == "Count orders per customer"
        assert reply.sql == "SELECT CustomerID, COUNT(*) FROM Orders GROUP BY CustomerID"

    def test_complete_with_summary(self):
        reply = ResponseExtractor.parse_step_reply("COMPLETE\nSUMMARY: Beverages sell best.\n###", 3)
        assert reply.kind == PlannerReplyKind.COMPLETE
        assert reply.summary == "Beverages sell best."

    def test_complete_without_summary_uses_default(self):
        reply = ResponseExtractor.parse_step_reply("**COMPLETE**", 2)
        assert reply.kind == PlannerReplyKind.COMPLETE
        assert reply.summary == DEFAULT_SUMMARY

    def test_complete_wins_over_sql(self):
        text = "EXPLANATION: x\nSQL:\nSELECT OrderID FROM Orders;\n###\nCOMPLETE\nSUMMARY: done"
        assert ResponseExtractor.parse_step_reply(text, 2).kind == PlannerReplyKind.COMPLETE

    def test_missing_explanation_gets_step_label(self):
        reply = ResponseExtractor.parse_step_reply("SELECT COUNT(*) FROM Orders;", 3)
        assert reply.kind == PlannerReplyKind.NEXT_STEP
        assert reply.explanation == "Step 3"

    def test_unparseable(self):
        reply = ResponseExtractor.parse_step_reply("I am not sure what to do.", 1)
        assert reply.kind == PlannerReplyKind.UNPARSEABLE
        assert reply.sql is None
