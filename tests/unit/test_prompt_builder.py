"""
Unit tests for PromptBuilder.
"""

from nl2sql.domain.base_enums import PromptMode
from nl2sql.repositories.prompt_builder import DIALECT_RULES, PromptBuilder

SCHEMA = "Table: dbo.Orders\n  - OrderID (int, PRIMARY KEY)"


class TestSingleStepPrompt:
    def test_section_order(self):
        prompt = PromptBuilder().build("How many orders?", SCHEMA)
        headings = ["### Task", "### Database Schema", "### Question", "### Instructions", "### Response:"]
        positions = [prompt.index(h) for h in headings]
        assert positions == sorted(positions)
        assert prompt.endswith("### Response:\n")

    def test_contains_schema_question_and_dialect_rules(self):
        prompt = PromptBuilder().build("  How many orders?  ", SCHEMA)
        assert SCHEMA in prompt
        assert "### Question\nHow many orders?\n" in prompt
        for rule in DIALECT_RULES:
            assert rule in prompt

    def test_history_section_only_when_present(self):
        builder = PromptBuilder()
        assert "### Previous Context" not in builder.build("q", SCHEMA)

        prompt = builder.build("q", SCHEMA, history=["Q: first\nSQL: SELECT 1", "Q: second\nSQL: SELECT 2"])
        assert "### Previous Context\nQ: first\nSQL: SELECT 1\nQ: second\nSQL: SELECT 2" in prompt
        assert prompt.index("### Previous Context") < prompt.index("### Question")

    def test_custom_instructions_replace_preamble(self):
        prompt = PromptBuilder().build("q", SCHEMA, instructions="Answer like a pirate.")
        assert "### Task\nAnswer like a pirate." in prompt

    def test_build_is_deterministic(self):
        builder = PromptBuilder()
        assert builder.build("q", SCHEMA, history=["h"]) == builder.build("q", SCHEMA, history=["h"])

    def test_conversational_contract_differs(self):
        builder = PromptBuilder()
        single = builder.build("q", SCHEMA)
        conversational = builder.build("q", SCHEMA, mode=PromptMode.CONVERSATIONAL)
        assert "exactly one SQL query" in single
        assert "multiple SQL queries" in conversational


class TestMultiStepPrompt:
    def test_first_step_layout(self):
        prompt = PromptBuilder().build("Which category sells best?", SCHEMA, mode=PromptMode.MULTI_STEP, step_number=1)
        assert "### ORIGINAL USER QUESTION\nWhich category sells best?" in prompt
        assert "### YOUR TASK - STEP 1" in prompt
        assert "EXPLANATION:" in prompt and "COMPLETE" in prompt
        assert "### PREVIOUS STEPS COMPLETED" not in prompt
        assert "### RESULTS FROM PREVIOUS QUERIES" not in prompt
        assert prompt.endswith("### RESPONSE\nProvide your response now:\n")

    def test_notes_and_results_are_included(self):
        prompt = PromptBuilder().build(
            "Which category sells best?",
            SCHEMA,
            history=["Step 1 executed successfully. Results: 2 rows"],
            mode=PromptMode.MULTI_STEP,
            step_number=2,
            prior_results=[(1, "Columns: CategoryName, Total\nRows: 2")],
        )
        assert "### PREVIOUS STEPS COMPLETED\n- Step 1 executed successfully. Results: 2 rows" in prompt
        assert "Step 1 returned:\nColumns: CategoryName, Total\nRows: 2" in prompt
        assert "### YOUR TASK - STEP 2" in prompt
        assert prompt.index("### PREVIOUS STEPS COMPLETED") < prompt.index("### RESULTS FROM PREVIOUS QUERIES")
