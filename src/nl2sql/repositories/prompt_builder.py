"""
Prompt Builder Repository.

Assembles the text prompt sent to the model. Sections always appear in
the same order:

1. Role/task preamble (or caller-supplied instructions)
2. Database schema block
3. Prior exchange summaries
4. Results of earlier plan steps (multi-step only)
5. The question
6. Output-format contract with the T-SQL dialect rules

Building is a pure function of its inputs; the contract text for a given
mode never changes between calls.
"""

from typing import List, Optional, Sequence, Tuple

from nl2sql.domain.base_enums import PromptMode

DIALECT_RULES = (
    "- Use SQL Server T-SQL syntax (GETDATE(), DATEADD(), TOP N, etc.)",
    "- Use TOP N to limit rows; never use LIMIT",
    "- Use SELECT statements only (no INSERT, UPDATE, DELETE, DROP)",
)

SINGLE_STEP_PREAMBLE = (
    "You are a SQL Server expert. Translate the user's question into exactly one "
    "T-SQL SELECT query over the schema below."
)

CONVERSATIONAL_PREAMBLE = (
    "You are a helpful database analyst. Answer the user's question with clear explanations.\n"
    "You can generate multiple SQL queries to support your analysis."
)

MULTI_STEP_PREAMBLE = (
    "You are an expert SQL analyst performing multi-step query reasoning.\n"
    "Break complex questions into logical steps. Execute one query at a time."
)

SINGLE_STEP_CONTRACT = (
    "- Respond with exactly one SQL query and nothing else",
    "- End the query with a semicolon",
    "- Use only tables and columns from the schema above",
) + DIALECT_RULES

CONVERSATIONAL_CONTRACT = (
    "- Provide a helpful response with explanations",
    "- Include SQL queries when needed to answer the question",
    "- Format each SQL query clearly on its own line(s) ending with semicolon",
) + DIALECT_RULES

MULTI_STEP_OPTIONS = """You have TWO options:

OPTION 1: Generate the next SQL query
Format:
EXPLANATION: [One sentence explaining this step]
SQL:
[Your T-SQL query here];
###

OPTION 2: If all necessary data has been gathered, provide final summary
Format:
COMPLETE
SUMMARY: [Comprehensive answer to user's original question based on all results]
###"""

MULTI_STEP_RULES = (
    "1. Use ONLY tables/columns from the schema above",
    "2. Use T-SQL syntax (dbo. prefix, GETDATE(), TOP N, DATEADD); never use LIMIT",
    "3. SELECT statements only; never modify data or schema",
    "4. Reference results from previous steps when building queries",
    "5. Each query should build logically on previous results",
    "6. When you have enough data to answer the original question, output COMPLETE",
)


class PromptBuilder:
    """Builds model prompts for every question mode."""

    def build(
        self,
        question: str,
        schema_block: str,
        history: Sequence[str] = (),
        mode: PromptMode = PromptMode.SINGLE_STEP,
        instructions: Optional[str] = None,
        step_number: Optional[int] = None,
        prior_results: Sequence[Tuple[int, str]] = (),
    ) -> str:
        """
        Build a prompt.

        Args:
            question: User question (the original question in multi-step mode)
            schema_block: Rendered schema, full or filtered
            history: Prior exchange summaries or plan notes, oldest first
            mode: Output contract to request
            instructions: Replaces the default role/task preamble
            step_number: Next step number (multi-step only)
            prior_results: (step_number, digest) for executed plan steps

        Returns:
            Prompt text
        """
        if mode == PromptMode.MULTI_STEP:
            return self._build_multi_step(
                question, schema_block, history, instructions, step_number or 1, prior_results
            )

        if mode == PromptMode.CONVERSATIONAL:
            preamble, contract = CONVERSATIONAL_PREAMBLE, CONVERSATIONAL_CONTRACT
        else:
            preamble, contract = SINGLE_STEP_PREAMBLE, SINGLE_STEP_CONTRACT

        sections: List[str] = [
            f"### Task\n{instructions or preamble}",
            f"### Database Schema\n{schema_block.strip()}",
        ]
        if history:
            sections.append("### Previous Context\n" + "\n".join(history))
        sections.append(f"### Question\n{question.strip()}")
        sections.append("### Instructions\n" + "\n".join(contract))
        sections.append("### Response:")

        return "\n\n".join(sections) + "\n"

    def _build_multi_step(
        self,
        question: str,
        schema_block: str,
        history: Sequence[str],
        instructions: Optional[str],
        step_number: int,
        prior_results: Sequence[Tuple[int, str]],
    ) -> str:
        sections: List[str] = [
            f"### ROLE\n{instructions or MULTI_STEP_PREAMBLE}",
            f"### DATABASE SCHEMA\n{schema_block.strip()}",
            f"### ORIGINAL USER QUESTION\n{question.strip()}",
        ]

        if history:
            sections.append("### PREVIOUS STEPS COMPLETED\n" + "\n".join(f"- {note}" for note in history))

        if prior_results:
            results = "\n\n".join(f"Step {number} returned:\n{digest}" for number, digest in prior_results)
            sections.append(f"### RESULTS FROM PREVIOUS QUERIES\n{results}")

        sections.append(
            f"### YOUR TASK - STEP {step_number}\n"
            "Determine the next logical step to answer the user's question.\n\n"
            f"{MULTI_STEP_OPTIONS}"
        )
        sections.append("### IMPORTANT RULES\n" + "\n".join(MULTI_STEP_RULES))
        sections.append("### RESPONSE\nProvide your response now:")

        return "\n\n".join(sections) + "\n"
