"""
Response Extraction Repository.

Pulls candidate SQL statements out of unstructured model text and parses
multi-step planning replies.

Extraction steps (in order):
1. Remove "/**/;" filler. If fenced code blocks exist, keep only their contents
2. Cut everything from the first line-leading role marker (User:, Human:, Assistant:)
3. Find statement starts (a CTE "WITH name AS (" or a SELECT token) and run each
   to the first ";" before any "###" line; a blank line ends the statement
   only when no ";" follows or the next line opens another statement
4. Drop spans that start inside a comment and spans without a FROM token
5. Trim, strip trailing semicolons, de-duplicate on whitespace-collapsed text

An empty result is a normal outcome, not an error.
"""

import re
from typing import List, Optional

from nl2sql.domain.base_enums import PlannerReplyKind
from nl2sql.domain.plan import PlannerReply
from nl2sql.domain.responses import Candidate
from nl2sql.utils.logging import get_module_logger
from nl2sql.utils.sql_text import collapse_whitespace, has_keyword, in_comment, mask_sql
from nl2sql.utils.tracing import current_trace_id

logger = get_module_logger()

DEFAULT_SUMMARY = "Analysis complete based on previous steps."

FENCED_BLOCK = re.compile(r"```(?:[A-Za-z+-]+[ \t]*\n|[ \t]*\n)?(.*?)```", re.DOTALL)
STRAY_FENCE = re.compile(r"```[A-Za-z+-]*")
FILLER = re.compile(r"(?:/\*\*/\s*;\s*)+")
ROLE_MARKER = re.compile(r"^[ \t]*(?:Human|Assistant|User)[ \t]*:", re.MULTILINE | re.IGNORECASE)

STATEMENT_START = re.compile(
    r"(?<![\w@#$])(?:WITH\s+(?:\[[^\]]+\]|\w+)\s*(?:\([^()]*\))?\s*AS\s*\(|SELECT(?![\w$#]))",
    re.IGNORECASE,
)
BLANK_LINE = re.compile(r"\n[ \t]*\n")
SECTION_LINE = re.compile(r"^[ \t]*###", re.MULTILINE)

COMPLETE_MARKER = re.compile(r"^[ \t*]*COMPLETE\b", re.MULTILINE | re.IGNORECASE)
SUMMARY_BLOCK = re.compile(r"SUMMARY\s*:\s*(?P<summary>.*?)(?=^[ \t]*###|\Z)", re.DOTALL | re.MULTILINE | re.IGNORECASE)
EXPLANATION_BLOCK = re.compile(
    r"EXPLANATION\s*:\s*(?P<explanation>.*?)(?=^[ \t]*SQL\s*:|^[ \t]*###|\Z)",
    re.DOTALL | re.MULTILINE | re.IGNORECASE,
)
SQL_MARKER = re.compile(r"^[ \t]*SQL\s*:", re.MULTILINE | re.IGNORECASE)


class ResponseExtractor:
    """Turns raw model text into candidate statements."""

    @staticmethod
    def _clean(text: str) -> str:
        cleaned = FILLER.sub(" ", text)

        blocks = FENCED_BLOCK.findall(cleaned)
        if blocks:
            cleaned = "\n\n".join(block.strip() for block in blocks)
        else:
            cleaned = STRAY_FENCE.sub("", cleaned)

        marker = ROLE_MARKER.search(cleaned)
        if marker:
            cleaned = cleaned[:marker.start()]

        return cleaned

    @staticmethod
    def _plausible_start(text: str, match: "re.Match[str]") -> bool:
        """Uppercase keywords start anywhere; other casings only at the start of a line."""
        keyword = match.group(0).split()[0].split("(")[0]
        if keyword.isupper():
            return True
        line_start = text.rfind("\n", 0, match.start()) + 1
        return text[line_start:match.start()].strip() == ""

    @staticmethod
    def _span_end(text: str, start: int) -> int:
        """
        Offset where the statement starting at start ends.

        A "###" line is a hard stop. Before it, the first ";" ends the
        statement; a blank line only ends it when no ";" follows or when the
        next line opens another statement.
        """
        tail = text[start:]
        section = SECTION_LINE.search(tail)
        hard_end = section.start() if section else len(tail)

        semicolon = mask_sql(tail[:hard_end], mask_identifiers=False).find(";")
        soft_end = semicolon if semicolon != -1 else hard_end

        for blank in BLANK_LINE.finditer(tail, 0, soft_end):
            if semicolon == -1 or STATEMENT_START.match(tail[blank.end():].lstrip()):
                return start + blank.start()

        return start + soft_end

    @classmethod
    def extract(cls, raw_text: str) -> List[Candidate]:
        """
        Extract candidate statements in source order.

        Args:
            raw_text: Raw model output

        Returns:
            Candidates without trailing semicolons, duplicates removed
        """
        if not raw_text:
            return []

        text = cls._clean(raw_text)
        candidates: List[Candidate] = []
        seen = set()
        pos = 0

        while True:
            match = STATEMENT_START.search(text, pos)
            if match is None:
                break

            start = match.start()
            if not cls._plausible_start(text, match) or in_comment(text, start):
                pos = match.end()
                continue

            end = cls._span_end(text, start)
            pos = max(end, match.end())

            statement = text[start:end].strip().rstrip(";").strip()
            if not has_keyword(mask_sql(statement, mask_identifiers=False), "from"):
                continue

            key = collapse_whitespace(statement)
            if key in seen:
                continue
            seen.add(key)

            candidates.append(Candidate(sql=statement, position=len(candidates)))

        logger.debug(
            "Candidates extracted",
            candidate_count=len(candidates),
            response_length=len(raw_text),
            trace_id=current_trace_id(),
        )
        return candidates

    @classmethod
    def first_statement(cls, raw_text: str) -> Optional[str]:
        candidates = cls.extract(raw_text)
        return candidates[0].sql if candidates else None

    @classmethod
    def parse_step_reply(cls, raw_text: str, step_number: int) -> PlannerReply:
        """
        Parse one planning turn.

        A line starting with COMPLETE wins over everything else. Otherwise an
        EXPLANATION plus a statement (preferably after "SQL:") is a next step.
        Anything else is unparseable.
        """
        text = raw_text or ""
        marker = ROLE_MARKER.search(text)
        if marker:
            text = text[:marker.start()]

        if COMPLETE_MARKER.search(text):
            summary_match = SUMMARY_BLOCK.search(text)
            summary = summary_match.group("summary").strip() if summary_match else ""
            return PlannerReply(kind=PlannerReplyKind.COMPLETE, summary=summary or DEFAULT_SUMMARY)

        sql: Optional[str] = None
        sql_marker = SQL_MARKER.search(text)
        if sql_marker:
            sql = cls.first_statement(text[sql_marker.end():])
        if sql is None:
            sql = cls.first_statement(text)

        if sql is None:
            return PlannerReply(kind=PlannerReplyKind.UNPARSEABLE)

        explanation_match = EXPLANATION_BLOCK.search(text)
        explanation = collapse_whitespace(explanation_match.group("explanation")) if explanation_match else ""

        return PlannerReply(
            kind=PlannerReplyKind.NEXT_STEP,
            explanation=explanation or f"Step {step_number}",
            sql=sql,
        )
