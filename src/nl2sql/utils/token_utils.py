"""
Input validation and text trimming utilities for model and console output.

Uses plain character counts for limits; no tokenizer is involved.
"""

from typing import Any, Optional


def truncate_value(value: Any, max_length: int) -> str:
    """
    Render a result cell as text no longer than max_length.

    None renders as "NULL". Values over the limit are cut and end with "...".

    Example:
        >>> truncate_value(None, 50)
        'NULL'
        >>> truncate_value("a" * 60, max_length=10)
        'aaaaaaa...'
    """
    if value is None:
        return "NULL"

    text = str(value)
    if len(text) <= max_length:
        return text

    if max_length <= 3:
        return text[:max_length]
    return text[:max_length - 3] + "..."


class InputValidator:
    """
    Input validation utility for checking character limits.

    Uses simple character count checks against hard limits.
    """

    @staticmethod
    def validate_total_chars(
        prompt: str,
        system_prompt: Optional[str] = None,
        max_chars: int = 0
    ) -> None:
        """
        Validate total character count for a model request.

        Args:
            prompt: User prompt text
            system_prompt: Optional system prompt
            max_chars: Maximum allowed total characters

        Raises:
            ValueError: If total exceeds character limit

        Example:
            >>> InputValidator.validate_total_chars("Hello", system_prompt="Hi", max_chars=1000)  # OK
        """
        total_chars = len(prompt)
        if system_prompt:
            total_chars += len(system_prompt)

        if total_chars > max_chars:
            raise ValueError(
                f"Total input too large: {total_chars} characters, "
                f"maximum allowed: {max_chars}"
            )
