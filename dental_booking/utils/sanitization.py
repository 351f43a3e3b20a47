import html
import re
from typing import Optional

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")


def validate_and_sanitize_input(value: Optional[str], max_length: int = 500) -> Optional[str]:
    """
    Validate and sanitize free-text user input.

    Args:
        value: Input string to validate
        max_length: Maximum allowed length

    Returns:
        Sanitized string, or None when the input is None

    Raises:
        ValueError: If input is too long
    """
    if value is None:
        return None

    value = str(value).strip()

    if len(value) > max_length:
        raise ValueError(f"Input exceeds maximum length of {max_length} characters")

    value = html.escape(value, quote=True)

    return _CONTROL_CHARS.sub("", value)
