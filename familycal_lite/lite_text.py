"""Free-text unescaping and cleanup for ICS property values - familycal_lite."""

import re

# RFC 5545 TEXT escapes, applied one after another in this order; the escaped
# backslash must stay last.
_ICS_ESCAPES: tuple[tuple[str, str], ...] = (
    ("\\n", "\n"),
    ("\\N", "\n"),
    ("\\r", "\r"),
    ("\\t", "\t"),
    ("\\,", ","),
    ("\\;", ";"),
    ('\\"', '"'),
    ("\\\\", "\\"),
)

_WHITESPACE_RE = re.compile(r"\s+")
_DUPLICATE_COMMA_RE = re.compile(r",\s*,")


def unescape_ics(value: str | None) -> str:
    """Resolve ICS escape sequences in a TEXT value.

    Args:
        value: Raw property value, possibly None

    Returns:
        Unescaped text, or an empty string for empty input
    """
    if not value:
        return ""

    text = value
    for escaped, replacement in _ICS_ESCAPES:
        text = text.replace(escaped, replacement)
    return text


def clean_string(value: str | None) -> str:
    """Normalize a title or description to a single line.

    Line breaks become single spaces and runs of whitespace are collapsed.
    """
    if not value:
        return ""

    text = unescape_ics(value).replace("\n", " ").replace("\r", " ")
    return _WHITESPACE_RE.sub(" ", text).strip()


def clean_address(value: str | None) -> str:
    """Normalize a LOCATION value into a one-line address.

    Line breaks become ", " separators, duplicate commas left behind by blank
    address lines are merged, then whitespace is collapsed.
    """
    if not value:
        return ""

    text = unescape_ics(value).replace("\n", ", ").replace("\r", ", ")
    text = _DUPLICATE_COMMA_RE.sub(",", text)
    return _WHITESPACE_RE.sub(" ", text).strip()
