"""Text sanitization utilities to prevent XSS attacks."""

import html


def sanitize_text(value: str | None) -> str | None:
    """Sanitize user-supplied text to prevent stored XSS.

    Strips surrounding whitespace and HTML-escapes dangerous characters
    (&, <, >, ", ') so that names and notes are safe to render on the
    dashboard and inside bills.
    """
    if not isinstance(value, str):
        return value
    return html.escape(value.strip(), quote=True)
