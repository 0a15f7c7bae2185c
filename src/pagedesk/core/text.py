from __future__ import annotations

import html


def decode_entities(value: object) -> str:
    """Turn an HTML-entity encoded string (``Hello &amp; World``) into display text."""
    if value is None:
        return ""
    text = value if isinstance(value, str) else str(value)
    if "&" not in text:
        return text
    return html.unescape(text)


def encode_entities(value: object) -> str:
    if value is None:
        return ""
    text = value if isinstance(value, str) else str(value)
    return html.escape(text, quote=False)
