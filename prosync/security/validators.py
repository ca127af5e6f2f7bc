"""
Output sanitization for text that comes back from the AI provider.

Model output is untrusted: it is shown verbatim in the client, so markup
that could execute is removed before it is returned or stored.
"""

from __future__ import annotations

import html
import re

_DANGEROUS_PATTERNS = [
    re.compile(r"<script[^>]*>.*?</script>", re.IGNORECASE | re.DOTALL),
    re.compile(r"<(iframe|object|embed|link|style)[^>]*>", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"\bon\w+\s*=", re.IGNORECASE),
]


def sanitize_llm_output(text: str | None, *, max_length: int = 10000) -> str:
    """
    Clean model output for display.

    Newlines and markdown survive; control characters, script blocks and
    inline event handlers do not. ``<``, ``>`` and ``&`` are HTML-escaped.
    Output longer than *max_length* is truncated.
    """
    if not text:
        return ""
    if not isinstance(text, str):
        raise TypeError(f"LLM output must be a string, got {type(text).__name__}")

    text = "".join(char for char in text if ord(char) >= 32 or char in "\n\r\t")
    for pattern in _DANGEROUS_PATTERNS:
        text = pattern.sub("", text)
    text = html.escape(text, quote=False)
    if len(text) > max_length:
        text = text[:max_length].rstrip() + "..."
    return text.strip()


def mask_secret(secret: str, *, visible: int = 4) -> str:
    """'sk-ant-abcdef123456' -> 'sk-a...3456'."""
    if len(secret) <= visible * 2:
        return "*" * len(secret)
    return f"{secret[:visible]}...{secret[-visible:]}"
