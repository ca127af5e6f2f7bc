"""Security helpers: SQL safety and output sanitization."""

from prosync.security.sql import contains_pattern, escape_like_pattern, validate_identifier, validate_search_input
from prosync.security.validators import mask_secret, sanitize_llm_output

__all__ = [
    "contains_pattern",
    "escape_like_pattern",
    "mask_secret",
    "sanitize_llm_output",
    "validate_identifier",
    "validate_search_input",
]
