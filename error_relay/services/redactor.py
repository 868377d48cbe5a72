"""Sensitive data redaction for request input and headers"""

from typing import Any, Iterable, Mapping

REDACTED = "[REDACTED]"

# Always redacted, whatever the configured sensitive fields are
SENSITIVE_HEADERS = frozenset({"authorization", "cookie", "x-api-key", "x-csrf-token"})


def sanitize_map(data: Mapping[str, Any], sensitive_keys: Iterable[str]) -> dict:
    """
    Replace values of sensitive keys with a redaction marker

    Keys are compared case-insensitively. Nested mappings, including mappings
    inside lists, are sanitized with the same rule; scalars pass through.

    Args:
        data: Arbitrary string-keyed mapping (e.g. request input)
        sensitive_keys: Key names to redact

    Returns:
        New dict; the input is not modified
    """
    sensitive = {str(key).casefold() for key in sensitive_keys}
    return _sanitize(data, sensitive)


def _sanitize(data: Mapping[str, Any], sensitive: set) -> dict:
    sanitized = {}
    for key, value in data.items():
        if str(key).casefold() in sensitive:
            sanitized[key] = REDACTED
        else:
            sanitized[key] = _sanitize_value(value, sensitive)
    return sanitized


def _sanitize_value(value: Any, sensitive: set) -> Any:
    if isinstance(value, Mapping):
        return _sanitize(value, sensitive)
    if isinstance(value, (list, tuple)):
        return [_sanitize_value(item, sensitive) for item in value]
    return value


def sanitize_headers(headers: Mapping[str, Any]) -> dict:
    """
    Normalize and redact request headers

    Header names are lowercased, multi-valued headers are flattened to their
    first value and credential headers are always redacted.

    Args:
        headers: Header mapping; values may be strings or lists of strings

    Returns:
        New dict keyed by lowercase header name
    """
    sanitized = {}
    for name, value in headers.items():
        key = str(name).lower()
        if key in SENSITIVE_HEADERS:
            sanitized[key] = REDACTED
        elif isinstance(value, (list, tuple)):
            sanitized[key] = value[0] if value else list(value)
        else:
            sanitized[key] = value
    return sanitized
