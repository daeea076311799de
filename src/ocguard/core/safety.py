"""Utilities for redacting credentials before they reach logs or reports."""

from __future__ import annotations

import re
import typing
from collections.abc import Mapping, Sequence, Set as AbstractSet
from typing import Any

_REDACTION_PLACEHOLDER = "[redacted]"
_ELLIPSIS = "…"

_BEARER_PATTERN = re.compile(r"(?i)\b(bearer)\s+[A-Za-z0-9._~+/=-]+")
_SECRET_ASSIGNMENT_PATTERN = re.compile(
    r"(?i)\b(token|password|passwd|secret|client-key-data|client-certificate-data)"
    r"(\s*[=:]\s*)(\"[^\"]*\"|'[^']*'|\S+)",
)
_SHA_TOKEN_PATTERN = re.compile(r"\bsha256~[A-Za-z0-9_-]{20,}\b")
_LONG_TOKEN_PATTERN = re.compile(r"\b[A-Za-z0-9+/]{40,}={0,2}")

_SENSITIVE_FLAGS = frozenset({"--token", "--password", "--client-key", "--as-uid"})
_PRIVATE_KEY_PATTERN = re.compile(
    r"-----BEGIN [A-Z ]*PRIVATE KEY-----.*?-----END [A-Z ]*PRIVATE KEY-----",
    re.DOTALL,
)


def mask_secrets(text: str, *, max_length: int = 512) -> str:
    """Redact credential patterns from *text* and enforce a length ceiling."""
    masked = _PRIVATE_KEY_PATTERN.sub(_REDACTION_PLACEHOLDER, text)
    masked = _BEARER_PATTERN.sub(rf"\1 {_REDACTION_PLACEHOLDER}", masked)
    masked = _SECRET_ASSIGNMENT_PATTERN.sub(rf"\1\2{_REDACTION_PLACEHOLDER}", masked)
    masked = _SHA_TOKEN_PATTERN.sub(_REDACTION_PLACEHOLDER, masked)
    masked = _LONG_TOKEN_PATTERN.sub(_REDACTION_PLACEHOLDER, masked)

    if max_length > 0 and len(masked) > max_length:
        return masked[:max_length] + _ELLIPSIS
    return masked


def redact_command(args: Sequence[str]) -> list[str]:
    """Return a copy of *args* with credential flag values masked."""
    redacted: list[str] = []
    mask_next = False
    for argument in args:
        if mask_next:
            redacted.append(_REDACTION_PLACEHOLDER)
            mask_next = False
            continue
        flag, separator, _ = argument.partition("=")
        if flag in _SENSITIVE_FLAGS:
            if separator:
                redacted.append(f"{flag}={_REDACTION_PLACEHOLDER}")
            else:
                redacted.append(argument)
                mask_next = True
            continue
        redacted.append(mask_secrets(argument, max_length=0))
    return redacted


def scrub_for_logging(value: Any, *, max_length: int = 512) -> Any:
    """Return a structure safe for logging by masking nested string values."""
    if isinstance(value, str):
        processed: Any = mask_secrets(value, max_length=max_length)
    elif isinstance(value, bytes):
        processed = mask_secrets(value.decode("utf-8", errors="ignore"), max_length=max_length)
    elif isinstance(value, Mapping):
        processed_mapping: dict[Any, Any] = {}
        mapping_items = typing.cast("Mapping[Any, Any]", value)
        for key, item in mapping_items.items():
            processed_mapping[key] = scrub_for_logging(item, max_length=max_length)
        processed = processed_mapping
    elif isinstance(value, list):
        list_items = typing.cast("list[Any]", value)
        processed = [scrub_for_logging(item, max_length=max_length) for item in list_items]
    elif isinstance(value, tuple):
        tuple_items = typing.cast("tuple[Any, ...]", value)
        processed = tuple(
            scrub_for_logging(item, max_length=max_length) for item in tuple_items
        )
    elif isinstance(value, AbstractSet):
        set_items = typing.cast("AbstractSet[Any]", value)
        processed = {scrub_for_logging(item, max_length=max_length) for item in set_items}
    else:
        processed = value
    return processed


__all__ = ["mask_secrets", "redact_command", "scrub_for_logging"]
