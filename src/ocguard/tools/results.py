"""Extract per-resource execution records from raw command output."""

from __future__ import annotations

import re

from ocguard.core.models import ExecutionRecord, RecordAction

_ACTIONS = r"deleted|created|configured|unchanged|patched|serverside-applied|applied|not found"

_SLASH_LINE = re.compile(
    rf"^\s*(?P<kind>[A-Za-z0-9.-]+)/(?P<name>[^\s/]+)\s+(?P<action>{_ACTIONS})\b",
)
_QUOTED_LINE = re.compile(
    rf'^\s*(?P<kind>[A-Za-z0-9.-]+)\s+"(?P<name>[^"]+)"\s+(?P<action>{_ACTIONS})\b',
)

_ACTION_MAP = {
    "deleted": RecordAction.DELETED,
    "created": RecordAction.CREATED,
    "configured": RecordAction.CONFIGURED,
    "unchanged": RecordAction.UNCHANGED,
    "patched": RecordAction.PATCHED,
    "applied": RecordAction.APPLIED,
    "serverside-applied": RecordAction.APPLIED,
    "not found": RecordAction.NOT_FOUND,
}

MUTATED_ACTIONS = frozenset(
    {
        RecordAction.DELETED,
        RecordAction.APPLIED,
        RecordAction.CREATED,
        RecordAction.CONFIGURED,
        RecordAction.PATCHED,
    },
)


def display_kind(resource: str) -> str:
    """Return ``pod`` as ``Pod`` and ``deployment.apps`` as ``Deployment.apps``."""
    return resource[:1].upper() + resource[1:]


def parse_line(line: str) -> ExecutionRecord | None:
    """Parse one output line, returning ``None`` when it does not match."""
    match = _SLASH_LINE.match(line) or _QUOTED_LINE.match(line)
    if match is None:
        return None
    return ExecutionRecord(
        kind=display_kind(match.group("kind")),
        name=match.group("name"),
        action=_ACTION_MAP[match.group("action")],
    )


def parse_records(output: str) -> list[ExecutionRecord]:
    """Return every :class:`ExecutionRecord` found in *output*, in order."""
    records: list[ExecutionRecord] = []
    for line in output.splitlines():
        record = parse_line(line)
        if record is not None:
            records.append(record)
    return records


def mutated_records(records: list[ExecutionRecord]) -> list[ExecutionRecord]:
    return [record for record in records if record.action in MUTATED_ACTIONS]


__all__ = [
    "MUTATED_ACTIONS",
    "display_kind",
    "mutated_records",
    "parse_line",
    "parse_records",
]
