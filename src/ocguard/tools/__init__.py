"""Adapters around the cluster command-line tool."""

from .commands import CommandSpec, build_command, ensure_safe_manifest_url
from .executor import CommandExecutor, CommandResult, FixtureCommandExecutor, OcCommandExecutor
from .queries import ClusterObject, ClusterQueries, QueryResult, WaitCondition
from .results import mutated_records, parse_records

__all__ = [
    "ClusterObject",
    "ClusterQueries",
    "CommandExecutor",
    "CommandResult",
    "CommandSpec",
    "FixtureCommandExecutor",
    "OcCommandExecutor",
    "QueryResult",
    "WaitCondition",
    "build_command",
    "ensure_safe_manifest_url",
    "mutated_records",
    "parse_records",
]
