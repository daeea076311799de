"""Utilities for exporting the ocguard request and report JSON Schemas."""

from __future__ import annotations

import json
from enum import StrEnum
from pathlib import Path
from typing import Any

from jsonschema import Draft202012Validator

from .models import DEFAULT_SCHEMA_VERSION, MutationReport, MutationRequest

SCHEMA_DRAFT_URL = "https://json-schema.org/draft/2020-12/schema"
_SCHEMA_BASE_URL = "https://schemas.ocguard.dev"


class SchemaTarget(StrEnum):
    """Models whose JSON Schema can be exported."""

    REQUEST = "request"
    REPORT = "report"


def build_report_json_schema() -> dict[str, Any]:
    """Return the JSON Schema representation for :class:`MutationReport`."""
    schema = MutationReport.model_json_schema()
    schema.setdefault("$schema", SCHEMA_DRAFT_URL)
    schema["title"] = "OcguardMutationReport"
    schema.setdefault("$id", f"{_SCHEMA_BASE_URL}/report.json")

    properties = schema.get("properties", {})
    if "schema_version" in properties:
        properties["schema_version"]["const"] = DEFAULT_SCHEMA_VERSION
        properties["schema_version"].setdefault(
            "description",
            "Version of the ocguard report schema this payload conforms to.",
        )

    Draft202012Validator.check_schema(schema)
    return schema


def build_request_json_schema() -> dict[str, Any]:
    """Return the JSON Schema representation for :class:`MutationRequest`."""
    schema = MutationRequest.model_json_schema()
    schema.setdefault("$schema", SCHEMA_DRAFT_URL)
    schema["title"] = "OcguardMutationRequest"
    schema.setdefault("$id", f"{_SCHEMA_BASE_URL}/request.json")
    Draft202012Validator.check_schema(schema)
    return schema


def build_json_schema(target: SchemaTarget | str) -> dict[str, Any]:
    """Return the JSON Schema for *target*."""
    selected = SchemaTarget(target)
    if selected is SchemaTarget.REQUEST:
        return build_request_json_schema()
    return build_report_json_schema()


def export_schema(path: Path | str, target: SchemaTarget | str = SchemaTarget.REPORT) -> dict[str, Any]:
    """Write the JSON Schema for *target* to *path* and return it."""
    schema = build_json_schema(target)
    path_obj = Path(path)
    path_obj.parent.mkdir(parents=True, exist_ok=True)
    path_obj.write_text(
        json.dumps(schema, indent=2, sort_keys=True),
        encoding="utf-8",
    )
    return schema


__all__ = [
    "SCHEMA_DRAFT_URL",
    "SchemaTarget",
    "build_json_schema",
    "build_report_json_schema",
    "build_request_json_schema",
    "export_schema",
]
