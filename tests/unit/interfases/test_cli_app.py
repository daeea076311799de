from __future__ import annotations

import json
from pathlib import Path

import pytest

from ocguard.interfases.cli import app

cli_main = app.main
CliError = app.CliError


@pytest.fixture(scope="module")
def samples_dir() -> Path:
    """Return the directory containing CLI sample fixtures."""
    return Path(__file__).resolve().parents[3] / "samples"


@pytest.fixture
def cluster_fixture(samples_dir: Path) -> str:
    return str(samples_dir / "cluster_fixture.json")


def _write_fixture(path: Path, responses: list[dict[str, object]]) -> str:
    path.write_text(json.dumps({"responses": responses}), encoding="utf-8")
    return str(path)


def test_schema_export_writes_file(tmp_path: Path) -> None:
    """The schema export command should create a schema file."""
    output = tmp_path / "schema.json"
    exit_code = cli_main(["schema", "export", "--out", str(output)])
    assert exit_code == 0

    payload = json.loads(output.read_text(encoding="utf-8"))
    assert payload["$schema"].endswith("2020-12/schema")
    assert payload["title"] == "OcguardMutationReport"
    assert payload["$id"].endswith("report.json")


def test_schema_export_request_to_stdout(capsys: pytest.CaptureFixture[str]) -> None:
    """The request schema can be exported to stdout."""
    exit_code = cli_main(["schema", "export", "--target", "request"])
    assert exit_code == 0

    payload = json.loads(capsys.readouterr().out)
    assert payload["title"] == "OcguardMutationRequest"


def test_delete_named_pod(cluster_fixture: str, capsys: pytest.CaptureFixture[str]) -> None:
    """A named delete against the recorded cluster succeeds."""
    exit_code = cli_main(["delete", "pod", "web-1", "-n", "demo", "--cluster-fixture", cluster_fixture])
    assert exit_code == 0

    payload = json.loads(capsys.readouterr().out)
    assert payload["outcome"] == "success"
    assert payload["records"] == [{"kind": "Pod", "name": "web-1", "action": "deleted"}]
    assert payload["command"] == ["delete", "pod", "web-1", "-n", "demo"]


def test_delete_in_system_namespace_is_blocked(cluster_fixture: str, capsys: pytest.CaptureFixture[str]) -> None:
    """Safety blocks exit with status 2 and explain how to proceed."""
    exit_code = cli_main(["delete", "pod", "x", "-n", "kube-system", "--cluster-fixture", cluster_fixture])
    assert exit_code == 2

    payload = json.loads(capsys.readouterr().out)
    assert payload["outcome"] == "safety-block"
    assert "system namespace" in payload["message"]


def test_blanket_delete_requires_confirmation(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """--all without a selector lists targets and asks for --confirm."""
    pods = {
        "kind": "List",
        "items": [{"kind": "Pod", "metadata": {"name": f"job-{index}", "namespace": "batch"}} for index in range(5)],
    }
    fixture = _write_fixture(tmp_path / "fixture.json", [{"args": ["get", "pod"], "stdout": json.dumps(pods)}])

    exit_code = cli_main(["delete", "pod", "--all", "-n", "batch", "--cluster-fixture", fixture])
    assert exit_code == 2

    payload = json.loads(capsys.readouterr().out)
    assert payload["outcome"] == "confirmation-required"
    assert len(payload["resources"]) == 5


def test_delete_without_target_reports_validation_failure(
    cluster_fixture: str, capsys: pytest.CaptureFixture[str],
) -> None:
    """Validation failures are returned as failure reports."""
    exit_code = cli_main(["delete", "-n", "demo", "--cluster-fixture", cluster_fixture])
    assert exit_code == 1

    payload = json.loads(capsys.readouterr().out)
    assert payload["outcome"] == "failure"
    assert payload["error"]["category"] == "Validation Error"


def test_apply_dry_run_from_manifest_file(
    samples_dir: Path, cluster_fixture: str, capsys: pytest.CaptureFixture[str],
) -> None:
    """Inline manifests are read from disk and previewed without changes."""
    exit_code = cli_main(
        [
            "apply",
            "--manifest",
            str(samples_dir / "settings_configmap.yaml"),
            "-n",
            "demo",
            "--dry-run",
            "--cluster-fixture",
            cluster_fixture,
        ],
    )
    assert exit_code == 0

    payload = json.loads(capsys.readouterr().out)
    assert payload["outcome"] == "dry-run"
    assert payload["command"] == ["apply", "-n", "demo", "-f", "-", "--dry-run=client"]


def test_apply_writes_report_outputs(
    samples_dir: Path, cluster_fixture: str, tmp_path: Path, capsys: pytest.CaptureFixture[str],
) -> None:
    """--output and --ndjson-out persist the report."""
    report_path = tmp_path / "report.json"
    ndjson_path = tmp_path / "report.ndjson"
    exit_code = cli_main(
        [
            "apply",
            "-f",
            str(samples_dir / "settings_configmap.yaml"),
            "-n",
            "demo",
            "--cluster-fixture",
            cluster_fixture,
            "--output",
            str(report_path),
            "--ndjson-out",
            str(ndjson_path),
        ],
    )
    assert exit_code == 0

    stdout_report = json.loads(capsys.readouterr().out)
    file_report = json.loads(report_path.read_text(encoding="utf-8"))
    assert stdout_report == file_report
    assert file_report["records"] == [{"kind": "Configmap", "name": "settings", "action": "created"}]
    record_types = [json.loads(line)["record_type"] for line in ndjson_path.read_text(encoding="utf-8").splitlines()]
    assert record_types[0] == "report"
    assert record_types[-1] == "record"


def test_expose_uses_service_port(cluster_fixture: str, capsys: pytest.CaptureFixture[str]) -> None:
    """Routes default to the port advertised by the service."""
    exit_code = cli_main(["expose", "web", "-n", "demo", "--label", "app=web", "--cluster-fixture", cluster_fixture])
    assert exit_code == 0

    payload = json.loads(capsys.readouterr().out)
    assert payload["command"] == [
        "create",
        "route",
        "edge",
        "web-route",
        "-n",
        "demo",
        "--service",
        "web",
        "--port",
        "8080-tcp",
        "-l",
        "app=web",
    ]


def test_new_app_dry_run(cluster_fixture: str, capsys: pytest.CaptureFixture[str]) -> None:
    """new-app previews carry the derived application name."""
    exit_code = cli_main(
        [
            "new-app",
            "https://github.com/sclorg/django-ex.git",
            "-n",
            "demo",
            "-e",
            "DEBUG=1",
            "--dry-run",
            "--cluster-fixture",
            cluster_fixture,
        ],
    )
    assert exit_code == 0

    payload = json.loads(capsys.readouterr().out)
    assert payload["outcome"] == "dry-run"
    assert "--name" in payload["command"]
    assert payload["command"][payload["command"].index("--name") + 1] == "django-ex"


def test_text_format_renders_summary(cluster_fixture: str, capsys: pytest.CaptureFixture[str]) -> None:
    """The text format prints the outcome and the records table."""
    exit_code = cli_main(
        ["delete", "pod", "web-1", "-n", "demo", "--format", "text", "--cluster-fixture", cluster_fixture],
    )
    assert exit_code == 0

    output = capsys.readouterr().out
    assert "delete: success" in output
    assert "web-1" in output
    assert "SUCCESS: delete completed successfully" in output


def test_missing_fixture_returns_error(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """Missing fixture files should result in a JSON error payload."""
    missing = tmp_path / "missing.json"
    exit_code = cli_main(["delete", "pod", "web-1", "-n", "demo", "--cluster-fixture", str(missing)])
    assert exit_code == 1

    captured = capsys.readouterr()
    assert captured.out == ""
    error_payload = json.loads(captured.err)
    assert error_payload["status"] == "error"
    assert "File not found" in error_payload["message"]


def test_malformed_fixture_returns_error(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """Fixtures with the wrong shape are reported as CLI errors."""
    fixture = tmp_path / "fixture.json"
    fixture.write_text(json.dumps({"responses": [{"args": "delete"}]}), encoding="utf-8")

    exit_code = cli_main(["delete", "pod", "web-1", "--cluster-fixture", str(fixture)])
    assert exit_code == 1

    error_payload = json.loads(capsys.readouterr().err)
    assert "list of strings" in error_payload["message"]


def test_disallowed_binary_returns_error(capsys: pytest.CaptureFixture[str]) -> None:
    """Binaries outside the allowlist are refused before anything runs."""
    exit_code = cli_main(["delete", "pod", "web-1", "--oc-binary", "bash"])
    assert exit_code == 1

    error_payload = json.loads(capsys.readouterr().err)
    assert error_payload["type"] == "CliError"
    assert "allowlist" in error_payload["message"]


def test_invalid_settings_environment_returns_error(
    monkeypatch: pytest.MonkeyPatch, cluster_fixture: str, capsys: pytest.CaptureFixture[str],
) -> None:
    """Invalid environment configuration is reported as a CLI error."""
    monkeypatch.setenv("OCGUARD_COMMAND_TIMEOUT", "-3")

    exit_code = cli_main(["delete", "pod", "web-1", "--cluster-fixture", cluster_fixture])
    assert exit_code == 1

    error_payload = json.loads(capsys.readouterr().err)
    assert "Invalid ocguard settings" in error_payload["message"]


def test_cli_exposure_serve_exits_with_status(cluster_fixture: str) -> None:
    """The CLI exposure raises SystemExit with the command's exit code."""
    exposure = app.CLIExposure()

    with pytest.raises(SystemExit) as exit_info:
        exposure.serve(config={"argv": ["delete", "pod", "x", "-n", "kube-system", "--cluster-fixture", cluster_fixture]})

    assert exit_info.value.code == 2


def test_cli_exposure_rejects_non_string_argv() -> None:
    """argv must be a sequence of strings."""
    with pytest.raises(TypeError):
        app.CLIExposure().serve(config={"argv": "delete pod x"})


def test_cli_error_carries_details() -> None:
    """CliError keeps its exit code and details for the error payload."""
    error = CliError("boom", exit_code=3, details={"field": "name"})

    assert error.exit_code == 3
    assert error.details == {"field": "name"}
