"""Tests for CLI commands using Click's CliRunner."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from scanward.cli import main


@pytest.fixture
def env(tmp_path: Path) -> dict[str, str]:
    """Keep the database, suppressions and config out of the real home dir."""
    return {
        "SCANWARD_DB_PATH": str(tmp_path / "state" / "scanward.db"),
        "SCANWARD_SUPPRESSIONS": str(tmp_path / "suppressions.json"),
        "SCANWARD_OSV_ENABLED": "0",
        "XDG_CONFIG_HOME": str(tmp_path / "config"),
    }


def test_main_help():
    runner = CliRunner()
    result = runner.invoke(main, ["--help"])
    assert result.exit_code == 0
    assert "scan" in result.output
    assert "history" in result.output
    assert "suppress" in result.output


def test_main_version():
    runner = CliRunner()
    result = runner.invoke(main, ["--version"])
    assert result.exit_code == 0
    assert "0.1.0" in result.output


def test_scan_help():
    runner = CliRunner()
    result = runner.invoke(main, ["scan", "--help"])
    assert result.exit_code == 0
    assert "DIRECTORY" in result.output
    assert "--incremental" in result.output


def test_scan_missing_directory(env, tmp_path: Path):
    runner = CliRunner()
    result = runner.invoke(main, ["scan", str(tmp_path / "nope")], env=env)
    assert result.exit_code == 2


def test_scan_fails_on_critical_findings(env, project_dir: Path, tmp_path: Path):
    runner = CliRunner()
    out = tmp_path / "result.json"
    result = runner.invoke(
        main, ["scan", str(project_dir), "--no-osv", "--json", str(out)], env=env
    )
    assert result.exit_code == 1, result.output

    data = json.loads(out.read_text())
    assert data["status"] == "completed"
    assert [i["ruleId"] for i in data["issues"]] == ["SQL_INJECTION"]
    assert data["summary"]["totalVulnerabilities"] == 1
    assert Path(env["SCANWARD_DB_PATH"]).exists()


def test_clean_project_exits_zero(env, tmp_path: Path):
    project = tmp_path / "clean"
    project.mkdir()
    (project / "main.py").write_text("print('hello')\n")

    runner = CliRunner()
    result = runner.invoke(main, ["scan", str(project)], env=env)
    assert result.exit_code == 0, result.output


def test_excluded_directory_is_not_scanned(env, project_dir: Path, tmp_path: Path):
    vendor = project_dir / "vendor"
    vendor.mkdir()
    (project_dir / "app.js").rename(vendor / "app.js")
    (project_dir / "package.json").unlink()

    runner = CliRunner()
    out = tmp_path / "result.json"
    result = runner.invoke(
        main,
        ["scan", str(project_dir), "-e", "vendor", "--json", str(out)],
        env=env,
    )
    assert result.exit_code == 0, result.output
    assert json.loads(out.read_text())["issues"] == []


def test_incremental_scan_and_history(env, project_dir: Path, tmp_path: Path):
    runner = CliRunner()
    out = tmp_path / "second.json"
    runner.invoke(main, ["scan", str(project_dir), "--incremental"], env=env)
    result = runner.invoke(
        main,
        ["scan", str(project_dir), "--incremental", "--json", str(out)],
        env=env,
    )
    data = json.loads(out.read_text())
    assert result.exit_code == 1
    assert data["incremental"] is True
    assert data["changedFiles"] == []
    assert len(data["skippedFiles"]) == 2
    assert [i["ruleId"] for i in data["issues"]] == ["SQL_INJECTION"]

    history = runner.invoke(main, ["history"], env=env)
    assert history.exit_code == 0
    assert "No scans recorded yet." not in history.output


def test_history_empty(env):
    runner = CliRunner()
    result = runner.invoke(main, ["history"], env=env)
    assert result.exit_code == 0
    assert "No scans recorded yet." in result.output


def test_suppress_add_and_list(env):
    runner = CliRunner()
    result = runner.invoke(
        main,
        [
            "suppress",
            "add",
            "--type",
            "vulnerability",
            "--package",
            "lodash",
            "--reason",
            "not reachable",
            "--until",
            "2099-01-01",
        ],
        env=env,
    )
    assert result.exit_code == 0, result.output

    data = json.loads(Path(env["SCANWARD_SUPPRESSIONS"]).read_text())
    [entry] = data["suppressions"]
    assert entry["type"] == "vulnerability"
    assert entry["target"] == {"package": "lodash"}
    assert entry["id"].startswith("supp_")

    listed = runner.invoke(main, ["suppress", "list"], env=env)
    assert listed.exit_code == 0
    assert "lodash" in listed.output


def test_suppress_list_empty(env):
    runner = CliRunner()
    result = runner.invoke(main, ["suppress", "list"], env=env)
    assert result.exit_code == 0
    assert "No suppressions." in result.output


def test_suppress_add_rejects_bad_date(env):
    runner = CliRunner()
    result = runner.invoke(
        main, ["suppress", "add", "--rule", "X", "--until", "someday"], env=env
    )
    assert result.exit_code == 1
    assert not Path(env["SCANWARD_SUPPRESSIONS"]).exists()


def test_suppression_applies_to_scan(env, project_dir: Path, tmp_path: Path):
    runner = CliRunner()
    runner.invoke(
        main, ["suppress", "add", "--rule", "SQL_INJECTION"], env=env
    )
    out = tmp_path / "result.json"
    result = runner.invoke(
        main, ["scan", str(project_dir), "--json", str(out)], env=env
    )
    assert result.exit_code == 0, result.output
    data = json.loads(out.read_text())
    assert data["issues"] == []
    assert len(data["vulnerabilities"]) == 1


def test_relative_path_suppression_applies_to_scan(env, tmp_path: Path):
    project = tmp_path / "repo"
    (project / "tests").mkdir(parents=True)
    (project / "tests" / "a.js").write_text(
        'const query = "SELECT * FROM users WHERE id = " + userId;\n'
    )
    (project / "package.json").write_text(
        json.dumps({"dependencies": {"lodash": "4.17.10"}})
    )
    runner = CliRunner()
    for args in (
        ["--rule", "SQL_INJECTION", "--path", "tests/**"],
        ["--type", "vulnerability", "--package", "lodash", "--path", "package.json"],
    ):
        added = runner.invoke(main, ["suppress", "add", *args], env=env)
        assert added.exit_code == 0, added.output

    out = tmp_path / "result.json"
    result = runner.invoke(main, ["scan", str(project), "--json", str(out)], env=env)
    assert result.exit_code == 0, result.output
    data = json.loads(out.read_text())
    assert data["issues"] == []
    assert data["vulnerabilities"] == []
