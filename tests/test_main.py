"""CLI tests through typer's CliRunner."""

import json

from typer.testing import CliRunner

from forgelint.main import app

runner = CliRunner(env={"COLUMNS": "200"})


def test_clean_file_exits_zero(tmp_path):
    p = tmp_path / "clean.js"
    p.write_text("const x = 1;\n")
    result = runner.invoke(app, ["analyze", str(p)])
    assert result.exit_code == 0
    assert "No issues found" in result.stdout


def test_error_findings_exit_one(tmp_path):
    p = tmp_path / "db.js"
    p.write_text("async function find(id) {\n  return db.query(`SELECT * FROM t WHERE id = ${id}`);\n}\n")
    result = runner.invoke(app, ["analyze", str(p)])
    assert result.exit_code == 1
    assert "no-sql-injection" in result.stdout


def test_warnings_only_exit_zero(tmp_path):
    p = tmp_path / "a.js"
    p.write_text("const fs = require('fs');\n")
    assert runner.invoke(app, ["analyze", str(p)]).exit_code == 0


def test_fix_writes_file(tmp_path):
    p = tmp_path / "a.js"
    p.write_text("const fs = require('fs');\n")
    result = runner.invoke(app, ["analyze", str(p), "--fix"])
    assert result.exit_code == 0
    assert p.read_text() == "const fs = require('node:fs');\n"


def test_json_format(tmp_path):
    p = tmp_path / "a.js"
    p.write_text("const fs = require('fs');\n")
    result = runner.invoke(app, ["analyze", str(p), "--format", "json"])
    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert [f["rule_id"] for f in data[0]["findings"]] == ["prefer-node-protocol"]


def test_bad_config_is_usage_error(tmp_path):
    p = tmp_path / "a.js"
    p.write_text("const x = 1;\n")
    cfg = tmp_path / "forgelint.json"
    cfg.write_text(json.dumps({"rules": {"no-such-rule": "error"}}))
    result = runner.invoke(app, ["analyze", str(p), "--config", str(cfg)])
    assert result.exit_code == 2


def test_config_turns_rule_off(tmp_path):
    p = tmp_path / "a.js"
    p.write_text("const fs = require('fs');\n")
    cfg = tmp_path / "forgelint.json"
    cfg.write_text(json.dumps({"rules": {"prefer-node-protocol": "off"}}))
    result = runner.invoke(app, ["analyze", str(p), "--config", str(cfg)])
    assert result.exit_code == 0
    assert "No issues found" in result.stdout


def test_non_js_target_rejected(tmp_path):
    p = tmp_path / "notes.txt"
    p.write_text("hello")
    assert runner.invoke(app, ["analyze", str(p)]).exit_code == 2


def test_rules_command_lists_catalog():
    result = runner.invoke(app, ["rules"])
    assert result.exit_code == 0
    for rule_id in ("no-sql-injection", "no-unhandled-promise", "prefer-node-protocol"):
        assert rule_id in result.stdout
