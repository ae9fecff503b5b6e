"""Unit tests for the prefer-node-protocol rule."""

from pathlib import Path
from typing import Optional

import pytest

from forgelint.config import Config, RuleSetting
from forgelint.engine import Engine
from forgelint.findings.models import FixStatus, Severity
from forgelint.rules.no_unhandled_promise import NoUnhandledPromiseRule
from forgelint.rules.prefer_node_protocol import (
    NODE_BUILT_INS,
    PreferNodeProtocolRule,
    is_builtin_module,
)


def _engine(options: Optional[dict] = None) -> Engine:
    settings = {}
    if options is not None:
        settings[PreferNodeProtocolRule.id] = RuleSetting(severity=Severity.WARN, options=options)
    return Engine(Config(rules=[PreferNodeProtocolRule()], settings=settings))


def _run_rule(source: bytes, options: Optional[dict] = None) -> list:
    return _engine(options).analyze_source(source, Path("index.mjs")).findings


@pytest.mark.parametrize(
    "name, expected",
    [
        ("fs", True),
        ("fs/promises", True),
        ("FS", True),
        ("node:fs", False),
        ("lodash", False),
        ("./path", False),
    ],
)
def test_is_builtin_module(name, expected):
    assert is_builtin_module(name, NODE_BUILT_INS) is expected


def test_import_statement_reported_with_fix():
    findings = _run_rule(b"import fs from 'fs';")
    assert len(findings) == 1
    f = findings[0]
    assert f.location.snippet == "'fs'"
    assert f.fix is not None
    assert f.fix_status is FixStatus.PENDING
    assert f.fix.edits[0].replacement == "'node:fs'"


def test_all_specifier_forms():
    source = (
        b"import { readFile } from \"fs/promises\";\n"
        b"export { join } from 'path';\n"
        b"const os = require('os');\n"
        b"const crypto = await import('crypto');\n"
    )
    snippets = [f.location.snippet for f in _run_rule(source)]
    assert snippets == ['"fs/promises"', "'path'", "'os'", "'crypto'"]


def test_already_prefixed_and_packages_pass():
    source = b"import fs from 'node:fs';\nconst _ = require('lodash');\nimport x from './util.js';\n"
    assert _run_rule(source) == []


def test_shadowed_require_ignored():
    source = b"function load(require) { return require('fs'); }\n"
    assert _run_rule(source) == []


def test_additional_modules():
    source = b"import test from 'test';\n"
    assert _run_rule(source) == []
    assert len(_run_rule(source, options={"additionalModules": ["test"]})) == 1


def test_fix_preserves_quotes_and_resolves_finding():
    source = b"import fs from \"fs\";\nconst path = require('path');\n"
    report = _engine().fix_source(source, Path("index.mjs"))
    assert report.output == "import fs from \"node:fs\";\nconst path = require('node:path');\n"
    assert report.fixes_applied == 2
    assert report.findings == []


def test_fix_run_marks_applied():
    report = _engine().analyze_source(b"import fs from 'fs';", Path("a.mjs"), fix=True)
    assert report.output == "import fs from 'node:fs';"
    assert [f.fix_status for f in report.findings] == [FixStatus.APPLIED]


def test_fix_leaves_other_rules_suggestions_alone():
    engine = Engine(Config(rules=[PreferNodeProtocolRule(), NoUnhandledPromiseRule()]))
    source = b"import fs from 'fs';\nfetchUserData(1);\n"
    report = engine.fix_source(source, Path("a.mjs"))
    assert report.output == "import fs from 'node:fs';\nfetchUserData(1);\n"
    assert [f.rule_id for f in report.findings] == ["no-unhandled-promise"]
