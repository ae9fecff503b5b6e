"""Unit tests for the no-missing-csrf-protection rule."""

from pathlib import Path
from typing import Optional

from forgelint.config import Config, RuleSetting
from forgelint.engine import Engine
from forgelint.findings.models import Severity
from forgelint.fixer import apply_edits
from forgelint.rules.no_missing_csrf_protection import NoMissingCsrfProtectionRule

PREAMBLE = b"const app = express();\n"
HANDLER = b"(req, res) => { res.send('ok'); }"


def _run_rule(source: bytes, options: Optional[dict] = None, path: Optional[Path] = None) -> list:
    settings = {}
    if options is not None:
        settings[NoMissingCsrfProtectionRule.id] = RuleSetting(severity=Severity.WARN, options=options)
    engine = Engine(Config(rules=[NoMissingCsrfProtectionRule()], settings=settings))
    return engine.analyze_source(PREAMBLE + source, path or Path("server.js")).findings


def test_post_without_csrf_reported():
    source = b"app.post('/api/users', " + HANDLER + b");\n"
    findings = _run_rule(source)
    assert len(findings) == 1
    f = findings[0]
    assert f.rule_id == "no-missing-csrf-protection"
    assert f.message.kind == "missingCsrfProtection"
    assert f.message.text == "POST route '/api/users' is missing CSRF protection"
    assert f.message.reference == "CWE-352"
    assert f.location.snippet.startswith("app.post(")
    assert f.location.start_byte == len(PREAMBLE)


def test_suggestion_inserts_middleware_after_path():
    source = b"app.post('/api/users', " + HANDLER + b");\n"
    finding = _run_rule(source)[0]
    fixed = apply_edits(PREAMBLE + source, finding.suggestions[0].fix.edits)
    assert b"app.post('/api/users', csrf(), (req, res)" in fixed


def test_earlier_global_use_satisfies():
    source = b"app.use(csrf());\napp.post('/api/users', " + HANDLER + b");\n"
    assert _run_rule(source) == []


def test_later_global_use_does_not_satisfy():
    source = b"app.post('/api/users', " + HANDLER + b");\napp.use(csrf());\n"
    assert len(_run_rule(source)) == 1


def test_use_inside_function_is_not_global():
    source = b"function setup() { app.use(csrf()); }\napp.post('/x', " + HANDLER + b");\n"
    assert len(_run_rule(source)) == 1


def test_route_middleware_argument_satisfies():
    source = (
        b"const csrfProtection = csurf({ cookie: true });\n"
        b"app.post('/a', csrfProtection, " + HANDLER + b");\n"
        b"app.put('/b', [json(), verifyCsrfToken], " + HANDLER + b");\n"
        b"app.delete('/c', security.csrf, " + HANDLER + b");\n"
    )
    assert _run_rule(source) == []


def test_safe_methods_not_checked():
    assert _run_rule(b"app.get('/x', " + HANDLER + b");\n") == []


def test_catch_all_route_satisfies_its_verb_only():
    source = (
        b"app.post('*', csrf());\n"
        b"app.post('/x', " + HANDLER + b");\n"
        b"app.put('/y', " + HANDLER + b");\n"
    )
    findings = _run_rule(source)
    assert [f.message.text for f in findings] == ["PUT route '/y' is missing CSRF protection"]


def test_catch_all_with_all_verb_satisfies_everything():
    source = b"app.all('/*', csrf());\napp.patch('/x', " + HANDLER + b");\n"
    assert _run_rule(source) == []


def test_router_recognized_by_initializer():
    source = b"const r = express.Router();\nr.delete('/items/:id', " + HANDLER + b");\n"
    findings = _run_rule(source)
    assert [f.message.text for f in findings] == ["DELETE route '/items/:id' is missing CSRF protection"]


def test_unrelated_receiver_ignored():
    assert _run_rule(b"cache.post('/x', " + HANDLER + b");\n") == []


def test_route_chain():
    findings = _run_rule(b"app.route('/items').post(" + HANDLER + b");\n")
    assert [f.message.text for f in findings] == ["POST route '/items' is missing CSRF protection"]


def test_ignore_patterns():
    source = b"app.post('/webhooks/stripe', " + HANDLER + b");\n"
    assert _run_rule(source, options={"ignorePatterns": ["/webhooks/"]}) == []


def test_protected_methods_option():
    source = b"app.get('/x', " + HANDLER + b");\n"
    assert len(_run_rule(source, options={"protectedMethods": ["get"]})) == 1


def test_catch_all_route_without_csrf_reported():
    findings = _run_rule(b"app.post('*', " + HANDLER + b");\napp.post('/x', " + HANDLER + b");\n")
    assert [f.message.text for f in findings] == [
        "POST route '*' is missing CSRF protection",
        "POST route '/x' is missing CSRF protection",
    ]


def test_route_inside_csrf_wrapper_satisfied():
    source = b"withCsrf(() => {\n  app.post('/x', " + HANDLER + b");\n});\n"
    assert _run_rule(source) == []
