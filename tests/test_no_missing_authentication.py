"""Unit tests for the no-missing-authentication rule."""

from pathlib import Path
from typing import Optional

from forgelint.config import Config, RuleSetting
from forgelint.engine import Engine
from forgelint.findings.models import Severity
from forgelint.rules.no_missing_authentication import NoMissingAuthenticationRule

HANDLER = b"(req, res) => res.json([])"


def _run_rule(source: bytes, options: Optional[dict] = None, path: Optional[Path] = None) -> list:
    settings = {}
    if options is not None:
        settings[NoMissingAuthenticationRule.id] = RuleSetting(severity=Severity.WARN, options=options)
    engine = Engine(Config(rules=[NoMissingAuthenticationRule()], settings=settings))
    return engine.analyze_source(source, path or Path("routes.js")).findings


def test_route_without_auth_reported():
    findings = _run_rule(b"router.get('/api/users', " + HANDLER + b");\n")
    assert len(findings) == 1
    f = findings[0]
    assert f.rule_id == "no-missing-authentication"
    assert f.message.text == "GET route '/api/users' is missing authentication"
    assert f.message.reference == "CWE-287"
    assert f.message.category == "security"
    assert f.fix is None
    assert len(f.suggestions) == 1


def test_auth_middleware_shapes_satisfy():
    source = (
        b"const guard = requireAuth({ role: 'admin' });\n"
        b"app.get('/a', authenticate, " + HANDLER + b");\n"
        b"app.get('/b', passport.authenticate('jwt'), " + HANDLER + b");\n"
        b"app.get('/c', guard, " + HANDLER + b");\n"
        b"app.get('/d', [rateLimit, verifyToken], " + HANDLER + b");\n"
    )
    assert _run_rule(source) == []


def test_global_use_before_routes_satisfies():
    source = b"app.use(isAuthenticated);\napp.post('/a', " + HANDLER + b");\n"
    assert _run_rule(source) == []


def test_unrelated_global_use_does_not_satisfy():
    source = b"app.use(express.json());\napp.post('/a', " + HANDLER + b");\n"
    assert len(_run_rule(source)) == 1


def test_single_argument_calls_ignored():
    assert _run_rule(b"app.get('/a');\napp.get('view engine');\n") == []


def test_methods_option():
    source = b"app.get('/a', " + HANDLER + b");\napp.post('/b', " + HANDLER + b");\n"
    findings = _run_rule(source, options={"routeHandlerPatterns": ["post"]})
    assert [f.message.text for f in findings] == ["POST route '/b' is missing authentication"]


def test_custom_router_names():
    source = b"web.get('/a', " + HANDLER + b");\n"
    assert _run_rule(source) == []
    assert len(_run_rule(source, options={"routerNames": ["web"]})) == 1


def test_allow_in_tests():
    source = b"app.get('/a', " + HANDLER + b");\n"
    assert len(_run_rule(source, path=Path("routes.test.js"))) == 1
    assert _run_rule(source, options={"allowInTests": True}, path=Path("routes.test.js")) == []


def test_this_member_receiver():
    source = b"class Server { setup() { this.app.get('/a', " + HANDLER + b"); } }\n"
    assert len(_run_rule(source)) == 1


def test_catch_all_route_without_auth_reported():
    findings = _run_rule(b"app.get('/*', " + HANDLER + b");\n")
    assert [f.message.text for f in findings] == ["GET route '/*' is missing authentication"]


def test_catch_all_route_with_auth_protects_later_routes():
    source = b"app.get('*', requireAuth);\napp.get('/users', " + HANDLER + b");\n"
    assert _run_rule(source) == []


def test_route_inside_auth_wrapper_satisfied():
    source = b"withAuth(() => {\n  app.get('/x', " + HANDLER + b");\n});\n"
    assert _run_rule(source) == []


def test_route_inside_use_with_auth_argument_satisfied():
    source = b"router.use(authenticate, function () {\n  router.post('/x', " + HANDLER + b");\n});\n"
    assert _run_rule(source) == []


def test_route_inside_unrelated_callback_still_reported():
    source = b"setup(() => {\n  app.get('/x', " + HANDLER + b");\n});\n"
    assert len(_run_rule(source)) == 1
