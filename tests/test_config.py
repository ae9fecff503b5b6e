"""Tests for configuration loading and option validation."""

import json
import logging

import pytest

from forgelint.config import (
    RuleSetting,
    config_from_mapping,
    default_rules,
    get_default_config,
    load_config,
    resolve_rules,
)
from forgelint.errors import ConfigurationError
from forgelint.findings.models import Severity


def test_default_config_enables_every_rule():
    resolved = resolve_rules(get_default_config())
    assert {r.rule.id for r in resolved} == {rule.id for rule in default_rules()}
    sql = next(r for r in resolved if r.rule.id == "no-sql-injection")
    assert sql.severity is Severity.ERROR
    assert sql.options.max_trace_depth == 5


def test_rule_setting_shorthands():
    assert RuleSetting.model_validate("warn").severity is Severity.WARN
    setting = RuleSetting.model_validate(["error", {"trustedFunctions": ["escape"]}])
    assert setting.severity is Severity.ERROR
    assert setting.options == {"trustedFunctions": ["escape"]}


def test_camel_case_and_alias_option_names():
    config = config_from_mapping(
        {
            "rules": {
                "no-sql-injection": ["error", {"trustedFunctions": ["escape"], "allowDynamicTableNames": True}],
                "no-missing-csrf-protection": ["warn", {"csrfMiddlewarePatterns": ["xsrf"]}],
            }
        }
    )
    resolved = {r.rule.id: r for r in resolve_rules(config)}
    sql_opts = resolved["no-sql-injection"].options
    assert sql_opts.trusted_functions == ("escape",)
    assert sql_opts.allow_dynamic_identifiers is True
    assert resolved["no-missing-csrf-protection"].options.middleware_patterns == ("xsrf",)


def test_off_rules_are_dropped():
    config = config_from_mapping({"rules": {"prefer-node-protocol": "off"}})
    assert "prefer-node-protocol" not in {r.rule.id for r in resolve_rules(config)}


def test_unknown_rule_is_rejected():
    config = config_from_mapping({"rules": {"no-such-rule": "warn"}})
    with pytest.raises(ConfigurationError) as exc:
        resolve_rules(config)
    assert exc.value.rule_id == "no-such-rule"


def test_unknown_option_names_rule_and_key():
    config = config_from_mapping({"rules": {"no-unhandled-promise": ["warn", {"bogus": 1}]}})
    with pytest.raises(ConfigurationError) as exc:
        resolve_rules(config)
    assert exc.value.rule_id == "no-unhandled-promise"
    assert exc.value.key == "bogus"
    assert "no-unhandled-promise.bogus" in str(exc.value)


def test_invalid_option_on_disabled_rule_still_fails():
    config = config_from_mapping({"rules": {"no-sql-injection": ["off", {"maxTraceDepth": "deep"}]}})
    with pytest.raises(ConfigurationError) as exc:
        resolve_rules(config)
    assert exc.value.key == "maxTraceDepth"


def test_bad_severity_is_a_configuration_error():
    with pytest.raises(ConfigurationError) as exc:
        config_from_mapping({"rules": {"no-sql-injection": "loud"}})
    assert exc.value.rule_id == "no-sql-injection"


def test_load_config_from_file(tmp_path, caplog):
    path = tmp_path / "forgelint.json"
    path.write_text(json.dumps({"rules": {"no-unhandled-promise": "error"}}))
    with caplog.at_level(logging.INFO):
        config = load_config(path)
    assert config.settings["no-unhandled-promise"].severity is Severity.ERROR
    assert "Loaded config" in caplog.text


def test_load_config_invalid_json(tmp_path):
    path = tmp_path / "forgelint.json"
    path.write_text("{not json")
    with pytest.raises(ConfigurationError, match="invalid JSON"):
        load_config(path)


def test_load_config_missing_file(tmp_path):
    with pytest.raises(ConfigurationError, match="cannot read"):
        load_config(tmp_path / "missing.json")
