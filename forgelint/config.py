"""
Engine configuration: which rules exist, their severities, and their options.

A configuration maps rule ids to a severity ("off", "warn", "error") or to
[severity, options]. Options are validated against each rule's RuleOptions
model before any file is analyzed; one bad key fails the whole run.

Example config file (JSON):

    {
      "rules": {
        "no-sql-injection": ["error", {"trustedFunctions": ["escape"]}],
        "prefer-node-protocol": "off"
      }
    }
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional, Sequence

from pydantic import BaseModel, Field, ValidationError, model_validator

from forgelint.errors import ConfigurationError
from forgelint.findings.models import Severity
from forgelint.rules.base import Rule, RuleOptions
from forgelint.rules.no_missing_authentication import NoMissingAuthenticationRule
from forgelint.rules.no_missing_csrf_protection import NoMissingCsrfProtectionRule
from forgelint.rules.no_sql_injection import NoSqlInjectionRule
from forgelint.rules.no_unhandled_promise import NoUnhandledPromiseRule
from forgelint.rules.prefer_node_protocol import PreferNodeProtocolRule

logger = logging.getLogger(__name__)


class RuleSetting(BaseModel):
    """Severity and raw options for one rule, as written in a config file."""

    severity: Severity
    options: dict[str, Any] = Field(default_factory=dict)

    model_config = {"extra": "forbid"}

    @model_validator(mode="before")
    @classmethod
    def _accept_shorthand(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"severity": value}
        if isinstance(value, (list, tuple)):
            if not 1 <= len(value) <= 2:
                raise ValueError("expected [severity] or [severity, options]")
            return {"severity": value[0], "options": value[1] if len(value) == 2 else {}}
        return value


class ConfigFile(BaseModel):
    rules: dict[str, RuleSetting] = Field(default_factory=dict)

    model_config = {"extra": "forbid"}


def default_rules() -> List[Rule]:
    """Every rule shipped with the package."""
    return [
        NoMissingAuthenticationRule(),
        NoMissingCsrfProtectionRule(),
        NoSqlInjectionRule(),
        NoUnhandledPromiseRule(),
        PreferNodeProtocolRule(),
    ]


@dataclass
class Config:
    """
    Engine configuration.

    rules is the catalog the engine may run; settings overrides severity and
    options per rule id. Rules without a setting run at their default severity
    with default options.
    """

    rules: Sequence[Rule] = field(default_factory=default_rules)
    settings: dict[str, RuleSetting] = field(default_factory=dict)


@dataclass(frozen=True)
class ResolvedRule:
    rule: Rule
    severity: Severity
    options: RuleOptions


def get_default_config() -> Config:
    """Return the configuration with every rule at its default severity."""
    return Config()


def config_from_mapping(data: Any, rules: Optional[Sequence[Rule]] = None) -> Config:
    """Build a Config from an already-decoded mapping ({"rules": {...}})."""
    try:
        parsed = ConfigFile.model_validate(data)
    except ValidationError as exc:
        raise _as_configuration_error(exc) from exc
    return Config(rules=rules if rules is not None else default_rules(), settings=parsed.rules)


def load_config(path: Path, rules: Optional[Sequence[Rule]] = None) -> Config:
    """Read a JSON config file."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        logger.error("Failed to read config %s: %s", path, e)
        raise ConfigurationError("<config>", f"cannot read {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError("<config>", f"invalid JSON in {path}: {e}") from e
    logger.info("Loaded config from %s", path)
    return config_from_mapping(data, rules=rules)


def resolve_rules(config: Optional[Config] = None) -> List[ResolvedRule]:
    """
    Validate the configuration and return the enabled rules with their options.

    Raises ConfigurationError for unknown rule ids or invalid/unknown options.
    Every rule's options are validated, including rules turned off.
    """
    if config is None:
        config = get_default_config()
    catalog = {rule.id: rule for rule in config.rules}
    for rule_id in config.settings:
        if rule_id not in catalog:
            raise ConfigurationError(rule_id, "unknown rule")

    resolved: List[ResolvedRule] = []
    for rule in config.rules:
        setting = config.settings.get(rule.id)
        severity = setting.severity if setting is not None else rule.default_severity
        raw_options = setting.options if setting is not None else {}
        try:
            options = rule.options.model_validate(raw_options)
        except ValidationError as exc:
            error = exc.errors()[0]
            key = ".".join(str(part) for part in error["loc"]) or None
            raise ConfigurationError(rule.id, error["msg"], key=key) from exc
        if severity is Severity.OFF:
            logger.debug("Rule %s is off", rule.id)
            continue
        resolved.append(ResolvedRule(rule=rule, severity=severity, options=options))
    return resolved


def _as_configuration_error(exc: ValidationError) -> ConfigurationError:
    error = exc.errors()[0]
    loc = [str(part) for part in error["loc"]]
    if len(loc) >= 2 and loc[0] == "rules":
        return ConfigurationError(loc[1], error["msg"], key=".".join(loc[2:]) or None)
    return ConfigurationError("<config>", error["msg"], key=".".join(loc) or None)
