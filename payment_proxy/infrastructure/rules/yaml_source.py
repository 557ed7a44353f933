"""Loads the declarative fraud rule set from a YAML file"""

from pathlib import Path
from typing import Any, Dict, List

import yaml

from payment_proxy.domain.exceptions import ConfigLoadError
from payment_proxy.domain.models import (
    ConditionOperator,
    FraudCondition,
    FraudRule,
    FraudRuleConfig,
    ProviderConfig,
    RiskThresholds,
    RiskTolerance,
    RuleAction,
)


class YamlRuleConfigSource:
    """Rule configuration source backed by a YAML file on disk"""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load(self) -> FraudRuleConfig:
        """
        Read and validate the rule file.

        Raises:
            ConfigLoadError: File missing, unreadable, not YAML, or structurally invalid
        """
        try:
            raw = yaml.safe_load(self.path.read_text(encoding="utf-8"))
        except OSError as e:
            raise ConfigLoadError(f"Cannot read fraud rules file {self.path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigLoadError(f"Invalid YAML in {self.path}: {e}") from e

        if not isinstance(raw, dict):
            raise ConfigLoadError(f"Fraud rules file {self.path} must contain a mapping")

        try:
            return parse_rule_config(raw)
        except (KeyError, ValueError, TypeError) as e:
            raise ConfigLoadError(f"Invalid fraud rules configuration in {self.path}: {e}") from e


def parse_rule_config(raw: Dict[str, Any]) -> FraudRuleConfig:
    """Build a FraudRuleConfig from plain data; raises KeyError/ValueError/TypeError on bad input"""
    rules = [_parse_rule(r) for r in raw.get("rules") or []]
    providers = [_parse_provider(p) for p in raw.get("providers") or []]
    thresholds = _parse_thresholds(raw["thresholds"])
    return FraudRuleConfig(rules=rules, providers=providers, thresholds=thresholds)


def _parse_rule(raw: Dict[str, Any]) -> FraudRule:
    weight = float(raw["weight"])
    if not 0.0 <= weight <= 1.0:
        raise ValueError(f"rule {raw['name']!r} weight {weight} outside [0, 1]")

    conditions: List[FraudCondition] = [
        FraudCondition(
            field=str(c["field"]),
            operator=ConditionOperator(c["operator"]),
            value=c["value"],
            description=str(c.get("description", "")),
        )
        for c in raw["conditions"]
    ]
    if not conditions:
        raise ValueError(f"rule {raw['name']!r} has no conditions")

    return FraudRule(
        name=str(raw["name"]),
        enabled=_parse_enabled(raw),
        weight=weight,
        conditions=conditions,
        action=RuleAction(raw.get("action", "flag")),
    )


def _parse_provider(raw: Dict[str, Any]) -> ProviderConfig:
    return ProviderConfig(
        name=str(raw["name"]),
        priority=int(raw["priority"]),
        risk_tolerance=RiskTolerance(raw.get("risk_tolerance", raw.get("riskTolerance", "medium"))),
        enabled=_parse_enabled(raw),
    )


def _parse_thresholds(raw: Dict[str, Any]) -> RiskThresholds:
    thresholds = RiskThresholds(
        low=float(raw["low"]),
        medium=float(raw["medium"]),
        high=float(raw["high"]),
        critical=float(raw["critical"]),
    )
    if not (0.0 <= thresholds.low < thresholds.medium < thresholds.high < thresholds.critical <= 1.0):
        raise ValueError(f"thresholds must be ascending within [0, 1]: {raw}")
    return thresholds


def _parse_enabled(raw: Dict[str, Any]) -> bool:
    # YAML "false" (quoted) is a truthy string; only real booleans are accepted
    enabled = raw.get("enabled", True)
    if not isinstance(enabled, bool):
        raise ValueError(f"{raw.get('name')!r} enabled must be true or false, got {enabled!r}")
    return enabled
