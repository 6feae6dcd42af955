"""Writing of the generated SLO rules as a Prometheus rules YAML file."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Optional, Sequence, TextIO

import yaml

from .helpers import duration_to_prom_str
from .model import SLO, Rule, SLORules

DISCLAIMER = "\n---\n# Code generated by slorules ({version}).\n# DO NOT EDIT.\n\n"


class NoSLORulesError(ValueError):
    """Raised when there are no rules at all to write."""

    def __init__(self, message: str = "0 SLO Prometheus rules generated") -> None:
        super().__init__(message)


@dataclass
class StorageSLO:
    """An SLO together with the rules generated for it."""

    slo: SLO = field(default_factory=SLO)
    rules: SLORules = field(default_factory=SLORules)


class _RulesDumper(yaml.SafeDumper):
    pass


def _represent_str(dumper: yaml.SafeDumper, value: str) -> yaml.ScalarNode:
    style = "|" if "\n" in value else None
    return dumper.represent_scalar("tag:yaml.org,2002:str", value, style=style)


_RulesDumper.add_representer(str, _represent_str)


def _rule_data(rule: Rule) -> dict[str, Any]:
    data = rule.to_dict()
    for key in ("labels", "annotations"):
        if key in data:
            data[key] = dict(sorted(data[key].items()))
    return data


def _group(name: str, rules: Sequence[Rule], interval: timedelta) -> dict[str, Any]:
    group: dict[str, Any] = {"name": name}
    if interval:
        group["interval"] = duration_to_prom_str(interval)
    group["rules"] = [_rule_data(rule) for rule in rules]
    return group


class GroupedRulesYAMLWriter:
    """Writes SLO rules, grouped per SLO and kind, as Prometheus rules YAML."""

    def __init__(
        self,
        writer: TextIO,
        version: str = "dev",
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._writer = writer
        self._version = version
        self._logger = logger or logging.getLogger(__name__)

    def store_slos(self, slos: Sequence[StorageSLO]) -> None:
        """Write the SLI recording, metadata recording and alert groups of *slos*.

        Each group uses its own interval when set, else the SLO's rule group
        interval, else none.
        """
        if not slos:
            raise ValueError("slo rules required")

        groups = []
        for item in slos:
            slo = item.slo
            kinds = (
                ("sli-recordings", item.rules.sli_error_rec_rules, slo.sli_error_rules_interval),
                ("meta-recordings", item.rules.metadata_rec_rules, slo.metadata_rules_interval),
                ("alerts", item.rules.alert_rules, slo.alert_rules_interval),
            )
            for kind, rules, interval in kinds:
                if rules:
                    groups.append(_group(
                        f"sloth-slo-{kind}-{slo.id}",
                        rules,
                        interval or slo.rule_group_interval,
                    ))

        # Writing nothing is most likely a mistake (typos, everything disabled...).
        if not groups:
            raise NoSLORulesError()

        body = yaml.dump(
            {"groups": groups},
            Dumper=_RulesDumper,
            sort_keys=False,
            default_flow_style=False,
            allow_unicode=True,
            width=2**31,
        )
        self._writer.write(DISCLAIMER.format(version=self._version) + body)
        self._logger.info("Prometheus rules written (%d groups)", len(groups))