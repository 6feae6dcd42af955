"""The SLO model, its validation and the Prometheus rule type."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Callable, Optional

from .helpers import (
    SLI_ERROR_METRIC_PREFIX,
    SLO_ID_LABEL,
    SLO_NAME_LABEL,
    SLO_SERVICE_LABEL,
    TPL_KEY_WINDOW,
    TemplateError,
    duration_to_prom_str,
    render_template,
)
from .promql import is_valid_expression, is_valid_label_name, is_valid_label_value

_NAME_RE = re.compile(r"^[A-Za-z0-9][-A-Za-z0-9_.]*[A-Za-z0-9]$")
_TPL_WINDOW_RE = re.compile(r"\{\{ *\." + TPL_KEY_WINDOW + r" *\}\}")
_FAKE_TEMPLATE_DATA = {TPL_KEY_WINDOW: "1m"}

_Report = Callable[[str, str, str], None]


class ValidationError(ValueError):
    """Raised when an SLO group is invalid; holds every problem found."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__("\n".join(self.errors))


@dataclass
class Rule:
    """A Prometheus recording or alerting rule."""

    record: str = ""
    alert: str = ""
    expr: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """The rule in Prometheus rule-file form, empty fields left out."""
        data: dict = {}
        if self.record:
            data["record"] = self.record
        if self.alert:
            data["alert"] = self.alert
        data["expr"] = self.expr
        if self.labels:
            data["labels"] = dict(self.labels)
        if self.annotations:
            data["annotations"] = dict(self.annotations)
        return data


def _check_query(ns: str, name: str, query: str, report: _Report) -> None:
    if not query:
        report(ns, name, "required")
        return
    try:
        rendered = render_template(query, _FAKE_TEMPLATE_DATA, strict=False)
    except TemplateError:
        rendered = None
    if rendered is None or not is_valid_expression(rendered):
        report(ns, name, "prom_expr")
    elif not _TPL_WINDOW_RE.search(query):
        report(ns, name, "template_vars")


def _check_map(
    ns: str,
    name: str,
    mapping: Optional[dict[str, str]],
    key_check: Callable[[str], bool],
    key_tag: str,
    check_value: bool,
    report: _Report,
) -> None:
    for key in sorted(mapping or {}):
        key_ns, key_field = f"{ns}.{name}[{key}]", f"{name}[{key}]"
        if not key_check(key):
            report(key_ns, key_field, key_tag)
        value = mapping[key]
        if not value:
            report(key_ns, key_field, "required")
        elif check_value and not is_valid_label_value(value):
            report(key_ns, key_field, "prom_label_value")


def _label_key_ok(key: str) -> bool:
    return is_valid_label_name(key) and key != "__name__"


@dataclass
class SLIRaw:
    """An SLI given as a single error-ratio query."""

    error_ratio_query: str = ""

    def _validate(self, ns: str, report: _Report) -> None:
        _check_query(f"{ns}.ErrorRatioQuery", "ErrorRatioQuery", self.error_ratio_query, report)


@dataclass
class SLIEvents:
    """An SLI given as error and total event queries."""

    error_query: str = ""
    total_query: str = ""

    def _validate(self, ns: str, report: _Report) -> None:
        _check_query(f"{ns}.ErrorQuery", "ErrorQuery", self.error_query, report)
        _check_query(f"{ns}.TotalQuery", "TotalQuery", self.total_query, report)
        if self.error_query and self.total_query and self.error_query == self.total_query:
            report(f"{ns}.", "", "sli_events_queries_different")


@dataclass
class SLI:
    """An SLI; exactly one of its kinds must be set."""

    raw: Optional[SLIRaw] = None
    events: Optional[SLIEvents] = None

    def _validate(self, ns: str, report: _Report) -> None:
        if self.raw is not None:
            self.raw._validate(f"{ns}.Raw", report)
        if self.events is not None:
            self.events._validate(f"{ns}.Events", report)
        kinds = sum(kind is not None for kind in (self.raw, self.events))
        if kinds > 1:
            report(f"{ns}.", "", "one_sli_type")
        elif kinds == 0:
            report(f"{ns}.", "", "sli_type_required")


@dataclass
class AlertMeta:
    """Settings of one kind of SLO alert."""

    disable: bool = False
    name: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)

    def _validate(self, ns: str, report: _Report) -> None:
        if not self.disable and not self.name:
            report(f"{ns}.Name", "Name", "required_if_enabled")
        _check_map(ns, "Labels", self.labels, _label_key_ok, "prom_label_key", True, report)
        _check_map(ns, "Annotations", self.annotations, is_valid_label_name,
                   "prom_annot_key", False, report)


@dataclass
class SLO:
    """A service level objective."""

    id: str = ""
    name: str = ""
    description: str = ""
    service: str = ""
    rule_group_interval: timedelta = timedelta(0)
    sli_error_rules_interval: timedelta = timedelta(0)
    metadata_rules_interval: timedelta = timedelta(0)
    alert_rules_interval: timedelta = timedelta(0)
    sli: SLI = field(default_factory=SLI)
    time_window: timedelta = timedelta(0)
    objective: float = 0.0
    labels: dict[str, str] = field(default_factory=dict)
    page_alert_meta: AlertMeta = field(default_factory=AlertMeta)
    ticket_alert_meta: AlertMeta = field(default_factory=AlertMeta)
    info_labels: dict[str, str] = field(default_factory=dict)

    def sli_error_metric(self, window: timedelta) -> str:
        """Name of the SLI error recording for *window*."""
        return SLI_ERROR_METRIC_PREFIX + duration_to_prom_str(window)

    def id_labels(self) -> dict[str, str]:
        """Labels that identify this SLO's metrics and alerts."""
        return {
            SLO_ID_LABEL: self.id,
            SLO_NAME_LABEL: self.name,
            SLO_SERVICE_LABEL: self.service,
        }

    def _validate(self, ns: str, report: _Report) -> None:
        for attr, value in (("ID", self.id), ("Name", self.name), ("Service", self.service)):
            if not value:
                report(f"{ns}.{attr}", attr, "required")
            elif not _NAME_RE.match(value):
                report(f"{ns}.{attr}", attr, "name")
        self.sli._validate(f"{ns}.SLI", report)
        if not self.time_window:
            report(f"{ns}.TimeWindow", "TimeWindow", "required")
        if not self.objective > 0:
            report(f"{ns}.Objective", "Objective", "gt")
        elif self.objective > 100:
            report(f"{ns}.Objective", "Objective", "lte")
        _check_map(ns, "Labels", self.labels, _label_key_ok, "prom_label_key", True, report)
        self.page_alert_meta._validate(f"{ns}.PageAlertMeta", report)
        self.ticket_alert_meta._validate(f"{ns}.TicketAlertMeta", report)
        _check_map(ns, "InfoLabels", self.info_labels, _label_key_ok, "prom_label_key", True, report)


@dataclass
class SLOGroup:
    """A set of SLOs loaded together."""

    slos: list[SLO] = field(default_factory=list)

    def validate(self) -> None:
        """Raise ``ValidationError`` if any SLO in the group is invalid."""
        errors: list[str] = []

        def report(ns: str, name: str, tag: str) -> None:
            errors.append(
                f"Key: '{ns}' Error:Field validation for '{name}' failed on the '{tag}' tag"
            )

        for index, slo in enumerate(self.slos):
            slo._validate(f"SLOGroup.SLOs[{index}]", report)
        if not self.slos:
            report("SLOGroup.", "", "slos_required")
        seen: set[str] = set()
        for slo in self.slos:
            if slo.id in seen:
                report(f"SLOGroup.{slo.id}", slo.id, "slo_repeated")
            seen.add(slo.id)
        if errors:
            raise ValidationError(errors)


@dataclass
class SLORules:
    """The Prometheus rules generated for one SLO."""

    sli_error_rec_rules: list[Rule] = field(default_factory=list)
    metadata_rec_rules: list[Rule] = field(default_factory=list)
    alert_rules: list[Rule] = field(default_factory=list)