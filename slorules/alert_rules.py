"""Generation of the multiwindow multi-burn-rate SLO alert rules."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from .alert import MWMBAlert, MWMBAlertGroup
from .helpers import (
    SLO_NAME_LABEL,
    SLO_SERVICE_LABEL,
    SLO_SEVERITY_LABEL,
    SLO_WINDOW_LABEL,
    format_value,
    labels_to_prom_filter,
    merge_labels,
)
from .model import SLO, AlertMeta, Rule

AlertGenFunc = Callable[[SLO, AlertMeta, MWMBAlert, MWMBAlert], Rule]

_MWMB_ALERT_TEMPLATE = """(
    max({quick_short}{filter} > ({quick_factor} * {budget})) without ({window_label})
    and
    max({quick_long}{filter} > ({quick_factor} * {budget})) without ({window_label})
)
or
(
    max({slow_short}{filter} > ({slow_factor} * {budget})) without ({window_label})
    and
    max({slow_long}{filter} > ({slow_factor} * {budget})) without ({window_label})
)
"""


def default_slo_alert_generator(
    slo: SLO, alert_meta: AlertMeta, quick: MWMBAlert, slow: MWMBAlert
) -> Rule:
    """Build the alert rule for one quick/slow pair of MWMB alerts."""
    # Quick and slow share the error budget and severity, either one will do.
    expr = _MWMB_ALERT_TEMPLATE.format(
        filter=labels_to_prom_filter(slo.id_labels()),
        budget=format_value(quick.error_budget / 100),
        quick_short=slo.sli_error_metric(quick.short_window),
        quick_long=slo.sli_error_metric(quick.long_window),
        quick_factor=format_value(quick.burn_rate_factor),
        slow_short=slo.sli_error_metric(slow.short_window),
        slow_long=slo.sli_error_metric(slow.long_window),
        slow_factor=format_value(slow.burn_rate_factor),
        window_label=SLO_WINDOW_LABEL,
    )

    severity = str(quick.severity)
    extra_annotations = {
        "title": (
            f"({severity}) {{{{$labels.{SLO_SERVICE_LABEL}}}}} {{{{$labels.{SLO_NAME_LABEL}}}}} "
            "SLO error budget burn rate is too fast."
        ),
        "summary": (
            f"{{{{$labels.{SLO_SERVICE_LABEL}}}}} {{{{$labels.{SLO_NAME_LABEL}}}}} "
            "SLO error budget burn rate is over expected."
        ),
    }
    # The SLO labels are inherited from the recording rules, so only the
    # severity is added here.
    extra_labels = {SLO_SEVERITY_LABEL: severity}

    return Rule(
        alert=alert_meta.name,
        expr=expr,
        labels=merge_labels(extra_labels, alert_meta.labels),
        annotations=merge_labels(extra_annotations, alert_meta.annotations),
    )


@dataclass(frozen=True)
class SLOAlertRulesGenerator:
    """Generates the page and ticket alert rules of an SLO."""

    alert_gen_func: AlertGenFunc = default_slo_alert_generator

    def generate(self, slo: SLO, alerts: MWMBAlertGroup) -> list[Rule]:
        """Return the enabled alert rules of *slo*, page first."""
        rules: list[Rule] = []
        kinds = (
            ("page", slo.page_alert_meta, alerts.page_quick, alerts.page_slow),
            ("ticket", slo.ticket_alert_meta, alerts.ticket_quick, alerts.ticket_slow),
        )
        for kind, meta, quick, slow in kinds:
            if meta.disable:
                continue
            try:
                rules.append(self.alert_gen_func(slo, meta, quick, slow))
            except ValueError as err:
                raise ValueError(f"could not create {kind} alert: {err}") from err
        return rules


SLO_ALERT_RULES_GENERATOR = SLOAlertRulesGenerator()