"""Generation of the SLI and metadata Prometheus recording rules."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal

from .alert import MWMBAlertGroup
from .helpers import (
    SLO_ID_LABEL,
    SLO_MODE_LABEL,
    SLO_NAME_LABEL,
    SLO_OBJECTIVE_LABEL,
    SLO_SERVICE_LABEL,
    SLO_SPEC_LABEL,
    SLO_VERSION_LABEL,
    SLO_WINDOW_LABEL,
    TPL_KEY_WINDOW,
    duration_to_prom_str,
    get_alert_group_windows,
    labels_to_prom_filter,
    merge_labels,
    render_template,
)
from .model import SLO, Rule

METRIC_SLO_OBJECTIVE_RATIO = "slo:objective:ratio"
METRIC_SLO_ERROR_BUDGET_RATIO = "slo:error_budget:ratio"
METRIC_SLO_TIME_PERIOD_DAYS = "slo:time_period:days"
METRIC_SLO_CURRENT_BURN_RATE_RATIO = "slo:current_burn_rate:ratio"
METRIC_SLO_PERIOD_BURN_RATE_RATIO = "slo:period_burn_rate:ratio"
METRIC_SLO_PERIOD_ERROR_BUDGET_REMAINING_RATIO = "slo:period_error_budget_remaining:ratio"
METRIC_SLO_INFO = "sloth_slo_info"


@dataclass(frozen=True)
class Info:
    """Information about the generator run, published on the info metric."""

    version: str = "dev"
    mode: str = ""
    spec: str = ""


def _decimal_digits(value: float) -> tuple[str, int]:
    """Shortest significant digits of *value* and the decimal point position."""
    _, digits, exponent = Decimal(repr(abs(value))).as_tuple()
    text = "".join(map(str, digits))
    point = len(text) + int(exponent)
    stripped = text.rstrip("0") or "0"
    return stripped, point


def _place_point(digits: str, point: int) -> str:
    if point <= 0:
        return "0." + "0" * (-point) + digits
    if point >= len(digits):
        return digits + "0" * (point - len(digits))
    return digits[:point] + "." + digits[point:]


def _format_g(value: float) -> str:
    """Format like a shortest ``%g``: exponent form outside 1e-4 .. 1e6."""
    if value == 0:
        return "0"
    sign = "-" if value < 0 else ""
    digits, point = _decimal_digits(value)
    exp = point - 1
    if exp < -4 or exp >= 6:
        mantissa = digits[0] + ("." + digits[1:] if len(digits) > 1 else "")
        exp_sign = "-" if exp < 0 else "+"
        return f"{sign}{mantissa}e{exp_sign}{abs(exp):02d}"
    return sign + _place_point(digits, point)


def _format_plain(value: float) -> str:
    """Format with the shortest digits and never an exponent."""
    if value == 0:
        return "0"
    sign = "-" if value < 0 else ""
    digits, point = _decimal_digits(value)
    return sign + _place_point(digits, point)


def _rule_labels(slo: SLO, window: str) -> dict[str, str]:
    return merge_labels(slo.id_labels(), {SLO_WINDOW_LABEL: window}, slo.labels)


def _raw_sli_rule(slo: SLO, window: timedelta) -> Rule:
    assert slo.sli.raw is not None
    str_window = duration_to_prom_str(window)
    expr = render_template(
        f"({slo.sli.raw.error_ratio_query})", {TPL_KEY_WINDOW: str_window}, strict=True
    )
    return Rule(record=slo.sli_error_metric(window), expr=expr, labels=_rule_labels(slo, str_window))


def _events_sli_rule(slo: SLO, window: timedelta) -> Rule:
    events = slo.sli.events
    assert events is not None
    str_window = duration_to_prom_str(window)
    source = f"({events.error_query})\n/\n({events.total_query})\n"
    expr = render_template(source, {TPL_KEY_WINDOW: str_window}, strict=True)
    return Rule(record=slo.sli_error_metric(window), expr=expr, labels=_rule_labels(slo, str_window))


def _sli_rule(slo: SLO, window: timedelta) -> Rule:
    if slo.sli.events is not None:
        return _events_sli_rule(slo, window)
    if slo.sli.raw is not None:
        return _raw_sli_rule(slo, window)
    raise ValueError("invalid SLI type")


def _optimized_sli_rule(slo: SLO, window: timedelta, short_window: timedelta) -> Rule:
    """Average the short-window SLI recording over *window*.

    Summing the ratios and dividing by their count avoids averaging averages.
    """
    if window == short_window:
        raise ValueError("can't optimize using the same shortwindow as the window to optimize")
    metric = slo.sli_error_metric(short_window)
    selector = labels_to_prom_filter(slo.id_labels())
    str_window = duration_to_prom_str(window)
    expr = (
        f"sum_over_time({metric}{selector}[{str_window}])\n"
        f"/ ignoring ({SLO_WINDOW_LABEL})\n"
        f"count_over_time({metric}{selector}[{str_window}])\n"
    )
    return Rule(record=slo.sli_error_metric(window), expr=expr, labels=_rule_labels(slo, str_window))


@dataclass(frozen=True)
class SLIRecordingRulesGenerator:
    """Generates the SLI error recording rules used by the SLO alerts.

    When *optimized*, the rule for the whole SLO time window is computed
    from the shortest page window recording instead of the raw query.
    """

    optimized: bool = False

    def _rule(self, slo: SLO, window: timedelta, alerts: MWMBAlertGroup) -> Rule:
        if self.optimized and window == slo.time_window:
            return _optimized_sli_rule(slo, window, alerts.page_quick.short_window)
        return _sli_rule(slo, window)

    def generate(self, slo: SLO, alerts: MWMBAlertGroup) -> list[Rule]:
        """Return one recording rule per alert window plus the SLO window."""
        windows = [*get_alert_group_windows(alerts), slo.time_window]
        rules = []
        for window in windows:
            try:
                rules.append(self._rule(slo, window, alerts))
            except ValueError as err:
                raise ValueError(
                    f"could not create {slo.id!r} SLO rule for window "
                    f"{duration_to_prom_str(window)}: {err}"
                ) from err
        return rules


def _burn_rate_expr(error_metric: str, selector: str) -> str:
    return (
        f"{error_metric}{selector}\n"
        f"/ on({SLO_ID_LABEL}, {SLO_NAME_LABEL}, {SLO_SERVICE_LABEL}) group_left\n"
        f"{METRIC_SLO_ERROR_BUDGET_RATIO}{selector}\n"
    )


@dataclass(frozen=True)
class MetadataRecordingRulesGenerator:
    """Generates the SLO metadata recording rules."""

    def generate(self, info: Info, slo: SLO, alerts: MWMBAlertGroup) -> list[Rule]:
        """Return the objective, budget, period, burn-rate and info rules."""
        labels = merge_labels(slo.id_labels(), slo.labels)
        info_labels = merge_labels(
            labels,
            {
                SLO_VERSION_LABEL: info.version,
                SLO_MODE_LABEL: str(info.mode),
                SLO_SPEC_LABEL: info.spec,
                SLO_OBJECTIVE_LABEL: _format_plain(slo.objective),
            },
            slo.info_labels,
        )

        objective_ratio = _format_g(slo.objective / 100)
        selector = labels_to_prom_filter(slo.id_labels())
        period_days = _format_g(slo.time_window / timedelta(hours=1) / 24)

        def rule(record: str, expr: str, rule_labels: dict[str, str]) -> Rule:
            return Rule(record=record, expr=expr, labels=dict(rule_labels))

        return [
            rule(METRIC_SLO_OBJECTIVE_RATIO, f"vector({objective_ratio})", labels),
            rule(METRIC_SLO_ERROR_BUDGET_RATIO, f"vector(1-{objective_ratio})", labels),
            rule(METRIC_SLO_TIME_PERIOD_DAYS, f"vector({period_days})", labels),
            rule(
                METRIC_SLO_CURRENT_BURN_RATE_RATIO,
                _burn_rate_expr(slo.sli_error_metric(alerts.page_quick.short_window), selector),
                labels,
            ),
            rule(
                METRIC_SLO_PERIOD_BURN_RATE_RATIO,
                _burn_rate_expr(slo.sli_error_metric(slo.time_window), selector),
                labels,
            ),
            rule(
                METRIC_SLO_PERIOD_ERROR_BUDGET_REMAINING_RATIO,
                f"1 - {METRIC_SLO_PERIOD_BURN_RATE_RATIO}{selector}",
                labels,
            ),
            rule(METRIC_SLO_INFO, "vector(1)", info_labels),
        ]


SLI_RECORDING_RULES_GENERATOR = SLIRecordingRulesGenerator(optimized=False)
OPTIMIZED_SLI_RECORDING_RULES_GENERATOR = SLIRecordingRulesGenerator(optimized=True)
METADATA_RECORDING_RULES_GENERATOR = MetadataRecordingRulesGenerator()