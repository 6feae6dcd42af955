from datetime import timedelta

import pytest

from slorules.alert import AlertSeverity, MWMBAlert, MWMBAlertGroup
from slorules.alert_rules import SLOAlertRulesGenerator, default_slo_alert_generator
from slorules.model import SLO, AlertMeta, Rule


def _alert_group() -> MWMBAlertGroup:
    def mk(alert_id, base, factor, severity):
        return MWMBAlert(
            id=alert_id,
            short_window=timedelta(minutes=base + 1),
            long_window=timedelta(minutes=base + 2),
            burn_rate_factor=factor,
            error_budget=1,
            severity=severity,
        )

    return MWMBAlertGroup(
        page_quick=mk("10", 10, 13, AlertSeverity.PAGE),
        page_slow=mk("20", 20, 23, AlertSeverity.PAGE),
        ticket_quick=mk("30", 30, 33, AlertSeverity.TICKET),
        ticket_slow=mk("4", 40, 43, AlertSeverity.TICKET),
    )


FILTER = '{sloth_id="test-svc-test", sloth_service="test-svc", sloth_slo="test"}'

PAGE_EXPR = f"""(
    max(slo:sli_error:ratio_rate11m{FILTER} > (13 * 0.01)) without (sloth_window)
    and
    max(slo:sli_error:ratio_rate12m{FILTER} > (13 * 0.01)) without (sloth_window)
)
or
(
    max(slo:sli_error:ratio_rate21m{FILTER} > (23 * 0.01)) without (sloth_window)
    and
    max(slo:sli_error:ratio_rate22m{FILTER} > (23 * 0.01)) without (sloth_window)
)
"""

TICKET_EXPR = f"""(
    max(slo:sli_error:ratio_rate31m{FILTER} > (33 * 0.01)) without (sloth_window)
    and
    max(slo:sli_error:ratio_rate32m{FILTER} > (33 * 0.01)) without (sloth_window)
)
or
(
    max(slo:sli_error:ratio_rate41m{FILTER} > (43 * 0.01)) without (sloth_window)
    and
    max(slo:sli_error:ratio_rate42m{FILTER} > (43 * 0.01)) without (sloth_window)
)
"""

SUMMARY = "{{$labels.sloth_service}} {{$labels.sloth_slo}} SLO error budget burn rate is over expected."

PAGE_RULE = Rule(
    alert="something1",
    expr=PAGE_EXPR,
    labels={"custom-label": "test1", "sloth_severity": "page"},
    annotations={
        "custom-annot": "test1",
        "summary": SUMMARY,
        "title": "(page) {{$labels.sloth_service}} {{$labels.sloth_slo}} SLO error budget burn rate is too fast.",
    },
)

TICKET_RULE = Rule(
    alert="something2",
    expr=TICKET_EXPR,
    labels={"custom-label": "test2", "sloth_severity": "ticket"},
    annotations={
        "custom-annot": "test2",
        "summary": SUMMARY,
        "title": "(ticket) {{$labels.sloth_service}} {{$labels.sloth_slo}} SLO error budget burn rate is too fast.",
    },
)

PAGE_META = AlertMeta(
    name="something1",
    labels={"custom-label": "test1"},
    annotations={"custom-annot": "test1"},
)
TICKET_META = AlertMeta(
    name="something2",
    labels={"custom-label": "test2"},
    annotations={"custom-annot": "test2"},
)


def _slo(page, ticket) -> SLO:
    return SLO(id="test-svc-test", name="test", service="test-svc",
               page_alert_meta=page, ticket_alert_meta=ticket)


@pytest.mark.parametrize(
    "page, ticket, expected",
    [
        (PAGE_META, TICKET_META, [PAGE_RULE, TICKET_RULE]),
        (PAGE_META, AlertMeta(disable=True), [PAGE_RULE]),
        (AlertMeta(disable=True), TICKET_META, [TICKET_RULE]),
        (AlertMeta(disable=True), AlertMeta(disable=True), []),
    ],
)
def test_generate_slo_alert_rules(page, ticket, expected):
    rules = SLOAlertRulesGenerator().generate(_slo(page, ticket), _alert_group())
    assert rules == expected


def test_default_generator_builds_page_rule():
    group = _alert_group()
    rule = default_slo_alert_generator(
        _slo(PAGE_META, TICKET_META), PAGE_META, group.page_quick, group.page_slow
    )
    assert rule == PAGE_RULE


def test_alert_meta_labels_override_severity():
    meta = AlertMeta(name="x", labels={"sloth_severity": "custom"})
    group = _alert_group()
    rule = default_slo_alert_generator(_slo(meta, meta), meta, group.page_quick, group.page_slow)
    assert rule.labels == {"sloth_severity": "custom"}


def test_generator_error_is_wrapped():
    def failing(slo, meta, quick, slow):
        raise ValueError("boom")

    generator = SLOAlertRulesGenerator(alert_gen_func=failing)
    with pytest.raises(ValueError, match="could not create page alert: boom"):
        generator.generate(_slo(PAGE_META, TICKET_META), _alert_group())