import copy
from datetime import timedelta

import pytest

from slorules.model import (
    SLI,
    SLO,
    AlertMeta,
    Rule,
    SLIEvents,
    SLIRaw,
    SLOGroup,
    ValidationError,
)

ERR_Q = 'sum(rate(grpc_server_handled_requests_count{job="myapp",code=~"Internal|Unavailable"}[{{ .window }}]))'
TOTAL_Q = 'sum(rate(grpc_server_handled_requests_count{job="myapp"}[{{ .window }}]))'
BAD_UTF8 = b"\xc3\x28".decode("utf-8", "surrogateescape")


def good_group():
    return SLOGroup(
        slos=[
            SLO(
                id="slo1-id",
                name="test.slo-0_1",
                service="test-svc",
                time_window=timedelta(days=30),
                sli=SLI(events=SLIEvents(error_query=ERR_Q, total_query=TOTAL_Q)),
                objective=99.99,
                labels={"owner": "myteam", "category": "test"},
                page_alert_meta=AlertMeta(
                    name="testAlert",
                    labels={"tier": "1", "severity": "slack", "channel": "#a-myteam"},
                    annotations={"message": "This is very important.", "runbook": "http://whatever.com"},
                ),
                ticket_alert_meta=AlertMeta(
                    name="testAlert",
                    labels={"tier": "1", "severity": "slack", "channel": "#a-not-so-important"},
                    annotations={"message": "This is not very important.", "runbook": "http://whatever.com"},
                ),
            )
        ]
    )


def _set(path, value):
    def mutate(g):
        target = g.slos[0]
        *parents, last = path.split(".")
        for p in parents:
            target = getattr(target, p)
        setattr(target, last, value)
    return mutate


def _label(attr, key, value):
    def mutate(g):
        target = g.slos[0]
        for p in attr.split("."):
            target = getattr(target, p)
        target[key] = value
    return mutate


def _none(g):
    pass


def _empty(g):
    g.slos = []


def _repeat(g):
    g.slos.append(copy.deepcopy(g.slos[0]))


def _prefix(attr, pre="", post=""):
    def mutate(g):
        setattr(g.slos[0], attr, pre + getattr(g.slos[0], attr) + post)
    return mutate


def _same_queries(g):
    g.slos[0].sli.events.total_query = ERR_Q
    g.slos[0].sli.events.error_query = ERR_Q


def _disable(meta):
    def mutate(g):
        m = getattr(g.slos[0], meta)
        m.name, m.disable, m.labels, m.annotations = "", True, {}, {}
    return mutate


def K(ns, field, tag):
    return f"Key: '{ns}' Error:Field validation for '{field}' failed on the '{tag}' tag"


P = "SLOGroup.SLOs[0]"

VALID_CASES = [
    ("correct", _none),
    ("PageAlertMeta disabled", _disable("page_alert_meta")),
    ("TicketAlertMeta disabled", _disable("ticket_alert_meta")),
]

INVALID_CASES = [
    ("slos must exist", _empty, K("SLOGroup.", "", "slos_required")),
    ("repeated", _repeat, K("SLOGroup.slo1-id", "slo1-id", "slo_repeated")),
    ("id required", _set("id", ""), K(f"{P}.ID", "ID", "required")),
    ("id chars", _set("id", "this-is-{a-test"), K(f"{P}.ID", "ID", "name")),
    ("id start", _prefix("id", pre="_"), K(f"{P}.ID", "ID", "name")),
    ("id end", _prefix("id", post="_"), K(f"{P}.ID", "ID", "name")),
    ("name required", _set("name", ""), K(f"{P}.Name", "Name", "required")),
    ("name chars", _set("name", "this-is-{a-test"), K(f"{P}.Name", "Name", "name")),
    ("name start", _prefix("name", pre="_"), K(f"{P}.Name", "Name", "name")),
    ("name end", _prefix("name", post="_"), K(f"{P}.Name", "Name", "name")),
    ("service required", _set("service", ""), K(f"{P}.Service", "Service", "required")),
    ("service chars", _set("service", "this-is-{a-test"), K(f"{P}.Service", "Service", "name")),
    ("service start", _prefix("service", pre="_"), K(f"{P}.Service", "Service", "name")),
    ("service end", _prefix("service", post="_"), K(f"{P}.Service", "Service", "name")),
    ("no sli", _set("sli", SLI()), K(f"{P}.SLI.", "", "sli_type_required")),
    ("two sli", _set("sli.raw", SLIRaw(error_ratio_query=ERR_Q)), K(f"{P}.SLI.", "", "one_sli_type")),
    ("same queries", _same_queries, K(f"{P}.SLI.Events.", "", "sli_events_queries_different")),
    ("error expr", _set("sli.events.error_query", "sum(rate(grpc_server_handled_requests_count{[1m]))"),
     K(f"{P}.SLI.Events.ErrorQuery", "ErrorQuery", "prom_expr")),
    ("error vars", _set("sli.events.error_query", "sum(rate(grpc_server_handled_requests_count[1m]))"),
     K(f"{P}.SLI.Events.ErrorQuery", "ErrorQuery", "template_vars")),
    ("total expr", _set("sli.events.total_query", "sum(rate(grpc_server_handled_requests_count{[1m]))"),
     K(f"{P}.SLI.Events.TotalQuery", "TotalQuery", "prom_expr")),
    ("total vars", _set("sli.events.total_query", "sum(rate(grpc_server_handled_requests_count[1m]))"),
     K(f"{P}.SLI.Events.TotalQuery", "TotalQuery", "template_vars")),
    ("objective negative", _set("objective", -1), K(f"{P}.Objective", "Objective", "gt")),
    ("objective zero", _set("objective", 0), K(f"{P}.Objective", "Objective", "gt")),
    ("objective high", _set("objective", 100.0001), K(f"{P}.Objective", "Objective", "lte")),
    ("label key", _label("labels", ".something", "label key is wrong"),
     K(f"{P}.Labels[.something]", "Labels[.something]", "prom_label_key")),
    ("label empty", _label("labels", "something", ""),
     K(f"{P}.Labels[something]", "Labels[something]", "required")),
    ("label value", _label("labels", "something", BAD_UTF8),
     K(f"{P}.Labels[something]", "Labels[something]", "prom_label_value")),
]

for meta, ns in (("page_alert_meta", "PageAlertMeta"), ("ticket_alert_meta", "TicketAlertMeta")):
    INVALID_CASES += [
        (f"{ns} name", _set(f"{meta}.name", ""), K(f"{P}.{ns}.Name", "Name", "required_if_enabled")),
        (f"{ns} label key", _label(f"{meta}.labels", ".something", "label key is wrong"),
         K(f"{P}.{ns}.Labels[.something]", "Labels[.something]", "prom_label_key")),
        (f"{ns} label empty", _label(f"{meta}.labels", "something", ""),
         K(f"{P}.{ns}.Labels[something]", "Labels[something]", "required")),
        (f"{ns} label value", _label(f"{meta}.labels", "something", BAD_UTF8),
         K(f"{P}.{ns}.Labels[something]", "Labels[something]", "prom_label_value")),
        (f"{ns} annot key", _label(f"{meta}.annotations", ".something", "label key is wrong"),
         K(f"{P}.{ns}.Annotations[.something]", "Annotations[.something]", "prom_annot_key")),
        (f"{ns} annot empty", _label(f"{meta}.annotations", "something", ""),
         K(f"{P}.{ns}.Annotations[something]", "Annotations[something]", "required")),
    ]


@pytest.mark.parametrize("name, mutate", VALID_CASES, ids=[c[0] for c in VALID_CASES])
def test_validation_accepts(name, mutate):
    group = good_group()
    mutate(group)
    assert group.validate() is None


@pytest.mark.parametrize("name, mutate, expected", INVALID_CASES, ids=[c[0] for c in INVALID_CASES])
def test_validation_rejects(name, mutate, expected):
    group = good_group()
    mutate(group)
    with pytest.raises(ValidationError) as excinfo:
        group.validate()
    assert str(excinfo.value) == expected


def test_sli_error_metric_and_id_labels():
    slo = SLO(id="test", name="test-name", service="test-svc")
    assert slo.sli_error_metric(timedelta(minutes=5)) == "slo:sli_error:ratio_rate5m"
    assert slo.id_labels() == {"sloth_id": "test", "sloth_slo": "test-name", "sloth_service": "test-svc"}


def test_rule_to_dict_omits_empty():
    rule = Rule(record="test:record", expr="test-expr", labels={"test-label": "one"})
    assert rule.to_dict() == {"record": "test:record", "expr": "test-expr", "labels": {"test-label": "one"}}