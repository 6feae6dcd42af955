# slorules

Turn service level objective (SLO) specifications into Prometheus rule files:
SLI error-ratio recording rules, SLO metadata recording rules and
multiwindow, multi-burn-rate alerts.

## Installation

```
pip install slorules
```

## What it does

- `slorules.spec.YAMLSpecLoader` reads `prometheus/v1` SLO specs (events, raw
  or plugin-based SLIs) into an `slorules.model.SLOGroup`. SLI plugins are
  looked up through a repository object; `slorules.spec.DictPluginRepo` holds
  `slorules.spec.SLIPlugin` objects in memory. Loading problems raise
  `slorules.spec.SpecError`.
- `slorules.openslo.OpenSLOSpecLoader` reads `openslo/v1alpha` ratio-based
  SLOs into the same model, one SLO per objective.
- `SLOGroup.validate()` checks names, label keys and values, PromQL
  expressions, objectives and SLI settings. It collects every problem it finds
  and raises `slorules.model.ValidationError`, whose `errors` attribute lists
  them.
- `slorules.recording_rules.SLIRecordingRulesGenerator` builds one SLI error
  recording rule for every distinct alert window plus the whole SLO period.
  With `optimized=True`, the period rule is averaged from the shortest page
  window recording instead of evaluating the raw query over the full period.
- `slorules.recording_rules.MetadataRecordingRulesGenerator` builds the
  objective, error budget, period, burn-rate and info recording rules; the
  info rule carries the fields of a `slorules.recording_rules.Info`.
- `slorules.alert_rules.SLOAlertRulesGenerator` builds the page and ticket
  alerts from an `slorules.alert.MWMBAlertGroup`, skipping disabled ones.
- `slorules.storage.GroupedRulesYAMLWriter` writes everything as a Prometheus
  rule-groups YAML document, one group per SLO and rule kind, with each
  group's own interval or the SLO's rule group interval. Writing no rules at
  all raises `slorules.storage.NoSLORulesError`.

## Example

```python
import io
from datetime import timedelta

from slorules.alert import MWMBAlert, MWMBAlertGroup, AlertSeverity
from slorules.alert_rules import SLOAlertRulesGenerator
from slorules.model import SLORules
from slorules.recording_rules import (
    Info,
    MetadataRecordingRulesGenerator,
    SLIRecordingRulesGenerator,
)
from slorules.spec import DictPluginRepo, YAMLSpecLoader
from slorules.storage import GroupedRulesYAMLWriter, StorageSLO

spec = b"""
version: "prometheus/v1"
service: "myservice"
slos:
  - name: "requests-availability"
    objective: 99.9
    sli:
      events:
        error_query: sum(rate(http_requests_total{code=~"5.."}[{{.window}}]))
        total_query: sum(rate(http_requests_total[{{.window}}]))
    alerting:
      name: MyServiceHighErrorRate
      page_alert:
        labels:
          severity: pageteam
      ticket_alert:
        disable: true
"""

loader = YAMLSpecLoader(DictPluginRepo({}), timedelta(days=30))
group = loader.load_spec(spec)
group.validate()

def window(short, long, factor, severity):
    return MWMBAlert(
        id="", short_window=short, long_window=long,
        burn_rate_factor=factor, error_budget=0.1, severity=severity,
    )

alerts = MWMBAlertGroup(
    page_quick=window(timedelta(minutes=5), timedelta(hours=1), 14.4, AlertSeverity.PAGE),
    page_slow=window(timedelta(minutes=30), timedelta(hours=6), 6, AlertSeverity.PAGE),
    ticket_quick=window(timedelta(hours=2), timedelta(days=1), 3, AlertSeverity.TICKET),
    ticket_slow=window(timedelta(hours=6), timedelta(days=3), 1, AlertSeverity.TICKET),
)

info = Info(version="dev", mode="cli-gen-prom", spec="prometheus/v1")
stored = []
for slo in group.slos:
    rules = SLORules(
        sli_error_rec_rules=SLIRecordingRulesGenerator(optimized=True).generate(slo, alerts),
        metadata_rec_rules=MetadataRecordingRulesGenerator().generate(info, slo, alerts),
        alert_rules=SLOAlertRulesGenerator().generate(slo, alerts),
    )
    stored.append(StorageSLO(slo=slo, rules=rules))

out = io.StringIO()
GroupedRulesYAMLWriter(out).store_slos(stored)
print(out.getvalue())
```

SLI queries use the `{{.window}}` placeholder, which is replaced by each rule's
time window (`5m`, `1h`, `30d`, ...).

## What it does not do

- There is no command-line tool; the package is used as a library.
- It does not work out the alert windows, burn-rate factors or error budget:
  the `MWMBAlertGroup` must be built by the caller.
- SLI plugins are not discovered or loaded from files; they are Python
  callables handed to the loader through a plugin repository.

## Running the tests

```
pip install -e ".[test]"
pytest
```