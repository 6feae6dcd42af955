"""Naming conventions and small helpers shared by the rule generators."""

from __future__ import annotations

import re
from datetime import timedelta
from typing import Any, Iterable, Mapping, Optional

SLI_ERROR_METRIC_PREFIX = "slo:sli_error:ratio_rate"

SLO_NAME_LABEL = "sloth_slo"
SLO_ID_LABEL = "sloth_id"
SLO_SERVICE_LABEL = "sloth_service"
SLO_WINDOW_LABEL = "sloth_window"
SLO_SEVERITY_LABEL = "sloth_severity"
SLO_VERSION_LABEL = "sloth_version"
SLO_MODE_LABEL = "sloth_mode"
SLO_SPEC_LABEL = "sloth_spec"
SLO_OBJECTIVE_LABEL = "sloth_objective"

TPL_KEY_WINDOW = "window"

_MS = 1
_UNITS = (
    ("y", 1000 * 60 * 60 * 24 * 365, True),
    ("w", 1000 * 60 * 60 * 24 * 7, True),
    ("d", 1000 * 60 * 60 * 24, False),
    ("h", 1000 * 60 * 60, False),
    ("m", 1000 * 60, False),
    ("s", 1000, False),
    ("ms", 1, False),
)

_DURATION_RE = re.compile(
    r"^(?:(\d+)y)?(?:(\d+)w)?(?:(\d+)d)?(?:(\d+)h)?(?:(\d+)m)?(?:(\d+)s)?(?:(\d+)ms)?$"
)

_ACTION_RE = re.compile(r"\.([A-Za-z_][A-Za-z0-9_]*)")


class TemplateError(ValueError):
    """Raised when a template cannot be parsed or rendered."""


def merge_labels(*args: Optional[Mapping[str, str]]) -> dict[str, str]:
    """Merge label maps; later maps win."""
    merged: dict[str, str] = {}
    for labels in args:
        if labels:
            merged.update(labels)
    return merged


def _quote(value: str) -> str:
    escaped = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
    )
    return f'"{escaped}"'


def labels_to_prom_filter(labels: Mapping[str, str]) -> str:
    """Render labels as a sorted Prometheus selector filter."""
    pairs = (f"{key}={_quote(labels[key])}" for key in sorted(labels))
    return "{" + ", ".join(pairs) + "}"


def duration_to_prom_str(window: timedelta) -> str:
    """Format a duration the way Prometheus prints durations."""
    ms = window // timedelta(milliseconds=1)
    if ms == 0:
        return "0s"
    parts = []
    for unit, mult, exact in _UNITS:
        if exact and ms % mult != 0:
            continue
        count = ms // mult
        if count > 0:
            parts.append(f"{count}{unit}")
            ms -= count * mult
    return "".join(parts)


def parse_prom_duration(text: str) -> timedelta:
    """Parse a Prometheus duration string such as ``1h30m``."""
    if text == "0":
        return timedelta(0)
    match = _DURATION_RE.match(text or "")
    if not text or not match:
        raise ValueError(f"not a valid duration string: {text!r}")
    total = 0
    for group, (_, mult, _) in zip(match.groups(), _UNITS):
        if group:
            total += int(group) * mult
    return timedelta(milliseconds=total)


def format_value(value: Any) -> str:
    """Format a value as the template engine prints it."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if value.is_integer() and abs(value) < 1e21:
            return str(int(value))
        return repr(value)
    return str(value)


def render_template(source: str, data: Mapping[str, Any], strict: bool = True) -> str:
    """Render ``{{ .key }}`` actions in *source* with *data*.

    With *strict*, a missing key raises ``TemplateError``; otherwise it
    renders as ``<no value>``.
    """
    out = []
    pos = 0
    while True:
        start = source.find("{{", pos)
        if start == -1:
            out.append(source[pos:])
            break
        end = source.find("}}", start + 2)
        if end == -1:
            raise TemplateError("unclosed action")
        out.append(source[pos:start])
        inner = source[start + 2:end].strip()
        match = _ACTION_RE.fullmatch(inner)
        if not match:
            raise TemplateError(f"unsupported template action: {inner!r}")
        key = match.group(1)
        if key in data:
            out.append(format_value(data[key]))
        elif strict:
            raise TemplateError(f"map has no entry for key {key!r}")
        else:
            out.append("<no value>")
        pos = end + 2
    return "".join(out)


def get_alert_group_windows(alerts: Any) -> list[timedelta]:
    """Return the distinct windows of an alert group, sorted ascending."""
    windows: Iterable[timedelta] = alerts.windows()
    return sorted(set(windows))