"""Loading of ``prometheus/v1`` SLO spec documents into the SLO model."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable, Mapping, Optional, Protocol, Union

import yaml

from .helpers import merge_labels, parse_prom_duration
from .model import SLO, SLOGroup, AlertMeta, SLIEvents, SLIRaw

SPEC_VERSION = "prometheus/v1"

PLUGIN_META_SERVICE = "service"
PLUGIN_META_SLO = "slo"
PLUGIN_META_OBJECTIVE = "objective"

SLIPluginFunc = Callable[[dict[str, str], dict[str, str], dict[str, str]], str]

_SPEC_TYPE_RE = re.compile(r"^version: +['\"]?prometheus/v1['\"]? *$", re.M)


class SpecError(ValueError):
    """Raised when a spec cannot be loaded."""


class PluginNotFoundError(LookupError):
    """Raised when an SLI plugin is not known."""


@dataclass(frozen=True)
class SLIPlugin:
    """An SLI plugin: an identifier and the function building the raw query.

    The function takes the SLO metadata, the spec labels and the plugin
    options, and returns an error ratio query.
    """

    id: str
    func: SLIPluginFunc


class SLIPluginRepo(Protocol):
    """Anything that can look SLI plugins up by identifier."""

    def get_sli_plugin(self, plugin_id: str) -> SLIPlugin:
        ...


class DictPluginRepo:
    """SLI plugins held in memory, keyed by identifier."""

    def __init__(self, plugins: Optional[Mapping[str, SLIPlugin]] = None) -> None:
        self._plugins = dict(plugins or {})

    def get_sli_plugin(self, plugin_id: str) -> SLIPlugin:
        """Return the plugin with *plugin_id* or raise ``PluginNotFoundError``."""
        try:
            return self._plugins[plugin_id]
        except KeyError:
            raise PluginNotFoundError(f"plugin {plugin_id!r} missing") from None


def _to_text(data: Union[str, bytes]) -> str:
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data


def _str(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _mapping(value: Any, what: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise SpecError(f"{what} must be a mapping")
    return value


def _str_map(value: Any, what: str) -> dict[str, str]:
    return {_str(key): _str(item) for key, item in _mapping(value, what).items()}


def _float(value: Any, what: str) -> float:
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SpecError(f"{what} must be a number")
    return float(value)


def _bool(value: Any, what: str) -> bool:
    if value is None:
        return False
    if not isinstance(value, bool):
        raise SpecError(f"{what} must be a boolean")
    return value


def _duration(value: Any, what: str) -> timedelta:
    if value is None or value == "":
        return timedelta(0)
    if isinstance(value, timedelta):
        return value
    if not isinstance(value, str):
        raise SpecError(f"{what} must be a duration string")
    try:
        return parse_prom_duration(value)
    except ValueError as err:
        raise SpecError(f"invalid {what}: {err}") from err


def _alert_meta(alerting: dict, kind: str) -> AlertMeta:
    settings = _mapping(alerting.get(kind), kind)
    if _bool(settings.get("disable"), f"{kind}.disable"):
        return AlertMeta(disable=True)
    return AlertMeta(
        name=_str(alerting.get("name")),
        labels=merge_labels(
            _str_map(alerting.get("labels"), "alerting labels"),
            _str_map(settings.get("labels"), f"{kind} labels"),
        ),
        annotations=merge_labels(
            _str_map(alerting.get("annotations"), "alerting annotations"),
            _str_map(settings.get("annotations"), f"{kind} annotations"),
        ),
    )


class YAMLSpecLoader:
    """Loads ``prometheus/v1`` YAML specs into an ``SLOGroup``."""

    def __init__(self, plugins_repo: Optional[SLIPluginRepo], window_period: timedelta) -> None:
        self.plugins_repo = plugins_repo
        self.window_period = window_period

    def is_spec_type(self, data: Union[str, bytes]) -> bool:
        """Tell whether *data* looks like a spec of this type."""
        return bool(_SPEC_TYPE_RE.search(_to_text(data)))

    def load_spec(self, data: Union[str, bytes]) -> SLOGroup:
        """Parse *data* and map it to the SLO model."""
        text = _to_text(data)
        if len(text) == 0:
            raise SpecError("spec is required")
        try:
            doc = yaml.safe_load(text)
        except yaml.YAMLError as err:
            raise SpecError(f"could not unmarshal YAML spec correctly: {err}") from err
        if doc is None:
            doc = {}
        if not isinstance(doc, dict):
            raise SpecError("could not unmarshal YAML spec correctly: spec must be a mapping")

        if doc.get("version") != SPEC_VERSION:
            raise SpecError(f"invalid spec version, should be {SPEC_VERSION!r}")

        slos = doc.get("slos") or []
        if not isinstance(slos, list):
            raise SpecError("could not unmarshal YAML spec correctly: slos must be a list")
        if not slos:
            raise SpecError("at least one SLO is required")

        try:
            return SLOGroup(slos=[self._map_slo(doc, item) for item in slos])
        except SpecError as err:
            raise SpecError(f"could not map to model: {err}") from err

    def _map_slo(self, doc: dict, raw_slo: Any) -> SLO:
        service = _str(doc.get("service"))
        spec_labels = _str_map(doc.get("labels"), "labels")
        item = _mapping(raw_slo, "slo")
        name = _str(item.get("name"))
        objective = _float(item.get("objective"), "objective")
        interval = _mapping(item.get("interval"), "interval")

        slo = SLO(
            id=f"{service}-{name}",
            name=name,
            description=_str(item.get("description")),
            service=service,
            rule_group_interval=_duration(interval.get("all"), "all interval"),
            sli_error_rules_interval=_duration(interval.get("slierror"), "slierror interval"),
            metadata_rules_interval=_duration(interval.get("metadata"), "metadata interval"),
            alert_rules_interval=_duration(interval.get("alert"), "alert interval"),
            time_window=self.window_period,
            objective=objective,
            labels=merge_labels(spec_labels, _str_map(item.get("labels"), "slo labels")),
            page_alert_meta=AlertMeta(disable=True),
            ticket_alert_meta=AlertMeta(disable=True),
            info_labels=_str_map(item.get("infoLabels"), "infoLabels"),
        )

        sli_spec = _mapping(item.get("sli"), "sli")
        if sli_spec.get("events") is not None:
            events = _mapping(sli_spec["events"], "events")
            slo.sli.events = SLIEvents(
                error_query=_str(events.get("error_query")),
                total_query=_str(events.get("total_query")),
            )
        if sli_spec.get("raw") is not None:
            raw = _mapping(sli_spec["raw"], "raw")
            slo.sli.raw = SLIRaw(error_ratio_query=_str(raw.get("error_ratio_query")))
        if sli_spec.get("plugin") is not None:
            query = self._run_plugin(
                _mapping(sli_spec["plugin"], "plugin"), service, name, objective, spec_labels
            )
            slo.sli.raw = SLIRaw(error_ratio_query=query)

        alerting = _mapping(item.get("alerting"), "alerting")
        slo.page_alert_meta = _alert_meta(alerting, "page_alert")
        slo.ticket_alert_meta = _alert_meta(alerting, "ticket_alert")
        return slo

    def _run_plugin(
        self,
        plugin_spec: dict,
        service: str,
        name: str,
        objective: float,
        spec_labels: dict[str, str],
    ) -> str:
        plugin_id = _str(plugin_spec.get("id"))
        if self.plugins_repo is None:
            raise SpecError(f"could not get plugin: plugin {plugin_id!r} missing")
        try:
            plugin = self.plugins_repo.get_sli_plugin(plugin_id)
        except LookupError as err:
            raise SpecError(f"could not get plugin: {err}") from err

        meta = {
            PLUGIN_META_SERVICE: service,
            PLUGIN_META_SLO: name,
            PLUGIN_META_OBJECTIVE: f"{objective:f}",
        }
        options = _str_map(plugin_spec.get("options"), "plugin options")
        try:
            return plugin.func(meta, dict(spec_labels), options)
        except Exception as err:
            raise SpecError(f"plugin {plugin_id!r} execution error: {err}") from err