"""Loading of OpenSLO ``v1alpha`` SLO documents into the SLO model."""

from __future__ import annotations

import re
from datetime import timedelta
from typing import Any, Union

import yaml

from .model import SLI, SLO, SLOGroup, AlertMeta, SLIRaw

API_VERSION = "openslo/v1alpha"

_KIND_RE = re.compile(r"^kind: +['\"]?SLO['\"]? *$", re.M)
_API_VERSION_RE = re.compile(r"^apiVersion: +['\"]?openslo/v1alpha['\"]? *$", re.M)

_ERROR_RATIO_QUERY = """
  1 - (
    (
      {good}
    )
    /
    (
      {total}
    )
  )
"""

_SOURCES = ("prometheus", "sloth")


def _to_text(data: Union[str, bytes]) -> str:
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data


def _mapping(value: Any, what: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"{what} must be a mapping")
    return value


def _str(value: Any) -> str:
    return "" if value is None else str(value)


class OpenSLOSpecLoader:
    """Loads OpenSLO ``v1alpha`` YAML specs into an ``SLOGroup``.

    Each objective of the OpenSLO document becomes one SLO.
    """

    def __init__(self, window_period: timedelta) -> None:
        self.window_period = window_period

    def is_spec_type(self, data: Union[str, bytes]) -> bool:
        """Tell whether *data* looks like an OpenSLO ``v1alpha`` SLO."""
        text = _to_text(data)
        return bool(_KIND_RE.search(text)) and bool(_API_VERSION_RE.search(text))

    def load_spec(self, data: Union[str, bytes]) -> SLOGroup:
        """Parse *data* and map it to the SLO model."""
        from .spec import SpecError

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

        if doc.get("apiVersion") != API_VERSION:
            raise SpecError(f"invalid spec version, should be {API_VERSION!r}")

        try:
            spec = _mapping(doc.get("spec"), "spec")
            metadata = _mapping(doc.get("metadata"), "metadata")
        except ValueError as err:
            raise SpecError(f"could not unmarshal YAML spec correctly: {err}") from err

        objectives = spec.get("objectives") or []
        if not isinstance(objectives, list) or not objectives:
            raise SpecError("at least one SLO is required")

        try:
            windows = self._time_windows(spec)
        except ValueError as err:
            raise SpecError(f"invalid SLO time windows: {err}") from err

        try:
            slos = self._slos(spec, metadata, objectives, windows)
        except ValueError as err:
            raise SpecError(
                f"could not map to model: could not map SLOs correctly: {err}"
            ) from err
        return SLOGroup(slos=slos)

    @staticmethod
    def _time_windows(spec: dict) -> list:
        windows = spec.get("timeWindows") or []
        if not isinstance(windows, list):
            raise ValueError("time windows must be a list")
        if len(windows) > 1:
            raise ValueError("only 1 time window is supported")
        if windows:
            window = _mapping(windows[0], "time window")
            if _str(window.get("unit")).lower() != "day":
                raise ValueError("only days based time windows are supported")
        return windows

    @staticmethod
    def _sli(objective: dict) -> SLI:
        ratio = objective.get("ratioMetrics")
        if ratio is None:
            raise ValueError("missing ratioMetrics")
        ratio = _mapping(ratio, "ratioMetrics")
        good = _mapping(ratio.get("good"), "good")
        total = _mapping(ratio.get("total"), "total")
        good_source = _str(good.get("source"))
        total_source = _str(total.get("source"))

        if good_source not in _SOURCES:
            raise ValueError("prometheus or sloth query ratio 'good' source is required")
        if total_source != "prometheus" and good_source != "sloth":
            raise ValueError("prometheus or sloth query ratio 'total' source is required")
        if _str(good.get("queryType")) != "promql":
            raise ValueError(f"unsupported 'good' indicator query type: {_str(good.get('queryType'))}")
        if _str(total.get("queryType")) != "promql":
            raise ValueError(
                f"unsupported 'total' indicator query type: {_str(total.get('queryType'))}"
            )

        query = _ERROR_RATIO_QUERY.format(
            good=_str(good.get("query")), total=_str(total.get("query"))
        )
        return SLI(raw=SLIRaw(error_ratio_query=query))

    def _slos(self, spec: dict, metadata: dict, objectives: list, windows: list) -> list[SLO]:
        service = _str(spec.get("service"))
        name = _str(metadata.get("name"))
        description = _str(spec.get("description"))

        time_window = self.window_period
        if windows:
            count = _mapping(windows[0], "time window").get("count") or 0
            time_window = timedelta(days=int(count))

        slos = []
        for index, raw_objective in enumerate(objectives):
            objective = _mapping(raw_objective, "objective")
            try:
                sli = self._sli(objective)
            except ValueError as err:
                raise ValueError(f"could not map SLI: {err}") from err
            target = objective.get("target")
            if isinstance(target, bool) or not isinstance(target, (int, float)):
                raise ValueError("objective target is required")
            slos.append(SLO(
                id=f"{service}-{name}-{index}",
                name=f"{name}-{index}",
                service=service,
                description=description,
                time_window=time_window,
                sli=sli,
                # OpenSLO targets are ratios, the model uses percents.
                objective=target * 100,
                page_alert_meta=AlertMeta(disable=True),
                ticket_alert_meta=AlertMeta(disable=True),
            ))
        return slos