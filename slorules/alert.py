"""Multiwindow multi-burn-rate alert definitions."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import timedelta


class AlertSeverity(enum.Enum):
    """Severity of an SLO alert."""

    PAGE = "page"
    TICKET = "ticket"

    def __str__(self) -> str:
        return self.value


@dataclass
class MWMBAlert:
    """One multiwindow multi-burn-rate alert."""

    id: str = ""
    short_window: timedelta = timedelta(0)
    long_window: timedelta = timedelta(0)
    burn_rate_factor: float = 0.0
    error_budget: float = 0.0
    severity: AlertSeverity = AlertSeverity.PAGE


@dataclass
class MWMBAlertGroup:
    """The page and ticket alerts, each a quick and a slow one."""

    page_quick: MWMBAlert = field(default_factory=MWMBAlert)
    page_slow: MWMBAlert = field(default_factory=MWMBAlert)
    ticket_quick: MWMBAlert = field(default_factory=MWMBAlert)
    ticket_slow: MWMBAlert = field(default_factory=MWMBAlert)

    def windows(self) -> list[timedelta]:
        """All the short and long windows of the group, duplicates kept."""
        return [
            window
            for alert in (self.page_quick, self.page_slow, self.ticket_quick, self.ticket_slow)
            for window in (alert.short_window, alert.long_window)
        ]