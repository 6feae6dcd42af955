"""Generate Prometheus SLO recording and alerting rules from SLO specifications."""

__version__ = "0.1.0"