"""Prometheus exporter for ZFS pool and dataset metrics, served over HTTP."""

__version__ = "2.0.0"