"""Operator sensor framework.

Non-invasive instrumentation of operator lifecycle events through hooks:

- OperatorSensor: Base class defining lifecycle hooks for operator events
- SensorDelegate: Fan-out pattern for routing events to multiple sensor backends
- PrometheusMonitor: Prometheus metrics exporter

Usage:
    from ocsclient.sensors import SensorDelegate, PrometheusMonitor

    delegate = SensorDelegate()
    delegate.add(PrometheusMonitor())
"""

from ocsclient.sensors.base import OperatorSensor
from ocsclient.sensors.delegate import SensorDelegate
from ocsclient.sensors.prometheus import PrometheusMonitor
from ocsclient.sensors.server import init_metrics_server

__all__ = [
    'OperatorSensor',
    'SensorDelegate',
    'PrometheusMonitor',
    'init_metrics_server',
]
