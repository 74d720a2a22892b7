"""Prometheus monitoring backend for ocs-client-operator.

PrometheusMonitor collects operator lifecycle events and exposes them as
Prometheus metrics in two categories:

1. Reconciliation loop health - duration, queue depth, throughput, errors
2. Kubernetes resource sync - operation counts, latency, errors
"""

from typing import Dict, Optional, Any
import time
import logging

from prometheus_client import Counter, Histogram, Gauge, REGISTRY, CollectorRegistry

from ocsclient.sensors.base import OperatorSensor

logger = logging.getLogger(__name__)


class PrometheusMonitor(OperatorSensor):
    """Prometheus metrics monitor for ocs-client-operator.

    Metrics are organized by prefix:
    - ocsclient_reconcile_* - Reconciliation loop metrics
    - ocsclient_resource_* - Kubernetes resource sync metrics
    - ocsclient_deploy_csi_enabled - Resolved CSI deployment flag

    Example:
        monitor = PrometheusMonitor()

        state = monitor.on_reconcile_start("version", "timer")
        monitor.on_reconcile_complete("version", state, True)
    """

    def __init__(self, registry: CollectorRegistry = REGISTRY):
        """Initialize Prometheus metrics.

        Args:
            registry: Collector registry the metrics are registered with
        """
        super().__init__()

        # =============================================================================
        # Reconciliation Loop Metrics
        # =============================================================================

        self.reconcile_duration = Histogram(
            'ocsclient_reconcile_duration_seconds',
            'Time spent in reconciliation loop',
            labelnames=['name', 'trigger_source', 'result'],
            buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0],
            registry=registry,
        )

        self.reconcile_total = Counter(
            'ocsclient_reconcile_total',
            'Total number of reconciliation attempts',
            labelnames=['name', 'trigger_source', 'result'],
            registry=registry,
        )

        self.reconcile_errors = Counter(
            'ocsclient_reconcile_errors_total',
            'Total number of reconciliation errors',
            labelnames=['name', 'error_type'],
            registry=registry,
        )

        self.reconcile_queue_depth = Gauge(
            'ocsclient_reconcile_queue_depth',
            'Current reconciliation queue depth',
            labelnames=['name'],
            registry=registry,
        )

        self.reconcile_queue_wait_seconds = Histogram(
            'ocsclient_reconcile_queue_wait_seconds',
            'Time spent waiting in reconciliation queue',
            labelnames=['name'],
            buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0, 30.0],
            registry=registry,
        )

        self.deploy_csi_enabled = Gauge(
            'ocsclient_deploy_csi_enabled',
            'Whether CSI drivers are deployed by this operator (1) or not (0)',
            registry=registry,
        )

        # =============================================================================
        # Kubernetes Resource Sync Metrics
        # =============================================================================

        self.resource_sync_duration = Histogram(
            'ocsclient_resource_sync_duration_seconds',
            'Time spent syncing Kubernetes resources',
            labelnames=['resource_name', 'namespace', 'resource_type', 'operation', 'result'],
            buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0],
            registry=registry,
        )

        self.resource_sync_total = Counter(
            'ocsclient_resource_sync_total',
            'Total number of resource sync operations',
            labelnames=['resource_name', 'namespace', 'resource_type', 'operation', 'result'],
            registry=registry,
        )

        self.resource_sync_errors = Counter(
            'ocsclient_resource_sync_errors_total',
            'Total number of resource sync errors',
            labelnames=['resource_name', 'namespace', 'resource_type', 'error_type'],
            registry=registry,
        )

        logger.info("PrometheusMonitor initialized with all metrics")

    # =============================================================================
    # Reconciliation Lifecycle Hooks
    # =============================================================================

    def on_reconcile_start(
        self,
        name: str,
        trigger_source: str,
    ) -> Optional[Dict[str, Any]]:
        """Record reconciliation start time."""
        return {
            'start_time': time.time(),
            'trigger_source': trigger_source,
        }

    def on_reconcile_complete(
        self,
        name: str,
        state: Optional[Dict[str, Any]],
        success: bool,
        error: Optional[Exception] = None,
    ) -> None:
        """Record reconciliation duration and result."""
        if state:
            duration = time.time() - state['start_time']
            trigger_source = state['trigger_source']
            result = 'success' if success else 'failure'

            self.reconcile_duration.labels(
                name=name,
                trigger_source=trigger_source,
                result=result,
            ).observe(duration)

            self.reconcile_total.labels(
                name=name,
                trigger_source=trigger_source,
                result=result,
            ).inc()

        if error:
            self.reconcile_errors.labels(
                name=name,
                error_type=error.__class__.__name__,
            ).inc()

    def on_reconcile_queued(self, name: str, queue_depth: int) -> None:
        """Record reconciliation queue depth."""
        self.reconcile_queue_depth.labels(name=name).set(queue_depth)

    def on_reconcile_dequeued(self, name: str, wait_time: float) -> None:
        """Record time spent waiting in queue."""
        self.reconcile_queue_wait_seconds.labels(name=name).observe(wait_time)
        self.reconcile_queue_depth.labels(name=name).set(0)

    def on_deploy_csi_resolved(self, enabled: bool) -> None:
        self.deploy_csi_enabled.set(1 if enabled else 0)

    # =============================================================================
    # Resource Operation Hooks
    # =============================================================================

    def on_resource_sync_start(
        self,
        resource_name: str,
        namespace: Optional[str],
        resource_type: str,
    ) -> Optional[Dict[str, Any]]:
        """Record resource sync start time."""
        return {'start_time': time.time()}

    def on_resource_sync_complete(
        self,
        resource_name: str,
        namespace: Optional[str],
        resource_type: str,
        state: Optional[Dict[str, Any]],
        operation: str,
        success: bool,
        error: Optional[Exception] = None,
    ) -> None:
        """Record resource sync duration and outcome."""
        result = 'success' if success else 'failure'
        # cluster scoped resources are reported with an empty namespace
        namespace = namespace or ''
        if state:
            self.resource_sync_duration.labels(
                resource_name=resource_name,
                namespace=namespace,
                resource_type=resource_type,
                operation=operation,
                result=result,
            ).observe(time.time() - state['start_time'])

        self.resource_sync_total.labels(
            resource_name=resource_name,
            namespace=namespace,
            resource_type=resource_type,
            operation=operation,
            result=result,
        ).inc()

        if error:
            self.resource_sync_errors.labels(
                resource_name=resource_name,
                namespace=namespace,
                resource_type=resource_type,
                error_type=error.__class__.__name__,
            ).inc()
