"""Sensor delegation for fan-out pattern.

SensorDelegate routes sensor events to multiple monitoring backends. Each
backend receives the same events and keeps independent state. A failing
backend is logged and never breaks reconciliation.
"""

from typing import Set, Dict, Optional, Any
import logging

from ocsclient.sensors.base import OperatorSensor

logger = logging.getLogger(__name__)


class SensorDelegate(OperatorSensor):
    """Delegate sensor that fans out events to multiple backends.

    Example:
        delegate = SensorDelegate()
        delegate.add(PrometheusMonitor())

        state = delegate.on_reconcile_start("version", "configmaps")
        delegate.on_reconcile_complete("version", state, True)
    """

    def __init__(self) -> None:
        self._sensors: Set[OperatorSensor] = set()

    def add(self, sensor: OperatorSensor) -> None:
        logger.info(f"Adding sensor: {sensor.__class__.__name__}")
        self._sensors.add(sensor)

    def remove(self, sensor: OperatorSensor) -> None:
        logger.info(f"Removing sensor: {sensor.__class__.__name__}")
        self._sensors.discard(sensor)

    def clear(self) -> None:
        """Remove all sensors from the delegate."""
        logger.info(f"Clearing {len(self._sensors)} sensors")
        self._sensors.clear()

    def _each(self, hook: str, *args) -> Dict[OperatorSensor, Any]:
        """Call ``hook`` on every sensor and collect non-None return values."""
        results = {}
        for sensor in self._sensors:
            try:
                result = getattr(sensor, hook)(*args)
                if result is not None:
                    results[sensor] = result
            except Exception as e:
                logger.error(
                    f"Error in {sensor.__class__.__name__}.{hook}: {e}",
                    exc_info=True,
                )
        return results

    def _each_with_state(
        self, hook: str, state: Optional[Dict[OperatorSensor, Any]], *args
    ) -> None:
        """Call a completion hook, handing every sensor the state it returned."""
        for sensor in self._sensors:
            try:
                sensor_state = state.get(sensor) if state else None
                getattr(sensor, hook)(*args[:-1], sensor_state, *args[-1])
            except Exception as e:
                logger.error(
                    f"Error in {sensor.__class__.__name__}.{hook}: {e}",
                    exc_info=True,
                )

    # =============================================================================
    # Reconciliation Lifecycle Hooks
    # =============================================================================

    def on_reconcile_start(
        self, name: str, trigger_source: str
    ) -> Optional[Dict[OperatorSensor, Any]]:
        """Delegate reconcile_start to all sensors.

        Returns:
            Dict mapping each sensor to its returned state, or None if no sensors
        """
        if not self._sensors:
            return None
        states = self._each("on_reconcile_start", name, trigger_source)
        return states if states else None

    def on_reconcile_complete(
        self,
        name: str,
        state: Optional[Dict[OperatorSensor, Any]],
        success: bool,
        error: Optional[Exception] = None,
    ) -> None:
        self._each_with_state(
            "on_reconcile_complete", state, name, (success, error)
        )

    def on_reconcile_queued(self, name: str, queue_depth: int) -> None:
        self._each("on_reconcile_queued", name, queue_depth)

    def on_reconcile_dequeued(self, name: str, wait_time: float) -> None:
        self._each("on_reconcile_dequeued", name, wait_time)

    def on_deploy_csi_resolved(self, enabled: bool) -> None:
        self._each("on_deploy_csi_resolved", enabled)

    # =============================================================================
    # Resource Operation Hooks
    # =============================================================================

    def on_resource_sync_start(
        self, resource_name: str, namespace: Optional[str], resource_type: str
    ) -> Optional[Dict[OperatorSensor, Any]]:
        if not self._sensors:
            return None
        states = self._each(
            "on_resource_sync_start", resource_name, namespace, resource_type
        )
        return states if states else None

    def on_resource_sync_complete(
        self,
        resource_name: str,
        namespace: Optional[str],
        resource_type: str,
        state: Optional[Dict[OperatorSensor, Any]],
        operation: str,
        success: bool,
        error: Optional[Exception] = None,
    ) -> None:
        self._each_with_state(
            "on_resource_sync_complete",
            state,
            resource_name,
            namespace,
            resource_type,
            (operation, success, error),
        )

    def asdict(self) -> Dict[str, Any]:
        return {
            sensor.__class__.__name__: sensor.asdict() for sensor in self._sensors
        }
