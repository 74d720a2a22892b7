"""Base sensor classes for operator monitoring.

This module defines the base OperatorSensor class that provides lifecycle hooks
for monitoring operator events. All hooks are no-ops by default, allowing
subclasses to override only the events they care about.

Hooks come in pairs where an operation has a duration: ``on_X_start()``
returns an optional state dict which is handed back to ``on_X_complete()``.
"""

from typing import Dict, Optional, Any
import logging

logger = logging.getLogger(__name__)


class OperatorSensor:
    """Base sensor class for ocs-client-operator monitoring.

    Hooks cover two categories:
    1. Reconciliation lifecycle (queueing and full reconciliation passes)
    2. Resource operations (create/update of one managed resource)

    Example:
        class LoggingSensor(OperatorSensor):
            def on_reconcile_start(self, name: str, trigger_source: str) -> Dict:
                return {'start_time': time.time()}

            def on_reconcile_complete(self, name, state, success, error=None) -> None:
                duration = time.time() - state['start_time']
                logger.info(f"Reconciled {name} in {duration}s")
    """

    # =============================================================================
    # Reconciliation Lifecycle Hooks
    # =============================================================================

    def on_reconcile_start(
        self,
        name: str,
        trigger_source: str,
    ) -> Optional[Dict[str, Any]]:
        """Called when a reconciliation pass begins.

        Args:
            name: Trigger object name
            trigger_source: What requested the pass (event kind, timer)

        Returns:
            Optional state dict passed to on_reconcile_complete
        """
        pass

    def on_reconcile_complete(
        self,
        name: str,
        state: Optional[Dict[str, Any]],
        success: bool,
        error: Optional[Exception] = None,
    ) -> None:
        """Called when a reconciliation pass completes, successfully or not."""
        pass

    def on_reconcile_queued(self, name: str, queue_depth: int) -> None:
        """Called when a reconciliation request is added to the queue."""
        pass

    def on_reconcile_dequeued(self, name: str, wait_time: float) -> None:
        """Called when a reconciliation request is taken off the queue.

        Args:
            name: Trigger object name
            wait_time: Seconds the request spent in the queue
        """
        pass

    def on_deploy_csi_resolved(self, enabled: bool) -> None:
        """Called once per pass with the resolved CSI deployment flag."""
        pass

    # =============================================================================
    # Resource Operation Hooks
    # =============================================================================

    def on_resource_sync_start(
        self,
        resource_name: str,
        namespace: Optional[str],
        resource_type: str,
    ) -> Optional[Dict[str, Any]]:
        """Called before a managed resource is fetched and written.

        Args:
            resource_name: Managed resource name
            namespace: Namespace, None for cluster scoped kinds
            resource_type: Kind of the resource (Deployment, CSIDriver, ...)

        Returns:
            Optional state dict passed to on_resource_sync_complete
        """
        pass

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
        """Called after a managed resource was synchronized.

        Args:
            operation: Outcome of the sync (unchanged, created, updated)
            success: False when the sync raised
            error: The raised exception, if any
        """
        pass

    # =============================================================================
    # Utility Methods
    # =============================================================================

    def asdict(self) -> Dict[str, Any]:
        """Return sensor state as dictionary.

        Overridden by sensors that keep their own state.
        """
        return {}
