from .base import KubernetesStore
from .clusterversion import ClusterVersionReconciler, ReconcileContext
from .router import EventRouter, ReconcileRequest
from .sync import Outcome, Synchronizer

__all__ = [
    "KubernetesStore",
    "ClusterVersionReconciler",
    "ReconcileContext",
    "EventRouter",
    "ReconcileRequest",
    "Outcome",
    "Synchronizer",
]
