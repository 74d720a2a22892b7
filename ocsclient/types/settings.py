import os
from typing import Any

_TRUE, _FALSE = {"True", "true", "yes", "1"}, {"False", "false", "no", "0"}


def _getenv(name: str, *default: Any) -> Any:
    try:
        v = os.environ[name]
        if v in _TRUE:
            return True
        elif v in _FALSE:
            return False
        else:
            return v
    except KeyError:
        pass
    if default:
        return default[0]
    raise KeyError(name)


# ------------------------------------------------
# ---- Defaults and environment variables ----
# ------------------------------------------------

#: Namespace the operator (and all namespaced managed resources) lives in
OPERATOR_NAMESPACE = str(_getenv("OPERATOR_NAMESPACE", "openshift-storage-client"))

#: Name of the operator's own Deployment, owner of all namespaced managed resources
OPERATOR_DEPLOYMENT_NAME = str(
    _getenv("OPERATOR_DEPLOYMENT_NAME", "ocs-client-operator-controller-manager")
)

#: Port the console plugin nginx server listens on
CONSOLE_PORT = int(_getenv("CONSOLE_PORT", 9001))

#: Ceph CSI driver image used by provisioner and node plugin containers
CSI_IMAGE = str(_getenv("CSI_IMAGE", "quay.io/cephcsi/cephcsi:v3.9.0"))

#: Seconds between two polls of the reconciliation queue
RECONCILE_QUEUE_INTERVAL_SECONDS = float(_getenv("RECONCILE_QUEUE_INTERVAL_SECONDS", 1.5))

#: Seconds between two unconditional full reconciliations
PERIODIC_RECONCILE_INTERVAL_SECONDS = float(
    _getenv("PERIODIC_RECONCILE_INTERVAL_SECONDS", 300.0)
)

#: Seconds the queue processor backs off after a failed reconciliation
RECONCILE_RETRY_DELAY_SECONDS = float(_getenv("RECONCILE_RETRY_DELAY_SECONDS", 30.0))

#: Port the prometheus metrics endpoint listens on
METRICS_PORT = int(_getenv("METRICS_PORT", 8000))


class Settings:
    """Operator settings"""

    operator_namespace: str = OPERATOR_NAMESPACE
    operator_deployment_name: str = OPERATOR_DEPLOYMENT_NAME
    console_port: int = CONSOLE_PORT
    csi_image: str = CSI_IMAGE
    reconcile_queue_interval_seconds: float = RECONCILE_QUEUE_INTERVAL_SECONDS
    periodic_reconcile_interval_seconds: float = PERIODIC_RECONCILE_INTERVAL_SECONDS
    reconcile_retry_delay_seconds: float = RECONCILE_RETRY_DELAY_SECONDS
    metrics_port: int = METRICS_PORT

    def __init__(
        self,
        *args,
        operator_namespace: str = None,
        operator_deployment_name: str = None,
        console_port: int = None,
        csi_image: str = None,
        reconcile_queue_interval_seconds: float = None,
        periodic_reconcile_interval_seconds: float = None,
        reconcile_retry_delay_seconds: float = None,
        metrics_port: int = None,
        **kwargs,
    ):
        if operator_namespace is not None:
            self.operator_namespace = operator_namespace

        if operator_deployment_name is not None:
            self.operator_deployment_name = operator_deployment_name

        if console_port is not None:
            self.console_port = console_port

        if csi_image is not None:
            self.csi_image = csi_image

        if reconcile_queue_interval_seconds is not None:
            self.reconcile_queue_interval_seconds = reconcile_queue_interval_seconds

        if periodic_reconcile_interval_seconds is not None:
            self.periodic_reconcile_interval_seconds = (
                periodic_reconcile_interval_seconds
            )

        if reconcile_retry_delay_seconds is not None:
            self.reconcile_retry_delay_seconds = reconcile_retry_delay_seconds

        if metrics_port is not None:
            self.metrics_port = metrics_port
