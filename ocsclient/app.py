import kopf
import logging
import ocsclient.handlers.clusterversion as clusterversion
from ocsclient.types.settings import Settings
from ocsclient.resources.base import KubernetesStore
from ocsclient.resources.clusterversion import ClusterVersionReconciler
from ocsclient.resources.router import EventRouter
from ocsclient.sensors import init_metrics_server, SensorDelegate, PrometheusMonitor
from kubernetes_asyncio import config
from kubernetes_asyncio.client.api_client import ApiClient


# Configure Kopf settings
@kopf.on.startup()
async def setup(
    settings: kopf.OperatorSettings, memo: kopf.Memo, logger: logging.Logger, **kwargs
):
    # Load Kubernetes config - try in-cluster first (for production), then local kubeconfig (for dev)
    try:
        config.load_incluster_config()
        logger.info("Loaded in-cluster Kubernetes configuration")
    except config.ConfigException:
        logger.info("In-cluster config not found, trying local kubeconfig")
        try:
            await config.load_kube_config()
            logger.info("Loaded local Kubernetes configuration")
        except config.ConfigException as e:
            logger.error(f"Failed to load Kubernetes configuration: {e}")
            raise

    memo.conf = Settings()
    logger.info(f"Operator namespace: {memo.conf.operator_namespace}")

    # One shared ApiClient for every request to prevent connection leaks
    memo.store = KubernetesStore(ApiClient())
    logger.info("Shared Kubernetes API client initialized")

    # Initialize sensor infrastructure
    sensor_delegate = SensorDelegate()
    sensor_delegate.add(PrometheusMonitor())
    memo.sensor = sensor_delegate
    logger.info("Sensor infrastructure initialized with PrometheusMonitor")

    memo.reconciler = ClusterVersionReconciler(
        memo.store, conf=memo.conf, sensor=memo.sensor
    )
    memo.router = EventRouter(memo.conf.operator_namespace)

    # Initialize Prometheus metrics server
    try:
        init_metrics_server(memo.conf.metrics_port)
    except Exception as e:
        logger.error(f"Failed to start metrics server: {e}")
        # Don't fail operator startup if metrics server fails
        logger.warning("Continuing without metrics server")

    # Disable posting events to the Kubernetes API for logging < Warning
    settings.posting.enabled = True
    settings.posting.level = logging.WARNING


@kopf.on.cleanup()
async def cleanup(memo: kopf.Memo, logger: logging.Logger, **kwargs):
    """Cleanup handler for operator shutdown."""
    logger.info("Shutting down operator...")

    # Close the shared API client
    store = getattr(memo, "store", None)
    if store is not None:
        await store.close()
        logger.info("Shared API client closed")

    logger.info("Operator shutdown complete")


__all__ = [
    "clusterversion",
]
