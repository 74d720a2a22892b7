import asyncio
import kopf
import time
from logging import Logger
from collections import defaultdict
from typing import Dict, Optional
from ocsclient.resources.kinds import (
    CLUSTER_VERSION,
    CONFIG_MAP,
    CUSTOM_RESOURCE_DEFINITION,
    SUBSCRIPTION,
    VALIDATING_WEBHOOK_CONFIGURATION,
    ResourceKind,
)
from ocsclient.resources.router import ReconcileRequest
from ocsclient.sensors.base import OperatorSensor
from ocsclient.types.settings import (
    PERIODIC_RECONCILE_INTERVAL_SECONDS,
    RECONCILE_QUEUE_INTERVAL_SECONDS,
)
from ocsclient.utils.errors import PERMANENT_ERRORS, convert_error

# Use a set to track which names are already queued
names_in_queue = set()
# The actual queue for ordered processing
reconciliation_queue: Dict[str, asyncio.Queue] = defaultdict(asyncio.Queue)
# Locks to prevent race conditions when enqueueing reconciliation requests
reconciliation_locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
# When each queued request was enqueued, for the queue wait metric
queued_at: Dict[str, float] = {}


def get_sensor(memo: kopf.Memo = None) -> OperatorSensor:
    return getattr(memo, "sensor", None) or OperatorSensor()


async def request_reconciliation(
    request: ReconcileRequest, memo: kopf.Memo = None, source: str = "manual"
):
    """Request reconciliation of the ClusterVersion.

    Enqueues the request only if it's not already in the queue, so a burst
    of watch events collapses into one pass. Uses a lock to ensure atomicity
    of the check-and-add operation.
    """
    name = request.name
    async with reconciliation_locks[name]:
        if name not in names_in_queue:
            names_in_queue.add(name)
            queued_at[name] = time.time()
            await reconciliation_queue[name].put((request, source))
            get_sensor(memo).on_reconcile_queued(name, reconciliation_queue[name].qsize())


async def route_event(
    kind: ResourceKind, event: Dict, memo: kopf.Memo, logger: Logger
) -> Optional[ReconcileRequest]:
    """Hand a watch event to the router and enqueue the request it maps to."""
    router = getattr(memo, "router", None)
    if router is None:
        logger.debug(f"Operator not started yet, ignoring {kind} event")
        return None
    request = router.route(kind, event.get("type"), event.get("object") or {})
    if request is not None:
        await request_reconciliation(request, memo, source=kind.plural)
    return request


@kopf.on.event(CLUSTER_VERSION.group, CLUSTER_VERSION.version, CLUSTER_VERSION.plural)
async def on_cluster_version_event(event, memo: kopf.Memo, logger: Logger, **kwargs):
    await route_event(CLUSTER_VERSION, event, memo, logger)


@kopf.on.event(CONFIG_MAP.version, CONFIG_MAP.plural)
async def on_config_map_event(event, memo: kopf.Memo, logger: Logger, **kwargs):
    await route_event(CONFIG_MAP, event, memo, logger)


@kopf.on.event(
    CUSTOM_RESOURCE_DEFINITION.group,
    CUSTOM_RESOURCE_DEFINITION.version,
    CUSTOM_RESOURCE_DEFINITION.plural,
)
async def on_crd_event(event, memo: kopf.Memo, logger: Logger, **kwargs):
    await route_event(CUSTOM_RESOURCE_DEFINITION, event, memo, logger)


@kopf.on.event(SUBSCRIPTION.group, SUBSCRIPTION.version, SUBSCRIPTION.plural)
async def on_subscription_event(event, memo: kopf.Memo, logger: Logger, **kwargs):
    await route_event(SUBSCRIPTION, event, memo, logger)


@kopf.on.event(
    VALIDATING_WEBHOOK_CONFIGURATION.group,
    VALIDATING_WEBHOOK_CONFIGURATION.version,
    VALIDATING_WEBHOOK_CONFIGURATION.plural,
)
async def on_webhook_event(event, memo: kopf.Memo, logger: Logger, **kwargs):
    await route_event(VALIDATING_WEBHOOK_CONFIGURATION, event, memo, logger)


async def reconcile(
    request: ReconcileRequest, memo: kopf.Memo, logger: Logger, trigger_source: str
) -> bool:
    """Run one reconciliation pass, instrumented with the sensor."""
    sensor = get_sensor(memo)
    sensor_state = sensor.on_reconcile_start(request.name, trigger_source)
    success, error = True, None
    try:
        return await memo.reconciler.reconcile(request, logger)
    except Exception as e:
        success, error = False, e
        raise
    finally:
        sensor.on_reconcile_complete(request.name, sensor_state, success, error)


@kopf.timer(
    CLUSTER_VERSION.group,
    CLUSTER_VERSION.version,
    CLUSTER_VERSION.plural,
    initial_delay=3.0,
    interval=RECONCILE_QUEUE_INTERVAL_SECONDS,
)
async def process_reconciliation_requests(
    name, memo: kopf.Memo, logger: Logger, stopped, **kwargs
):
    """Process reconciliation requests from the queue.

    Processes each request exactly once, even if it was requested multiple
    times while processing another request. A failed pass is requeued unless
    retrying cannot help, and the timer backs off before the retry.
    """
    if stopped:
        return
    try:
        request, source = reconciliation_queue[name].get_nowait()
    except asyncio.QueueEmpty:
        return

    get_sensor(memo).on_reconcile_dequeued(
        name, time.time() - queued_at.pop(name, time.time())
    )
    # Allow this name to be requeued by events arriving during the pass
    names_in_queue.discard(name)
    reconciliation_queue[name].task_done()

    start_time = time.time()
    try:
        await reconcile(request, memo, logger, trigger_source=source)
    except Exception as e:
        logger.error(f"Reconciliation of ClusterVersion {request} failed: {e}")
        if not isinstance(e, PERMANENT_ERRORS):
            await request_reconciliation(request, memo, source="retry")
        convert_error(e, delay=memo.conf.reconcile_retry_delay_seconds)
    else:
        execution_time = time.time() - start_time
        logger.info(
            f"Reconciliation for {name} completed in {execution_time:.2f} seconds"
        )


@kopf.timer(
    CLUSTER_VERSION.group,
    CLUSTER_VERSION.version,
    CLUSTER_VERSION.plural,
    initial_delay=5.0,
    interval=PERIODIC_RECONCILE_INTERVAL_SECONDS,
    backoff=10.0,
)
async def periodic_reconciliation(name, memo: kopf.Memo, **kwargs):
    """Reconcile periodically to repair drift nobody reports through a watch event."""
    await request_reconciliation(ReconcileRequest(name), memo, source="timer")
