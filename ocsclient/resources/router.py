import logging
from typing import Any, Dict, NamedTuple, Optional
from ocsclient.resources.kinds import (
    CLUSTER_VERSION,
    CONFIG_MAP,
    CUSTOM_RESOURCE_DEFINITION,
    SUBSCRIPTION,
    VALIDATING_WEBHOOK_CONFIGURATION,
    ResourceKind,
)
from ocsclient.resources.operatorconfig import (
    OPERATOR_CONFIG_MAP_NAME,
    STORAGE_CLUSTER_CRD_NAME,
)
from ocsclient.templates.webhook import SUBSCRIPTION_WEBHOOK_NAME

#: Name of the singleton ClusterVersion every input change is routed to
CLUSTER_VERSION_NAME = "version"

ADDED, MODIFIED, DELETED = "ADDED", "MODIFIED", "DELETED"

logger = logging.getLogger(__name__)


class ReconcileRequest(NamedTuple):
    name: str
    namespace: Optional[str] = None

    def __str__(self):
        return f"{self.namespace}/{self.name}" if self.namespace else self.name


def _meta(body: Dict[str, Any]) -> Dict[str, Any]:
    return body.get("metadata") or {}


class EventRouter:
    """Maps watch events of five kinds onto the ClusterVersion reconciliation key.

    ``route`` returns the request to enqueue, or None when the event is
    irrelevant. Generation and label predicates keep the last value seen per
    object uid, so a resync or status-only update does not enqueue.
    """

    def __init__(
        self,
        operator_namespace: str,
        config_map_name: str = OPERATOR_CONFIG_MAP_NAME,
        crd_name: str = STORAGE_CLUSTER_CRD_NAME,
        webhook_name: str = SUBSCRIPTION_WEBHOOK_NAME,
        trigger_name: str = CLUSTER_VERSION_NAME,
    ):
        self.operator_namespace = operator_namespace
        self.config_map_name = config_map_name
        self.crd_name = crd_name
        self.webhook_name = webhook_name
        self.trigger_name = trigger_name
        self._generations: Dict[str, Any] = {}
        self._labels: Dict[str, Dict[str, str]] = {}
        self._routes = {
            CLUSTER_VERSION: self.on_cluster_version,
            CONFIG_MAP: self.on_config_map,
            CUSTOM_RESOURCE_DEFINITION: self.on_crd,
            SUBSCRIPTION: self.on_subscription,
            VALIDATING_WEBHOOK_CONFIGURATION: self.on_webhook,
        }

    @property
    def trigger_request(self) -> ReconcileRequest:
        return ReconcileRequest(self.trigger_name)

    def route(
        self, kind: ResourceKind, event_type: Optional[str], body: Dict[str, Any]
    ) -> Optional[ReconcileRequest]:
        handler = self._routes.get(kind)
        if handler is None:
            return None
        # kopf reports objects listed at startup with no event type
        request = handler(event_type or ADDED, body)
        if request is not None:
            logger.debug(
                f"{event_type or ADDED} {kind}/{_meta(body).get('name')} "
                f"routed to {request}"
            )
        return request

    def on_cluster_version(
        self, event_type: str, body: Dict[str, Any]
    ) -> Optional[ReconcileRequest]:
        meta = _meta(body)
        uid = meta.get("uid")
        if event_type == DELETED:
            self._generations.pop(uid, None)
            return None
        generation = meta.get("generation")
        if uid in self._generations and self._generations[uid] == generation:
            return None
        self._generations[uid] = generation
        return ReconcileRequest(meta.get("name"))

    def on_config_map(
        self, event_type: str, body: Dict[str, Any]
    ) -> Optional[ReconcileRequest]:
        meta = _meta(body)
        if (
            meta.get("namespace") == self.operator_namespace
            and meta.get("name") == self.config_map_name
        ):
            return self.trigger_request
        return None

    def on_crd(self, event_type: str, body: Dict[str, Any]) -> Optional[ReconcileRequest]:
        if _meta(body).get("name") == self.crd_name:
            return self.trigger_request
        return None

    def on_subscription(
        self, event_type: str, body: Dict[str, Any]
    ) -> Optional[ReconcileRequest]:
        meta = _meta(body)
        if meta.get("namespace") != self.operator_namespace:
            return None
        uid = meta.get("uid")
        if event_type == DELETED:
            self._labels.pop(uid, None)
            return self.trigger_request
        labels = dict(meta.get("labels") or {})
        previous = self._labels.get(uid)
        self._labels[uid] = labels
        if previous is not None and previous == labels:
            return None
        return self.trigger_request

    def on_webhook(
        self, event_type: str, body: Dict[str, Any]
    ) -> Optional[ReconcileRequest]:
        if _meta(body).get("name") == self.webhook_name:
            return self.trigger_request
        return None
