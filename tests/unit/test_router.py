"""Unit tests for event routing."""

import pytest
from ocsclient.resources.kinds import (
    CLUSTER_VERSION,
    CONFIG_MAP,
    CUSTOM_RESOURCE_DEFINITION,
    DEPLOYMENT,
    SUBSCRIPTION,
    VALIDATING_WEBHOOK_CONFIGURATION,
)
from ocsclient.resources.router import EventRouter, ReconcileRequest
from tests.unit.conftest import NAMESPACE

TRIGGER = ReconcileRequest("version")


def body(name, namespace=None, uid="uid-1", generation=None, labels=None):
    metadata = {"name": name, "uid": uid}
    if namespace:
        metadata["namespace"] = namespace
    if generation is not None:
        metadata["generation"] = generation
    if labels is not None:
        metadata["labels"] = labels
    return {"metadata": metadata}


@pytest.fixture
def router():
    return EventRouter(NAMESPACE)


class TestClusterVersionEvents:
    """ClusterVersion events are routed on generation changes."""

    def test_added(self, router):
        assert router.route(CLUSTER_VERSION, "ADDED", body("version", generation=1)) == TRIGGER

    def test_initial_listing_has_no_event_type(self, router):
        assert router.route(CLUSTER_VERSION, None, body("version", generation=1)) == TRIGGER

    def test_status_only_update_ignored(self, router):
        router.route(CLUSTER_VERSION, "ADDED", body("version", generation=1))
        assert router.route(CLUSTER_VERSION, "MODIFIED", body("version", generation=1)) is None

    def test_generation_change(self, router):
        router.route(CLUSTER_VERSION, "ADDED", body("version", generation=1))
        assert router.route(CLUSTER_VERSION, "MODIFIED", body("version", generation=2)) == TRIGGER

    def test_deleted_ignored(self, router):
        router.route(CLUSTER_VERSION, "ADDED", body("version", generation=1))
        assert router.route(CLUSTER_VERSION, "DELETED", body("version", generation=1)) is None
        # recreated object with the same uid starts over
        assert router.route(CLUSTER_VERSION, "ADDED", body("version", generation=1)) == TRIGGER


class TestConfigMapEvents:
    """Only the operator configuration map is routed."""

    def test_operator_config(self, router):
        event = body("ocs-client-operator-config", NAMESPACE)
        for event_type in ("ADDED", "MODIFIED", "DELETED"):
            assert router.route(CONFIG_MAP, event_type, event) == TRIGGER

    def test_other_name(self, router):
        assert router.route(CONFIG_MAP, "MODIFIED", body("ceph-csi-configs", NAMESPACE)) is None

    def test_other_namespace(self, router):
        assert (
            router.route(CONFIG_MAP, "MODIFIED", body("ocs-client-operator-config", "default"))
            is None
        )


class TestCrdEvents:
    """Storage cluster CRD presence changes are routed."""

    def test_storage_cluster_crd(self, router):
        crd = body("storageclusters.ocs.openshift.io")
        assert router.route(CUSTOM_RESOURCE_DEFINITION, "ADDED", crd) == TRIGGER
        assert router.route(CUSTOM_RESOURCE_DEFINITION, "DELETED", crd) == TRIGGER

    def test_other_crd(self, router):
        crd = body("prometheusrules.monitoring.coreos.com")
        assert router.route(CUSTOM_RESOURCE_DEFINITION, "ADDED", crd) is None


class TestSubscriptionEvents:
    """Subscriptions in the operator namespace are routed on label changes."""

    def test_added(self, router):
        assert router.route(SUBSCRIPTION, "ADDED", body("sub", NAMESPACE, labels={})) == TRIGGER

    def test_unchanged_labels_ignored(self, router):
        router.route(SUBSCRIPTION, "ADDED", body("sub", NAMESPACE, labels={"a": "b"}))
        assert (
            router.route(SUBSCRIPTION, "MODIFIED", body("sub", NAMESPACE, labels={"a": "b"}))
            is None
        )

    def test_label_removed(self, router):
        router.route(
            SUBSCRIPTION,
            "ADDED",
            body("sub", NAMESPACE, labels={"managed-by": "webhook.subscription.ocs.openshift.io"}),
        )
        assert router.route(SUBSCRIPTION, "MODIFIED", body("sub", NAMESPACE)) == TRIGGER

    def test_deleted(self, router):
        router.route(SUBSCRIPTION, "ADDED", body("sub", NAMESPACE))
        assert router.route(SUBSCRIPTION, "DELETED", body("sub", NAMESPACE)) == TRIGGER

    def test_other_namespace(self, router):
        assert router.route(SUBSCRIPTION, "ADDED", body("sub", "openshift-operators")) is None


class TestWebhookEvents:
    """Only the subscription webhook is routed."""

    def test_subscription_webhook(self, router):
        event = body("subscription.ocs.openshift.io")
        assert router.route(VALIDATING_WEBHOOK_CONFIGURATION, "MODIFIED", event) == TRIGGER

    def test_other_webhook(self, router):
        event = body("other.webhook.io")
        assert router.route(VALIDATING_WEBHOOK_CONFIGURATION, "MODIFIED", event) is None


def test_unwatched_kind(router):
    assert router.route(DEPLOYMENT, "ADDED", body("x", NAMESPACE)) is None


def test_custom_trigger_name():
    router = EventRouter(NAMESPACE, trigger_name="cluster")
    event = body("ocs-client-operator-config", NAMESPACE)
    assert router.route(CONFIG_MAP, "ADDED", event) == ReconcileRequest("cluster")
