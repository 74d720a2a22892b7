"""Unit tests for owner references."""

import pytest
from ocsclient.resources.ownership import attach_owner
from ocsclient.utils.errors import OwnershipError
from tests.unit.conftest import NAMESPACE


def owner(uid="owner-uid", namespace=NAMESPACE, name="ocs-client-operator-controller-manager"):
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {"name": name, "namespace": namespace, "uid": uid},
    }


def target(namespace=NAMESPACE):
    metadata = {"name": "csi-rbdplugin"}
    if namespace:
        metadata["namespace"] = namespace
    return {"apiVersion": "apps/v1", "kind": "DaemonSet", "metadata": metadata}


class TestAttachOwner:
    """Tests for attach_owner()."""

    def test_sets_controller_reference(self):
        obj = target()
        attach_owner(owner(), obj)
        assert obj["metadata"]["ownerReferences"] == [
            {
                "controller": True,
                "blockOwnerDeletion": True,
                "apiVersion": "apps/v1",
                "kind": "Deployment",
                "name": "ocs-client-operator-controller-manager",
                "uid": "owner-uid",
            }
        ]

    def test_idempotent(self):
        obj = target()
        attach_owner(owner(), obj)
        attach_owner(owner(), obj)
        assert len(obj["metadata"]["ownerReferences"]) == 1

    def test_cluster_scoped_target_rejected(self):
        with pytest.raises(OwnershipError):
            attach_owner(owner(), target(namespace=None))

    def test_namespace_mismatch_rejected(self):
        with pytest.raises(OwnershipError):
            attach_owner(owner(namespace="elsewhere"), target())

    def test_owner_without_namespace_rejected(self):
        obj = target()
        with pytest.raises(OwnershipError):
            attach_owner(owner(namespace=None), obj)
        assert "ownerReferences" not in obj["metadata"]

    def test_owner_without_uid_rejected(self):
        with pytest.raises(OwnershipError):
            attach_owner(owner(uid=None), target())

    def test_other_controller_rejected(self):
        obj = target()
        attach_owner(owner(uid="first", name="first"), obj)
        with pytest.raises(OwnershipError):
            attach_owner(owner(uid="second", name="second"), obj)

    def test_non_controller_references_kept(self):
        obj = target()
        obj["metadata"]["ownerReferences"] = [
            {"apiVersion": "v1", "kind": "ConfigMap", "name": "x", "uid": "x-uid"}
        ]
        attach_owner(owner(), obj)
        assert [ref["uid"] for ref in obj["metadata"]["ownerReferences"]] == [
            "x-uid",
            "owner-uid",
        ]
