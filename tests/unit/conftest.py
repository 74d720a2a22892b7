"""Shared fixtures: an in-memory object store and seeded cluster objects."""

import copy
import uuid
import pytest
from typing import Any, Dict, List, Optional
from ocsclient.resources.kinds import (
    CLUSTER_VERSION,
    DEPLOYMENT,
    SUBSCRIPTION,
    ObjectRef,
    ResourceKind,
    kind_of,
)
from ocsclient.types.settings import Settings
from ocsclient.utils.errors import AlreadyExistsError, ConflictError, NotFoundError

NAMESPACE = "openshift-storage-client"
OPERATOR_DEPLOYMENT = "ocs-client-operator-controller-manager"
CONSOLE_DEPLOYMENT = "ocs-client-operator-console"


class FakeStore:
    """In-memory stand-in for KubernetesStore.

    Mimics the API server where the engine depends on it: uids and resource
    versions are server assigned, stale resource versions conflict, and
    deleting an object garbage-collects everything it controls.
    """

    def __init__(self):
        self.objects: Dict[tuple, Dict[str, Any]] = {}
        self.writes = 0
        self.calls: List[tuple] = []
        self._version = 0

    @staticmethod
    def _key(kind: ResourceKind, namespace: Optional[str], name: str) -> tuple:
        return (kind, namespace if kind.namespaced else None, name)

    def _next_version(self) -> str:
        self._version += 1
        return str(self._version)

    def _body_key(self, body: Dict[str, Any]) -> tuple:
        metadata = body.get("metadata") or {}
        return self._key(kind_of(body), metadata.get("namespace"), metadata.get("name"))

    def seed(self, body: Dict[str, Any]) -> Dict[str, Any]:
        """Store an object as if created by somebody else; not counted as a write."""
        body = copy.deepcopy(body)
        metadata = body.setdefault("metadata", {})
        metadata.setdefault("uid", str(uuid.uuid4()))
        metadata["resourceVersion"] = self._next_version()
        metadata.setdefault("creationTimestamp", "2024-01-01T00:00:00Z")
        self.objects[self._body_key(body)] = body
        return copy.deepcopy(body)

    def stored(self, kind: ResourceKind, name: str, namespace: str = None) -> Dict[str, Any]:
        return self.objects[self._key(kind, namespace, name)]

    def exists(self, kind: ResourceKind, name: str, namespace: str = None) -> bool:
        return self._key(kind, namespace, name) in self.objects

    async def get(self, ref: ObjectRef) -> Dict[str, Any]:
        self.calls.append(("get", str(ref)))
        key = self._key(ref.kind, ref.namespace, ref.name)
        if key not in self.objects:
            raise NotFoundError(f"{ref} not found")
        return copy.deepcopy(self.objects[key])

    async def list(
        self,
        kind: ResourceKind,
        namespace: Optional[str] = None,
        label_selector: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        self.calls.append(("list", kind.kind))
        return [
            copy.deepcopy(body)
            for (k, ns, _), body in self.objects.items()
            if k == kind and (namespace is None or ns == namespace)
        ]

    async def create(self, body: Dict[str, Any]) -> Dict[str, Any]:
        key = self._body_key(body)
        self.calls.append(("create", key[2]))
        if key in self.objects:
            raise AlreadyExistsError(f"{key[0].kind} {key[2]} already exists")
        if body.get("metadata", {}).get("resourceVersion"):
            raise ConflictError("resourceVersion should not be set on objects to be created")
        self.writes += 1
        return self.seed(body)

    async def update(self, body: Dict[str, Any]) -> Dict[str, Any]:
        key = self._body_key(body)
        self.calls.append(("update", key[2]))
        if key not in self.objects:
            raise NotFoundError(f"{key[0].kind} {key[2]} not found")
        current = self.objects[key]
        if body["metadata"].get("resourceVersion") != current["metadata"]["resourceVersion"]:
            raise ConflictError(
                f"the object {key[2]} has been modified; please apply your changes "
                f"to the latest version and try again"
            )
        body = copy.deepcopy(body)
        body["metadata"]["uid"] = current["metadata"]["uid"]
        body["metadata"]["resourceVersion"] = self._next_version()
        self.objects[key] = body
        self.writes += 1
        return copy.deepcopy(body)

    async def delete(self, ref: ObjectRef) -> None:
        key = self._key(ref.kind, ref.namespace, ref.name)
        if key not in self.objects:
            raise NotFoundError(f"{ref} not found")
        uid = self.objects.pop(key)["metadata"]["uid"]
        self._collect_garbage(uid)

    def _collect_garbage(self, owner_uid: str) -> None:
        dependents = [
            key
            for key, body in self.objects.items()
            if any(
                ref.get("uid") == owner_uid
                for ref in body["metadata"].get("ownerReferences", [])
            )
        ]
        for key in dependents:
            if key in self.objects:
                uid = self.objects.pop(key)["metadata"]["uid"]
                self._collect_garbage(uid)

    async def close(self) -> None:
        pass


def deployment(name: str, namespace: str = NAMESPACE) -> Dict[str, Any]:
    return {
        "apiVersion": DEPLOYMENT.api_version,
        "kind": DEPLOYMENT.kind,
        "metadata": {"name": name, "namespace": namespace},
        "spec": {"replicas": 1},
    }


def cluster_version(version: str = "4.14.3") -> Dict[str, Any]:
    return {
        "apiVersion": CLUSTER_VERSION.api_version,
        "kind": CLUSTER_VERSION.kind,
        "metadata": {"name": "version", "generation": 1},
        "spec": {"channel": "stable-4.14"},
        "status": {"desired": {"version": version}},
    }


def subscription(
    package: str = "ocs-client-operator", namespace: str = NAMESPACE, name: str = None
) -> Dict[str, Any]:
    return {
        "apiVersion": SUBSCRIPTION.api_version,
        "kind": SUBSCRIPTION.kind,
        "metadata": {"name": name or package, "namespace": namespace},
        "spec": {"package": package, "channel": "stable-4.14"},
    }


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def conf():
    return Settings(
        operator_namespace=NAMESPACE,
        operator_deployment_name=OPERATOR_DEPLOYMENT,
        console_port=9001,
        csi_image="quay.io/cephcsi/cephcsi:v3.9.0",
    )


@pytest.fixture
def cluster(store):
    """Store seeded with what exists before the operator's first pass."""
    store.seed(deployment(OPERATOR_DEPLOYMENT))
    store.seed(deployment(CONSOLE_DEPLOYMENT))
    store.seed(cluster_version())
    store.seed(subscription())
    return store
