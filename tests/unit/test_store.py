"""Unit tests for the Kubernetes-backed store and error translation."""

import json
import asyncio
import aiohttp
import kopf
import pytest
from unittest.mock import AsyncMock, MagicMock
from kubernetes_asyncio.client import ApiException
from ocsclient.resources.base import KubernetesStore
from ocsclient.resources.kinds import (
    CONFIG_MAP,
    CSI_DRIVER,
    PROMETHEUS_RULE,
    SUBSCRIPTION,
    ObjectRef,
)
from ocsclient.utils.errors import (
    AlreadyExistsError,
    ConfigParseError,
    ConflictError,
    NotFoundError,
    OperatorError,
    RemoteUnavailableError,
    convert_error,
    translate_api_exception,
)
from tests.unit.conftest import NAMESPACE


def api_exception(status, reason="", message=None, body_reason=None):
    ex = ApiException(status=status, reason=reason)
    body = {}
    if message:
        body["message"] = message
    if body_reason:
        body["reason"] = body_reason
    ex.body = json.dumps(body) if body else None
    return ex


@pytest.fixture
def api_client():
    client = MagicMock()
    client.sanitize_for_serialization.side_effect = lambda obj: dict(obj)
    client.close = AsyncMock()
    return client


@pytest.fixture
def k8s(api_client):
    store = KubernetesStore(api_client)
    store._core_v1_api = MagicMock()
    store._custom_objects_api = MagicMock()
    return store


class TestTranslateApiException:
    """Tests for translate_api_exception()."""

    def test_not_found(self):
        translated = translate_api_exception(
            api_exception(404, "Not Found", message='configmaps "x" not found')
        )
        assert isinstance(translated, NotFoundError)
        assert 'configmaps "x" not found' in str(translated)

    def test_already_exists(self):
        translated = translate_api_exception(
            api_exception(409, "Conflict", body_reason="AlreadyExists")
        )
        assert isinstance(translated, AlreadyExistsError)

    def test_stale_resource_version(self):
        translated = translate_api_exception(
            api_exception(409, "Conflict", body_reason="Conflict")
        )
        assert isinstance(translated, ConflictError)

    @pytest.mark.parametrize("status", [429, 500, 503, 504])
    def test_transient(self, status):
        assert isinstance(
            translate_api_exception(api_exception(status)), RemoteUnavailableError
        )

    def test_other_status(self):
        translated = translate_api_exception(api_exception(403, "Forbidden"))
        assert type(translated) is OperatorError

    def test_transport_errors(self):
        assert isinstance(
            translate_api_exception(aiohttp.ClientConnectionError("refused")),
            RemoteUnavailableError,
        )
        assert isinstance(
            translate_api_exception(asyncio.TimeoutError()), RemoteUnavailableError
        )

    def test_unrelated_error_returned_as_is(self):
        ex = KeyError("x")
        assert translate_api_exception(ex) is ex


class TestConvertError:
    """Tests for convert_error()."""

    def test_permanent(self):
        with pytest.raises(kopf.PermanentError):
            convert_error(ConfigParseError("bad flag"))

    def test_temporary_with_delay(self):
        with pytest.raises(kopf.TemporaryError) as info:
            convert_error(ConflictError("stale"), delay=7)
        assert info.value.delay == 7

    def test_api_exception_translated_first(self):
        with pytest.raises(kopf.TemporaryError):
            convert_error(api_exception(404))

    def test_unknown_error_reraised(self):
        with pytest.raises(KeyError):
            convert_error(KeyError("x"))


class TestKubernetesStore:
    """Tests for KubernetesStore dispatch."""

    @pytest.mark.asyncio
    async def test_get_core_kind(self, k8s):
        k8s.core_v1_api.read_namespaced_config_map = AsyncMock(
            return_value={"metadata": {"name": "x"}}
        )
        body = await k8s.get(ObjectRef(CONFIG_MAP, "x", NAMESPACE))
        k8s.core_v1_api.read_namespaced_config_map.assert_awaited_once_with(
            name="x", namespace=NAMESPACE
        )
        assert body == {"metadata": {"name": "x"}, "apiVersion": "v1", "kind": "ConfigMap"}

    @pytest.mark.asyncio
    async def test_get_cluster_scoped_custom_kind(self, k8s):
        k8s.custom_objects_api.get_cluster_custom_object = AsyncMock(return_value={})
        await k8s.get(ObjectRef(CSI_DRIVER, "d"))
        k8s.custom_objects_api.get_cluster_custom_object.assert_awaited_once_with(
            group="storage.k8s.io", version="v1", plural="csidrivers", name="d"
        )

    @pytest.mark.asyncio
    async def test_get_not_found(self, k8s):
        k8s.custom_objects_api.get_namespaced_custom_object = AsyncMock(
            side_effect=api_exception(404, "Not Found")
        )
        with pytest.raises(NotFoundError):
            await k8s.get(ObjectRef(PROMETHEUS_RULE, "rules", NAMESPACE))

    @pytest.mark.asyncio
    async def test_list_fills_type_meta(self, k8s):
        k8s.custom_objects_api.list_namespaced_custom_object = AsyncMock(
            return_value={"items": [{"metadata": {"name": "sub"}}]}
        )
        items = await k8s.list(SUBSCRIPTION, namespace=NAMESPACE)
        assert items == [
            {
                "metadata": {"name": "sub"},
                "apiVersion": "operators.coreos.com/v1alpha1",
                "kind": "Subscription",
            }
        ]

    @pytest.mark.asyncio
    async def test_create_already_exists(self, k8s):
        k8s.core_v1_api.create_namespaced_config_map = AsyncMock(
            side_effect=api_exception(409, "Conflict", body_reason="AlreadyExists")
        )
        body = {
            "apiVersion": "v1",
            "kind": "ConfigMap",
            "metadata": {"name": "x", "namespace": NAMESPACE},
        }
        with pytest.raises(AlreadyExistsError):
            await k8s.create(body)

    @pytest.mark.asyncio
    async def test_update_cluster_scoped(self, k8s):
        k8s.custom_objects_api.replace_cluster_custom_object = AsyncMock(return_value={})
        body = {
            "apiVersion": "storage.k8s.io/v1",
            "kind": "CSIDriver",
            "metadata": {"name": "d", "resourceVersion": "5"},
        }
        await k8s.update(body)
        k8s.custom_objects_api.replace_cluster_custom_object.assert_awaited_once_with(
            group="storage.k8s.io",
            version="v1",
            plural="csidrivers",
            name="d",
            body=body,
        )

    @pytest.mark.asyncio
    async def test_transport_failure(self, k8s):
        k8s.core_v1_api.read_namespaced_config_map = AsyncMock(
            side_effect=aiohttp.ClientConnectionError("refused")
        )
        with pytest.raises(RemoteUnavailableError):
            await k8s.get(ObjectRef(CONFIG_MAP, "x", NAMESPACE))

    @pytest.mark.asyncio
    async def test_close(self, k8s, api_client):
        await k8s.close()
        api_client.close.assert_awaited_once()
