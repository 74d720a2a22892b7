import re
import asyncio
import aiohttp
from typing import Any, Dict, List, Optional
from kubernetes_asyncio.client import ApiException, CoreV1Api, CustomObjectsApi
from kubernetes_asyncio.client.api_client import ApiClient
from ocsclient.resources.kinds import ObjectRef, ResourceKind, kind_of
from ocsclient.utils.errors import translate_api_exception


def _snake(kind: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", kind).lower()


class KubernetesStore:
    """Remote object store backed by the Kubernetes API.

    Objects go in and come out as plain JSON dicts. Core kinds are served by
    the typed ``CoreV1Api``, every grouped kind by ``CustomObjectsApi``.
    Client errors are translated to the taxonomy in ``ocsclient.utils.errors``.
    """

    _api_client: ApiClient = None
    _core_v1_api: CoreV1Api = None
    _custom_objects_api: CustomObjectsApi = None

    def __init__(self, api_client: ApiClient = None):
        self._api_client = api_client

    @property
    def api_client(self) -> ApiClient:
        if self._api_client is None:
            self._api_client = ApiClient()
        return self._api_client

    @property
    def core_v1_api(self) -> CoreV1Api:
        if self._core_v1_api is None:
            self._core_v1_api = CoreV1Api(self.api_client)
        return self._core_v1_api

    @property
    def custom_objects_api(self) -> CustomObjectsApi:
        if self._custom_objects_api is None:
            self._custom_objects_api = CustomObjectsApi(self.api_client)
        return self._custom_objects_api

    async def get(self, ref: ObjectRef) -> Dict[str, Any]:
        """Retrieve the latest state of an object. Raises NotFoundError if absent."""
        kind = ref.kind
        if not kind.group:
            result = await self._call(
                self._core_method("read", kind), name=ref.name, namespace=ref.namespace
            )
            return self._as_dict(kind, result)
        if kind.namespaced:
            return await self._call(
                self.custom_objects_api.get_namespaced_custom_object,
                group=kind.group,
                version=kind.version,
                namespace=ref.namespace,
                plural=kind.plural,
                name=ref.name,
            )
        return await self._call(
            self.custom_objects_api.get_cluster_custom_object,
            group=kind.group,
            version=kind.version,
            plural=kind.plural,
            name=ref.name,
        )

    async def list(
        self,
        kind: ResourceKind,
        namespace: Optional[str] = None,
        label_selector: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """List objects of a kind, in one namespace or across the cluster."""
        if not kind.group:
            if namespace:
                result = await self._call(
                    self._core_method("list", kind),
                    namespace=namespace,
                    label_selector=label_selector,
                )
            else:
                result = await self._call(
                    getattr(
                        self.core_v1_api, f"list_{_snake(kind.kind)}_for_all_namespaces"
                    ),
                    label_selector=label_selector,
                )
            items = self.api_client.sanitize_for_serialization(result).get("items", [])
        elif kind.namespaced and namespace:
            result = await self._call(
                self.custom_objects_api.list_namespaced_custom_object,
                group=kind.group,
                version=kind.version,
                namespace=namespace,
                plural=kind.plural,
                label_selector=label_selector,
            )
            items = result.get("items", [])
        else:
            result = await self._call(
                self.custom_objects_api.list_cluster_custom_object,
                group=kind.group,
                version=kind.version,
                plural=kind.plural,
                label_selector=label_selector,
            )
            items = result.get("items", [])
        # List items come back without their type meta.
        for item in items:
            item.setdefault("apiVersion", kind.api_version)
            item.setdefault("kind", kind.kind)
        return items

    async def create(self, body: Dict[str, Any]) -> Dict[str, Any]:
        kind = kind_of(body)
        ref = ObjectRef.of(kind, body)
        if not kind.group:
            result = await self._call(
                self._core_method("create", kind), namespace=ref.namespace, body=body
            )
            return self._as_dict(kind, result)
        if kind.namespaced:
            return await self._call(
                self.custom_objects_api.create_namespaced_custom_object,
                group=kind.group,
                version=kind.version,
                namespace=ref.namespace,
                plural=kind.plural,
                body=body,
            )
        return await self._call(
            self.custom_objects_api.create_cluster_custom_object,
            group=kind.group,
            version=kind.version,
            plural=kind.plural,
            body=body,
        )

    async def update(self, body: Dict[str, Any]) -> Dict[str, Any]:
        """Replace an object. The body's resourceVersion guards against lost updates."""
        kind = kind_of(body)
        ref = ObjectRef.of(kind, body)
        if not kind.group:
            result = await self._call(
                self._core_method("replace", kind),
                name=ref.name,
                namespace=ref.namespace,
                body=body,
            )
            return self._as_dict(kind, result)
        if kind.namespaced:
            return await self._call(
                self.custom_objects_api.replace_namespaced_custom_object,
                group=kind.group,
                version=kind.version,
                namespace=ref.namespace,
                plural=kind.plural,
                name=ref.name,
                body=body,
            )
        return await self._call(
            self.custom_objects_api.replace_cluster_custom_object,
            group=kind.group,
            version=kind.version,
            plural=kind.plural,
            name=ref.name,
            body=body,
        )

    async def delete(self, ref: ObjectRef) -> None:
        kind = ref.kind
        if not kind.group:
            await self._call(
                self._core_method("delete", kind), name=ref.name, namespace=ref.namespace
            )
        elif kind.namespaced:
            await self._call(
                self.custom_objects_api.delete_namespaced_custom_object,
                group=kind.group,
                version=kind.version,
                namespace=ref.namespace,
                plural=kind.plural,
                name=ref.name,
            )
        else:
            await self._call(
                self.custom_objects_api.delete_cluster_custom_object,
                group=kind.group,
                version=kind.version,
                plural=kind.plural,
                name=ref.name,
            )

    async def close(self) -> None:
        if self._api_client is not None:
            await self._api_client.close()

    def _core_method(self, verb: str, kind: ResourceKind):
        return getattr(self.core_v1_api, f"{verb}_namespaced_{_snake(kind.kind)}")

    def _as_dict(self, kind: ResourceKind, obj: Any) -> Dict[str, Any]:
        body = self.api_client.sanitize_for_serialization(obj)
        body.setdefault("apiVersion", kind.api_version)
        body.setdefault("kind", kind.kind)
        return body

    async def _call(self, method, *args, **kwargs):
        try:
            return await method(*args, **kwargs)
        except (ApiException, aiohttp.ClientError, asyncio.TimeoutError) as ex:
            raise translate_api_exception(ex) from ex
