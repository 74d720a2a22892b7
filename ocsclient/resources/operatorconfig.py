import logging
from typing import Awaitable, Callable, Mapping, Optional
from marshmallow import ValidationError
from ocsclient.resources.kinds import CONFIG_MAP, CUSTOM_RESOURCE_DEFINITION, ObjectRef
from ocsclient.types.models.operator_config import OperatorConfig
from ocsclient.types.schemas.operator_config import (
    DEPLOY_CSI_KEY,
    OperatorConfigSchema,
)
from ocsclient.utils.errors import ConfigParseError, NotFoundError

OPERATOR_CONFIG_MAP_NAME = "ocs-client-operator-config"

#: CRD whose presence means a storage cluster operator owns the CSI decision
STORAGE_CLUSTER_CRD_NAME = "storageclusters.ocs.openshift.io"

logger = logging.getLogger(__name__)


def load_operator_config(data: Optional[Mapping[str, str]]) -> OperatorConfig:
    """Parse config map data. Raises ConfigParseError on malformed values."""
    try:
        return OperatorConfigSchema().load(dict(data or {}))
    except ValidationError as ex:
        messages = ex.normalized_messages()
        if DEPLOY_CSI_KEY in messages:
            raise ConfigParseError(
                f"failed to parse value for {DEPLOY_CSI_KEY!r} in operator configmap "
                f"as a boolean: {(data or {}).get(DEPLOY_CSI_KEY)!r}"
            ) from ex
        raise ConfigParseError(f"invalid operator configmap: {messages}") from ex


async def resolve_deploy_flag(
    config: OperatorConfig, crd_probe: Callable[[], Awaitable[bool]]
) -> bool:
    """Decide whether CSI drivers are deployed by this operator.

    An explicit DEPLOY_CSI wins. Otherwise it depends on the storage cluster
    CRD: absent means nothing else is installed and this operator owns the
    drivers; present means another operator decides and must set the flag.
    """
    if config.deploy_csi_set:
        return config.deploy_csi
    crd_exists = await crd_probe()
    return not crd_exists


class OperatorConfigResolver:
    """Reads the operator configuration and the storage cluster CRD."""

    def __init__(self, store, namespace: str, config_map_name: str = OPERATOR_CONFIG_MAP_NAME):
        self.store = store
        self.namespace = namespace
        self.config_map_name = config_map_name

    @property
    def config_map_ref(self) -> ObjectRef:
        return ObjectRef(CONFIG_MAP, self.config_map_name, self.namespace)

    async def fetch(self) -> OperatorConfig:
        """Return the operator configuration; a missing config map is an empty one."""
        try:
            config_map = await self.store.get(self.config_map_ref)
        except NotFoundError:
            logger.debug(f"{self.config_map_ref} not found, using empty configuration")
            return OperatorConfig.empty()
        return load_operator_config(config_map.get("data"))

    async def storage_cluster_crd_exists(self) -> bool:
        try:
            await self.store.get(
                ObjectRef(CUSTOM_RESOURCE_DEFINITION, STORAGE_CLUSTER_CRD_NAME)
            )
        except NotFoundError:
            return False
        return True

    async def resolve_deploy_flag(self, config: OperatorConfig = None) -> bool:
        if config is None:
            config = await self.fetch()
        return await resolve_deploy_flag(config, self.storage_cluster_crd_exists)
