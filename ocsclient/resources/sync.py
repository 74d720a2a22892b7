import copy
import logging
from enum import Enum
from typing import Any, Callable, Dict, Optional
from ocsclient.resources.kinds import ObjectRef
from ocsclient.sensors.base import OperatorSensor
from ocsclient.utils.errors import AlreadyExistsError, NotFoundError, OperatorError
from ocsclient.utils.helpers import deep_compare_dict

MutateFn = Callable[[Dict[str, Any]], None]


class Outcome(str, Enum):
    UNCHANGED = "unchanged"
    CREATED = "created"
    UPDATED = "updated"


class Synchronizer:
    """Applies desired state to remote objects with at most one write per call.

    ``mutate`` callbacks receive the fetched object (or an identity-only shell
    when it does not exist) and edit it in place to the desired state.
    """

    def __init__(
        self,
        store,
        logger: logging.Logger = None,
        sensor: OperatorSensor = None,
    ):
        self.store = store
        self.logger = logger or logging.getLogger(__name__)
        self.sensor = sensor or OperatorSensor()

    async def create_or_update(self, ref: ObjectRef, mutate: MutateFn) -> Outcome:
        """Create the object if absent, otherwise update it when mutate changed it.

        The update carries the fetched resourceVersion; a concurrent writer
        makes it fail with ConflictError, which is left to the caller.
        """
        sensor_state = self.sensor.on_resource_sync_start(
            ref.name, ref.namespace, ref.kind.kind
        )
        outcome, success, error = Outcome.UNCHANGED, True, None
        try:
            outcome = await self._create_or_update(ref, mutate)
        except Exception as ex:
            success, error = False, ex
            raise
        finally:
            self.sensor.on_resource_sync_complete(
                ref.name,
                ref.namespace,
                ref.kind.kind,
                sensor_state,
                outcome.value,
                success,
                error,
            )
        self.logger.info(
            f"successfully created or updated, operation: {outcome.value}, name: {ref.name}"
        )
        return outcome

    async def create_if_absent(
        self, ref: ObjectRef, build: Callable[[], Dict[str, Any]]
    ) -> Outcome:
        """Create the object from ``build()`` unless it already exists.

        Existing objects are never modified, whatever their content.
        """
        sensor_state = self.sensor.on_resource_sync_start(
            ref.name, ref.namespace, ref.kind.kind
        )
        outcome, success, error = Outcome.UNCHANGED, True, None
        try:
            outcome = await self._create_if_absent(ref, build)
        except Exception as ex:
            success, error = False, ex
            raise
        finally:
            self.sensor.on_resource_sync_complete(
                ref.name,
                ref.namespace,
                ref.kind.kind,
                sensor_state,
                outcome.value,
                success,
                error,
            )
        if outcome is Outcome.CREATED:
            self.logger.info(f"created {ref}")
        else:
            self.logger.debug(f"{ref} already exists, leaving it untouched")
        return outcome

    async def _create_or_update(self, ref: ObjectRef, mutate: MutateFn) -> Outcome:
        current = await self._fetch(ref)
        if current is None:
            obj = ref.shell()
            mutate(obj)
            self._check_identity(ref, obj)
            await self.store.create(obj)
            return Outcome.CREATED

        obj = copy.deepcopy(current)
        mutate(obj)
        self._check_identity(ref, obj)
        if deep_compare_dict(current, obj):
            return Outcome.UNCHANGED
        # never let a mutate function drop the concurrency token
        obj.setdefault("metadata", {})["resourceVersion"] = current.get(
            "metadata", {}
        ).get("resourceVersion")
        await self.store.update(obj)
        return Outcome.UPDATED

    async def _create_if_absent(
        self, ref: ObjectRef, build: Callable[[], Dict[str, Any]]
    ) -> Outcome:
        if await self._fetch(ref) is not None:
            return Outcome.UNCHANGED
        obj = build()
        self._check_identity(ref, obj)
        try:
            await self.store.create(obj)
        except AlreadyExistsError:
            # another writer won the race; the object is someone else's now
            return Outcome.UNCHANGED
        return Outcome.CREATED

    async def _fetch(self, ref: ObjectRef) -> Optional[Dict[str, Any]]:
        try:
            return await self.store.get(ref)
        except NotFoundError:
            return None

    @staticmethod
    def _check_identity(ref: ObjectRef, obj: Dict[str, Any]) -> None:
        metadata = obj.get("metadata") or {}
        expected = ref.namespace if ref.kind.namespaced else None
        if (
            obj.get("kind") != ref.kind.kind
            or obj.get("apiVersion") != ref.kind.api_version
            or metadata.get("name") != ref.name
            or metadata.get("namespace") != expected
        ):
            raise OperatorError(
                f"desired state of {ref} changed the object identity to "
                f"{obj.get('kind')}/{metadata.get('namespace')}/{metadata.get('name')}"
            )
