import logging
from contextlib import contextmanager
from typing import Any, Callable, Dict
from ocsclient.common.models.labels import Labels, parse_labels
from ocsclient.resources.kinds import (
    CLUSTER_VERSION,
    CONFIG_MAP,
    CONSOLE_PLUGIN,
    CSI_DRIVER,
    DAEMON_SET,
    DEPLOYMENT,
    PROMETHEUS_RULE,
    SECURITY_CONTEXT_CONSTRAINTS,
    SERVICE,
    SUBSCRIPTION,
    VALIDATING_WEBHOOK_CONFIGURATION,
    ObjectRef,
)
from ocsclient.resources.merge import (
    RESOURCE_VERSION,
    get_field,
    merge_desired,
    overwrite,
    preserve_fields,
)
from ocsclient.resources.operatorconfig import OperatorConfigResolver, resolve_deploy_flag
from ocsclient.resources.ownership import attach_owner
from ocsclient.resources.router import ReconcileRequest
from ocsclient.resources.sync import Outcome, Synchronizer
from ocsclient.sensors.base import OperatorSensor
from ocsclient.templates import console, csi, monitoring, webhook
from ocsclient.templates.csi import SidecarImages
from ocsclient.types.models.operator_config import OperatorConfig
from ocsclient.types.settings import Settings
from ocsclient.utils.errors import NotFoundError

#: OLM package name of this operator's own subscription
OPERATOR_PACKAGE_NAME = "ocs-client-operator"


class ReconcileContext:
    """Objects fetched during one reconciliation pass, discarded afterwards."""

    operator_deployment: Dict[str, Any] = None
    console_deployment: Dict[str, Any] = None
    operator_config: OperatorConfig = None
    sidecars: SidecarImages = None
    deploy_csi: bool = None

    def __init__(self, request: ReconcileRequest, logger: logging.Logger):
        self.request = request
        self.logger = logger


@contextmanager
def failure_logged(logger: logging.Logger, message: str):
    """Log ``message`` with the error and re-raise it."""
    try:
        yield
    except Exception as ex:
        logger.error(f"{message}: {ex}")
        raise


class ClusterVersionReconciler:
    """Keeps the operator's derived resources in line with its inputs.

    Each call to ``reconcile`` runs every step from scratch and stops at the
    first failure; every step is idempotent, so the next pass converges from
    wherever the failed one stopped.
    """

    conf: Settings

    def __init__(self, store, conf: Settings = None, sensor: OperatorSensor = None):
        self.store = store
        self.conf = conf or Settings()
        self.sensor = sensor or OperatorSensor()

    @property
    def namespace(self) -> str:
        return self.conf.operator_namespace

    @property
    def config_resolver(self) -> OperatorConfigResolver:
        return OperatorConfigResolver(self.store, self.namespace)

    def synchronizer(self, ctx: ReconcileContext) -> Synchronizer:
        return Synchronizer(self.store, logger=ctx.logger, sensor=self.sensor)

    async def reconcile(
        self, request: ReconcileRequest, logger: logging.Logger = None
    ) -> bool:
        """Run one reconciliation pass.

        Returns:
            True when the CSI drivers were reconciled, False when their
            deployment is disabled and only the webhook and console were.
        """
        ctx = ReconcileContext(request, logger or logging.getLogger(__name__))
        ctx.logger.info(f"Reconciling ClusterVersion {request}")

        with failure_logged(ctx.logger, "unable to register subscription validating webhook"):
            await self.reconcile_subscription_webhook(ctx)

        with failure_logged(ctx.logger, "unable to label ocs client operator subscription"):
            await self.label_operator_subscription(ctx)

        # each console step logs its own failure
        await self.ensure_console_plugin(ctx)

        with failure_logged(ctx.logger, "failed to perform precheck for deploying CSI"):
            ctx.deploy_csi = await self.resolve_deploy_csi(ctx)
        self.sensor.on_deploy_csi_resolved(ctx.deploy_csi)
        if not ctx.deploy_csi:
            ctx.logger.info("CSI deployment is disabled, leaving CSI resources as they are")
            return False

        await self.ensure_csi(ctx)
        return True

    # ---- webhook and subscription ----

    async def reconcile_subscription_webhook(self, ctx: ReconcileContext) -> Outcome:
        ref = ObjectRef(VALIDATING_WEBHOOK_CONFIGURATION, webhook.SUBSCRIPTION_WEBHOOK_NAME)

        def mutate(obj: Dict[str, Any]) -> None:
            previous = {"webhooks": obj.get("webhooks")}
            # openshift fills in the ca on finding this annotation
            obj.setdefault("metadata", {})["annotations"] = {
                webhook.INJECT_CA_BUNDLE_ANNOTATION: "true"
            }
            obj["webhooks"] = [webhook.subscription_webhook(self.namespace)]
            obj.update(preserve_fields([webhook.CA_BUNDLE_PATH], previous, obj))

        outcome = await self.synchronizer(ctx).create_or_update(ref, mutate)
        ctx.logger.info("successfully registered validating webhook")
        return outcome

    async def label_operator_subscription(self, ctx: ReconcileContext) -> bool:
        """Label this operator's subscription so the webhook intercepts it.

        Returns:
            True if the subscription had to be updated.
        """
        subscriptions = await self.store.list(SUBSCRIPTION, namespace=self.namespace)
        subscription = next(
            (
                sub
                for sub in subscriptions
                if get_field(sub, "spec.package") == OPERATOR_PACKAGE_NAME
            ),
            None,
        )
        if subscription is None:
            raise NotFoundError(
                f"failed to find subscription with {OPERATOR_PACKAGE_NAME} package"
            )

        metadata = subscription.setdefault("metadata", {})
        labels = Labels(metadata.get("labels") or {})
        selector = Labels.subscription_selector()
        updated = False
        if not labels.contains(selector):
            metadata["labels"] = labels.update(selector.as_dict()).as_dict()
            await self.store.update(subscription)
            updated = True
        ctx.logger.info(f"successfully labelled {OPERATOR_PACKAGE_NAME} subscription")
        return updated

    # ---- console ----

    async def ensure_console_plugin(self, ctx: ReconcileContext) -> None:
        port = self.conf.console_port
        sync = self.synchronizer(ctx)
        with failure_logged(ctx.logger, "failed to get the deployment for the console"):
            ctx.console_deployment = await self.store.get(
                ObjectRef(DEPLOYMENT, console.DEPLOYMENT_NAME, self.namespace)
            )

        def mutate_nginx_config_map(obj: Dict[str, Any]) -> None:
            merge_desired(obj, console.nginx_config_map(port, self.namespace))
            attach_owner(ctx.console_deployment, obj)

        with failure_logged(ctx.logger, "failed to create nginx config map"):
            await sync.create_or_update(
                ObjectRef(CONFIG_MAP, console.NGINX_CONFIG_MAP_NAME, self.namespace),
                mutate_nginx_config_map,
            )

        def mutate_service(obj: Dict[str, Any]) -> None:
            desired = console.service(port, self.namespace)
            merge_desired(obj, desired)
            # keys dropped from the template must not linger on the live service
            obj["metadata"]["labels"] = desired["metadata"]["labels"]
            obj["spec"]["selector"] = desired["spec"]["selector"]
            attach_owner(ctx.console_deployment, obj)

        with failure_logged(ctx.logger, "failed to create/update service for console"):
            await sync.create_or_update(
                ObjectRef(SERVICE, console.SERVICE_NAME, self.namespace), mutate_service
            )

        with failure_logged(ctx.logger, "failed to create/update consoleplugin"):
            await sync.create_or_update(
                ObjectRef(CONSOLE_PLUGIN, console.PLUGIN_NAME),
                lambda obj: overwrite(
                    obj, console.console_plugin(port, self.namespace), [RESOURCE_VERSION]
                ),
            )

    # ---- feature flag ----

    async def resolve_deploy_csi(self, ctx: ReconcileContext) -> bool:
        resolver = self.config_resolver
        ctx.operator_config = await resolver.fetch()
        return await resolve_deploy_flag(
            ctx.operator_config, resolver.storage_cluster_crd_exists
        )

    # ---- csi ----

    async def ensure_csi(self, ctx: ReconcileContext) -> None:
        ns = self.namespace
        sync = self.synchronizer(ctx)

        with failure_logged(ctx.logger, "failed to get ClusterVersion"):
            cluster_version = await self.store.get(
                ObjectRef(CLUSTER_VERSION, ctx.request.name)
            )
        with failure_logged(ctx.logger, "unable to initialize sidecars"):
            ctx.sidecars = csi.initialize_sidecars(
                get_field(cluster_version, "status.desired.version", "")
            )
        with failure_logged(ctx.logger, "failed to get the operator deployment"):
            ctx.operator_deployment = await self.store.get(
                ObjectRef(DEPLOYMENT, self.conf.operator_deployment_name, ns)
            )

        with failure_logged(ctx.logger, "unable to create/update SCC"):
            await sync.create_or_update(
                ObjectRef(SECURITY_CONTEXT_CONSTRAINTS, csi.SCC_NAME),
                lambda obj: overwrite(
                    obj, csi.security_context_constraints(ns), [RESOURCE_VERSION]
                ),
            )

        # The monitor and encryption config maps are created once and then
        # belong to their users, who add cluster and kms entries to them.
        for name in (csi.MON_CONFIG_MAP_NAME, csi.ENCRYPTION_CONFIG_MAP_NAME):
            with failure_logged(ctx.logger, f"failed to create configmap {name}"):
                await sync.create_if_absent(
                    ObjectRef(CONFIG_MAP, name, ns),
                    self._owned(ctx, csi.write_once_config_map(name, ns)),
                )

        workloads = (
            (DEPLOYMENT, csi.CEPHFS_DEPLOYMENT_NAME, csi.cephfs_deployment, "cephfs deployment"),
            (DAEMON_SET, csi.CEPHFS_DAEMON_SET_NAME, csi.cephfs_daemon_set, "cephfs daemonset"),
            (DEPLOYMENT, csi.RBD_DEPLOYMENT_NAME, csi.rbd_deployment, "rbd deployment"),
            (DAEMON_SET, csi.RBD_DAEMON_SET_NAME, csi.rbd_daemon_set, "rbd daemonset"),
        )
        for kind, name, template, description in workloads:
            desired = template(ns, ctx.sidecars, self.conf.csi_image)
            with failure_logged(ctx.logger, f"failed to create/update {description}"):
                await sync.create_or_update(
                    ObjectRef(kind, name, ns), self._merged_and_owned(ctx, desired)
                )

        # CSIDrivers are cluster scoped and cannot be owned by the operator
        # deployment, nothing deletes them.
        for template, description in (
            (csi.cephfs_csi_driver, "cephfs"),
            (csi.rbd_csi_driver, "rbd"),
        ):
            driver = template(ns)
            with failure_logged(ctx.logger, f"unable to create {description} CSIDriver"):
                await sync.create_if_absent(
                    ObjectRef(CSI_DRIVER, driver["metadata"]["name"]),
                    lambda driver=driver: driver,
                )

        await self.ensure_prometheus_rule(ctx)

    async def ensure_prometheus_rule(self, ctx: ReconcileContext) -> Outcome:
        config = ctx.operator_config or OperatorConfig.empty()
        labels = parse_labels(config.metrics_labels)
        desired = monitoring.pvc_prometheus_rule(self.namespace, labels)
        ref = ObjectRef(PROMETHEUS_RULE, monitoring.PROMETHEUS_RULE_NAME, self.namespace)

        def mutate(obj: Dict[str, Any]) -> None:
            merge_desired(obj, desired)
            # labels removed from the config must disappear from the rule too
            if labels:
                obj["metadata"]["labels"] = dict(labels)
            else:
                obj["metadata"].pop("labels", None)
            attach_owner(ctx.operator_deployment, obj)

        with failure_logged(ctx.logger, "failed to create/update prometheus rules"):
            outcome = await self.synchronizer(ctx).create_or_update(ref, mutate)
        ctx.logger.info(f"prometheus rules deployed, prometheusRule: {ref}")
        return outcome

    @staticmethod
    def _owned(
        ctx: ReconcileContext, body: Dict[str, Any]
    ) -> Callable[[], Dict[str, Any]]:
        def build() -> Dict[str, Any]:
            attach_owner(ctx.operator_deployment, body)
            return body

        return build

    @staticmethod
    def _merged_and_owned(
        ctx: ReconcileContext, desired: Dict[str, Any]
    ) -> Callable[[Dict[str, Any]], None]:
        def mutate(obj: Dict[str, Any]) -> None:
            merge_desired(obj, desired)
            attach_owner(ctx.operator_deployment, obj)

        return mutate

    def __repr__(self) -> str:
        return f"ClusterVersionReconciler<{self.namespace}>"
