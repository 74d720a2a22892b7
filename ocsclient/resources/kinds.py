from typing import NamedTuple, Optional, Dict, Any


class ResourceKind(NamedTuple):
    """API coordinates of a kind the operator reads or writes."""

    group: str
    version: str
    kind: str
    plural: str
    namespaced: bool

    @property
    def api_version(self) -> str:
        return f"{self.group}/{self.version}" if self.group else self.version

    def __str__(self):
        return self.kind


class ObjectRef(NamedTuple):
    """Identity of a remote object: kind, name and (for namespaced kinds) namespace."""

    kind: ResourceKind
    name: str
    namespace: Optional[str] = None

    def shell(self) -> Dict[str, Any]:
        """Zero-value body carrying only the identity."""
        metadata = {"name": self.name}
        if self.kind.namespaced:
            metadata["namespace"] = self.namespace
        return {
            "apiVersion": self.kind.api_version,
            "kind": self.kind.kind,
            "metadata": metadata,
        }

    def __str__(self):
        if self.namespace:
            return f"{self.kind}/{self.namespace}/{self.name}"
        return f"{self.kind}/{self.name}"

    @classmethod
    def of(cls, kind: "ResourceKind", body: Dict[str, Any]) -> "ObjectRef":
        metadata = body.get("metadata") or {}
        return cls(kind, metadata.get("name"), metadata.get("namespace"))


CONFIG_MAP = ResourceKind("", "v1", "ConfigMap", "configmaps", True)
SERVICE = ResourceKind("", "v1", "Service", "services", True)
DEPLOYMENT = ResourceKind("apps", "v1", "Deployment", "deployments", True)
DAEMON_SET = ResourceKind("apps", "v1", "DaemonSet", "daemonsets", True)
CSI_DRIVER = ResourceKind("storage.k8s.io", "v1", "CSIDriver", "csidrivers", False)
CUSTOM_RESOURCE_DEFINITION = ResourceKind(
    "apiextensions.k8s.io",
    "v1",
    "CustomResourceDefinition",
    "customresourcedefinitions",
    False,
)
VALIDATING_WEBHOOK_CONFIGURATION = ResourceKind(
    "admissionregistration.k8s.io",
    "v1",
    "ValidatingWebhookConfiguration",
    "validatingwebhookconfigurations",
    False,
)
SECURITY_CONTEXT_CONSTRAINTS = ResourceKind(
    "security.openshift.io",
    "v1",
    "SecurityContextConstraints",
    "securitycontextconstraints",
    False,
)
CLUSTER_VERSION = ResourceKind(
    "config.openshift.io", "v1", "ClusterVersion", "clusterversions", False
)
PROMETHEUS_RULE = ResourceKind(
    "monitoring.coreos.com", "v1", "PrometheusRule", "prometheusrules", True
)
CONSOLE_PLUGIN = ResourceKind(
    "console.openshift.io", "v1", "ConsolePlugin", "consoleplugins", False
)
SUBSCRIPTION = ResourceKind(
    "operators.coreos.com", "v1alpha1", "Subscription", "subscriptions", True
)

ALL_KINDS = (
    CONFIG_MAP,
    SERVICE,
    DEPLOYMENT,
    DAEMON_SET,
    CSI_DRIVER,
    CUSTOM_RESOURCE_DEFINITION,
    VALIDATING_WEBHOOK_CONFIGURATION,
    SECURITY_CONTEXT_CONSTRAINTS,
    CLUSTER_VERSION,
    PROMETHEUS_RULE,
    CONSOLE_PLUGIN,
    SUBSCRIPTION,
)


def kind_of(body: Dict[str, Any]) -> ResourceKind:
    """Look up the registered kind matching a body's apiVersion and kind."""
    for kind in ALL_KINDS:
        if kind.api_version == body.get("apiVersion") and kind.kind == body.get("kind"):
            return kind
    raise ValueError(
        f"Unsupported kind {body.get('apiVersion')}/{body.get('kind')}"
    )
