import logging
from typing import Dict

logger = logging.getLogger(__name__)


class ResourceLabels:
    #: Marks the OLM subscription intercepted by the subscription webhook
    SUBSCRIPTION_LABEL_KEY = "managed-by"

    SUBSCRIPTION_LABEL_VALUE = "webhook.subscription.ocs.openshift.io"

    #: Namespace name label set by kubernetes on every namespace
    NAMESPACE_NAME_LABEL = "kubernetes.io/metadata.name"


class Labels(ResourceLabels):
    KUBERNETES_DOMAIN = "app.kubernetes.io/"

    KUBERNETES_NAME_LABEL = KUBERNETES_DOMAIN + "name"

    KUBERNETES_COMPONENT_LABEL = KUBERNETES_DOMAIN + "component"

    KUBERNETES_PART_OF_LABEL = KUBERNETES_DOMAIN + "part-of"

    KUBERNETES_MANAGED_BY_LABEL = KUBERNETES_DOMAIN + "managed-by"

    APPLICATION_NAME = "ocs-client-operator"

    #: Selector label shared by CSI pods and their workloads
    APP_LABEL = "app"

    _labels: Dict[str, str]

    def __init__(self, labels: Dict[str, str] = None) -> None:
        self._labels = labels if labels else dict()

    def update(self, labels: Dict[str, str]) -> "Labels":
        self._labels.update(labels.copy())
        return self

    def as_dict(self) -> Dict[str, str]:
        """Return labels are dictionary."""
        return self._labels.copy()

    def as_str(self):
        """Return labels as comma separated string."""
        return ",".join([f"{k}={v}" for k, v in self._labels.items()])

    def include(self, label: str, value: str) -> "Labels":
        self.update({label: value})
        return self

    def include_app(self, app: str) -> "Labels":
        return self.include(self.APP_LABEL, app)

    def include_kubernetes_name(self, name: str) -> "Labels":
        return self.include(self.KUBERNETES_NAME_LABEL, name)

    def include_kubernetes_component(self, component: str) -> "Labels":
        return self.include(self.KUBERNETES_COMPONENT_LABEL, component)

    def include_kubernetes_part_of(self) -> "Labels":
        return self.include(self.KUBERNETES_PART_OF_LABEL, self.APPLICATION_NAME)

    def include_kubernetes_managed_by(self) -> "Labels":
        return self.include(self.KUBERNETES_MANAGED_BY_LABEL, self.APPLICATION_NAME)

    def contains(self, other: "Labels"):
        """Returns True if all labels in `other` are contained."""
        return all(
            key in self._labels and self._labels[key] == value
            for key, value in other.as_dict().items()
        )

    def __str__(self):
        return f"Labels<{self._labels}>"

    @classmethod
    def generate_default_labels(cls, app: str, component: str) -> "Labels":
        labels = Labels()
        return (
            labels.include_app(app)
            .include_kubernetes_name(app)
            .include_kubernetes_component(component)
            .include_kubernetes_part_of()
            .include_kubernetes_managed_by()
        )

    @classmethod
    def subscription_selector(cls) -> "Labels":
        return Labels({cls.SUBSCRIPTION_LABEL_KEY: cls.SUBSCRIPTION_LABEL_VALUE})


def parse_labels(text: str) -> Dict[str, str]:
    """Parse free text of ``key:value`` lines into a label mapping.

    Both sides are trimmed and split on the first colon only, so values may
    contain colons. Blank lines are skipped. Lines without a colon, or with an
    empty key, are skipped with a warning rather than failing the whole pass.
    Later lines win over earlier lines with the same key.
    """
    labels: Dict[str, str] = {}
    for line in (text or "").split("\n"):
        if not line.strip():
            continue
        key, sep, value = line.partition(":")
        key = key.strip()
        if not sep or not key:
            logger.warning(f"Ignoring malformed label line {line!r}, expected key:value")
            continue
        labels[key] = value.strip()
    return labels
