from typing import Any, Dict
from ocsclient.common.models.labels import Labels

SUBSCRIPTION_WEBHOOK_NAME = "subscription.ocs.openshift.io"
WEBHOOK_SERVICE_NAME = "ocs-client-operator-webhook-server"

#: service-ca operator fills clientConfig.caBundle of webhooks carrying this
INJECT_CA_BUNDLE_ANNOTATION = "service.beta.openshift.io/inject-cabundle"

CA_BUNDLE_PATH = "webhooks.0.clientConfig.caBundle"


def subscription_webhook(namespace: str) -> Dict[str, Any]:
    """Validating webhook for OLM subscriptions in the operator namespace.

    Only requests from ``namespace`` and for subscriptions carrying the
    managed-by label reach the webhook server running next to the operator.
    """
    return {
        "name": SUBSCRIPTION_WEBHOOK_NAME,
        "admissionReviewVersions": ["v1"],
        "clientConfig": {
            "service": {
                "name": WEBHOOK_SERVICE_NAME,
                "namespace": namespace,
                "path": "/validate-subscription",
                "port": 443,
            },
        },
        "failurePolicy": "Fail",
        "matchPolicy": "Equivalent",
        "sideEffects": "None",
        "timeoutSeconds": 10,
        "rules": [
            {
                "apiGroups": ["operators.coreos.com"],
                "apiVersions": ["v1alpha1"],
                "operations": ["CREATE", "UPDATE"],
                "resources": ["subscriptions"],
                "scope": "Namespaced",
            }
        ],
        "namespaceSelector": {
            "matchLabels": {Labels.NAMESPACE_NAME_LABEL: namespace},
        },
        "objectSelector": {
            "matchLabels": Labels.subscription_selector().as_dict(),
        },
    }
