import os
import yaml
from typing import Any, Dict, Mapping

PVC_RULES_FILE = os.path.join(os.path.dirname(__file__), "pvc-rules.yaml")

PROMETHEUS_RULE_NAME = "ocs-client-operator-pvc-rules"


def load_pvc_rules() -> Dict[str, Any]:
    """Read the packaged PVC usage alerting rules."""
    with open(PVC_RULES_FILE) as f:
        return yaml.safe_load(f)


def pvc_prometheus_rule(namespace: str, labels: Mapping[str, str]) -> Dict[str, Any]:
    """PVC alerting rules in ``namespace``, labelled for the cluster's prometheus.

    ``labels`` replace the template's labels entirely.
    """
    rule = load_pvc_rules()
    metadata = rule.setdefault("metadata", {})
    metadata["namespace"] = namespace
    metadata["labels"] = dict(labels)
    return rule
