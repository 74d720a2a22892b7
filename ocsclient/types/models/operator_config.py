from typing import Dict, Optional
from ocsclient.types.base import BaseModel


class OperatorConfig(BaseModel):
    """Operator configuration map contents."""

    # None when DEPLOY_CSI is not set explicitly
    deploy_csi: Optional[bool] = None

    metrics_labels: str = ""

    # raw key/value pairs, including keys this operator does not know about
    data: Dict[str, str] = None

    @classmethod
    def empty(cls) -> "OperatorConfig":
        return cls(data={})

    @property
    def deploy_csi_set(self) -> bool:
        return self.deploy_csi is not None
