from marshmallow import fields, pre_load
from ocsclient.types.base import BaseSchema
from ocsclient.types.models.operator_config import OperatorConfig

# Same spellings as Go's strconv.ParseBool, which clients of this operator
# have been writing into the config map.
TRUTHY = {"1", "t", "T", "TRUE", "true", "True"}
FALSY = {"0", "f", "F", "FALSE", "false", "False"}

DEPLOY_CSI_KEY = "DEPLOY_CSI"
METRICS_LABELS_KEY = "OCS_METRICS_LABELS"


class OperatorConfigSchema(BaseSchema):
    """Operator configuration map data."""

    __model__ = OperatorConfig

    deploy_csi: bool = fields.Bool(
        data_key=DEPLOY_CSI_KEY, truthy=TRUTHY, falsy=FALSY, load_default=None
    )
    metrics_labels: str = fields.Str(data_key=METRICS_LABELS_KEY, load_default="")
    data = fields.Dict(keys=fields.Str(), values=fields.Str(allow_none=True))

    @pre_load
    def keep_raw_data(self, data, **kwargs):
        """Keep the untouched key/value pairs next to the parsed fields."""
        data = dict(data or {})
        return {**data, "data": dict(data)}
