from types import SimpleNamespace
from typing import Any, Dict
from marshmallow import EXCLUDE, Schema, post_load

JSON = Dict[str, Any]


class BaseModel(SimpleNamespace):
    """Attribute bag built from loaded schema fields.

    Class attributes act as defaults for fields the schema did not produce.
    """

    def __init__(self, **kwargs: Any) -> None:
        self.__dict__.update(kwargs)


class BaseSchema(Schema):
    """Loads config map data into the model named by ``__model__``."""

    __model__: Any = BaseModel

    class Meta:
        unknown = EXCLUDE
        ordered = True

    @post_load
    def make_object(self, data: JSON, **kwargs: Any) -> "__model__":
        return self.__model__(**data)
