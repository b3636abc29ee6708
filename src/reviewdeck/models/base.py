"""Shared base for models exchanged with the dashboard API."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Model serialized with camelCase keys on the wire.

    Python code uses snake_case attribute names; ``model_dump(by_alias=True)``
    produces the payload the server expects.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )
