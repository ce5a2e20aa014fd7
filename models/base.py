from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """
    Base for records exchanged with the store API.
    Field names are snake_case in Python and camelCase on the wire;
    unknown keys sent by the server are ignored.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_wire(self) -> dict:
        """Serialise to the camelCase JSON body the API expects."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")
