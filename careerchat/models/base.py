"""
Shared model configuration.
API payloads use camelCase on the wire while Python code keeps snake_case.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialized with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        """JSON-compatible dict using wire (camelCase) field names."""
        return self.model_dump(mode="json", by_alias=True)
