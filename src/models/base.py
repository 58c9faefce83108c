"""Base model classes and utilities for MongoDB documents.

This module provides base classes for the assessment server's MongoDB models,
including common fields, ObjectId validation and serialization.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Type, TypeVar

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.json_schema import JsonSchemaValue
from pydantic_core import core_schema

from src.utils.datetime_utils import utc_now


class PyObjectId(ObjectId):
    """Custom ObjectId type for Pydantic models.

    This class enables proper serialization and validation of MongoDB ObjectIds
    in Pydantic models.
    """

    @classmethod
    def __get_pydantic_core_schema__(
        cls, _source_type: Any, _handler: Any
    ) -> core_schema.CoreSchema:
        """Get the Pydantic core schema for PyObjectId."""
        return core_schema.union_schema(
            [
                core_schema.is_instance_schema(ObjectId),
                core_schema.chain_schema(
                    [
                        core_schema.str_schema(),
                        core_schema.no_info_plain_validator_function(cls.validate),
                    ]
                ),
            ],
            serialization=core_schema.plain_serializer_function_ser_schema(
                lambda x: str(x), return_schema=core_schema.str_schema()
            ),
        )

    @classmethod
    def validate(cls, value: Any) -> ObjectId:
        """Validate and convert a value to ObjectId.

        Args:
            value: The value to validate

        Returns:
            ObjectId: A valid ObjectId instance

        Raises:
            ValueError: If the value is not a valid ObjectId
        """
        if isinstance(value, ObjectId):
            return value
        if isinstance(value, str) and ObjectId.is_valid(value):
            return ObjectId(value)
        raise ValueError("Invalid ObjectId")

    @classmethod
    def __get_pydantic_json_schema__(
        cls, _core_schema: core_schema.CoreSchema, handler: Any
    ) -> JsonSchemaValue:
        """Get JSON schema for PyObjectId."""
        return handler(core_schema.str_schema())


class BaseDocument(BaseModel):
    """Base model for all MongoDB documents.

    References to other documents are stored as id strings; only the
    document's own ``_id`` is an ObjectId.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        use_enum_values=True,
        arbitrary_types_allowed=True,
        json_encoders={ObjectId: str, datetime: lambda v: v.isoformat()},
        json_schema_extra={
            "example": {
                "_id": "507f1f77bcf86cd799439011",
                "created_at": "2025-01-01T00:00:00Z",
                "updated_at": "2025-01-01T00:00:00Z",
            }
        },
    )

    id: Optional[PyObjectId] = Field(default=None, alias="_id")
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def __init__(self, **data: Any) -> None:
        """Initialize a BaseDocument instance."""
        if "id" not in data and "_id" not in data:
            data["_id"] = ObjectId()
        super().__init__(**data)

    @field_validator("id", mode="before")
    @classmethod
    def validate_object_id(cls, value: Any) -> Optional[PyObjectId]:
        """Validate ObjectId field."""
        if value is None:
            return None
        return PyObjectId.validate(value)

    @property
    def id_str(self) -> str:
        """String form of the document id."""
        return str(self.id) if self.id is not None else ""

    def to_dict(self, **kwargs: Any) -> Dict[str, Any]:
        """Convert model to dictionary.

        Args:
            **kwargs: Additional arguments for model_dump

        Returns:
            Dict[str, Any]: Dictionary representation of the model
        """
        data = self.model_dump(by_alias=True, **kwargs)
        # Ensure _id is string in output
        if "_id" in data and data["_id"] is not None:
            data["_id"] = str(data["_id"])
        return data

    def to_mongo(self, **kwargs: Any) -> Dict[str, Any]:
        """Convert model to a document ready for insertion.

        Returns:
            Dict[str, Any]: Document with ``_id`` as an ObjectId
        """
        data = self.model_dump(by_alias=True, **kwargs)
        if self.id is not None and "_id" in data:
            data["_id"] = ObjectId(str(self.id))
        return data

    @classmethod
    def from_dict(cls: Type["T"], data: Dict[str, Any]) -> "T":
        """Create model instance from dictionary.

        Args:
            data: Dictionary containing model data

        Returns:
            Model instance
        """
        return cls(**data)

    def update_timestamps(self) -> None:
        """Update the updated_at timestamp to current time."""
        self.updated_at = utc_now()

    @classmethod
    def create_index_keys(cls) -> List[Dict[str, Any]]:
        """Return index specifications for this model's collection.

        Override in subclasses to define model-specific indexes. Each entry
        holds ``keys`` and optional index options.

        Returns:
            List[Dict[str, Any]]: Index specifications
        """
        return []


T = TypeVar("T", bound=BaseDocument)


class EmbeddedDocument(BaseModel):
    """Base model for embedded documents (subdocuments).

    Used for documents that are embedded within other documents rather than
    stored in their own collection.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        use_enum_values=True,
        arbitrary_types_allowed=True,
        json_encoders={ObjectId: str, datetime: lambda v: v.isoformat()},
    )


# Type aliases for common field types
ObjectIdStr = str  # String representation of ObjectId
