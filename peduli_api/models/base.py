# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Base entity models with common fields and document conversion.
"""

import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field, ConfigDict
from bson import ObjectId


def generate_object_id() -> str:
    """Generate a new MongoDB ObjectId as string."""
    return str(ObjectId())


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what pymongo returns for stored dates."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_camel(name: str) -> str:
    """Convert snake_case field name to the camelCase used in stored documents."""
    head, *rest = name.split('_')
    return head + ''.join(part.capitalize() for part in rest)


def to_snake(name: str) -> str:
    """Convert a camelCase document key to snake_case."""
    return re.sub(r'(?<!^)(?=[A-Z])', '_', name).lower()


class BaseEntity(BaseModel):
    """Base entity with common fields for all domain objects."""

    model_config = ConfigDict(
        # Allow population by field name or alias
        populate_by_name=True,
        # Use enum values instead of enum objects
        use_enum_values=True,
        # Validate assignment
        validate_assignment=True
    )

    id: str = Field(default_factory=generate_object_id, description="Unique identifier")
    created_at: datetime = Field(default_factory=utcnow, description="Creation timestamp")
    updated_at: datetime = Field(default_factory=utcnow, description="Last update timestamp")
    schema_version: int = Field(default=1, description="Schema version for migrations")

    def to_document(self) -> Dict[str, Any]:
        """Serialize to a MongoDB document with camelCase keys and `_id`."""
        data = self.model_dump()
        document = {"_id": data.pop("id")}
        for key, value in data.items():
            document[to_camel(key)] = value
        return document

    def to_json(self) -> Dict[str, Any]:
        """JSON-ready dict with camelCase keys for API responses."""
        return {to_camel(key): value for key, value in self.model_dump(mode="json").items()}

    @classmethod
    def from_document(cls, document: Optional[Dict[str, Any]]):
        """Build an entity from a stored document, ignoring unknown keys."""
        if document is None:
            return None
        data = {}
        for key, value in document.items():
            if key == "_id":
                data["id"] = str(value)
            else:
                data[to_snake(key)] = value
        fields = cls.model_fields
        return cls(**{k: v for k, v in data.items() if k in fields})
