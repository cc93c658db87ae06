# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Response models for API endpoints.

Serialized with camelCase aliases to match the request/response contract.
"""

from datetime import datetime
from typing import List, Optional, Dict, Any
from pydantic import BaseModel, Field, ConfigDict
from .base import to_camel


class CamelResponse(BaseModel):
    """Base response with camelCase serialization."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True
    )

    def to_json(self) -> Dict[str, Any]:
        """JSON-ready dict using camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


class HalLink(BaseModel):
    """HAL link representation."""

    href: str = Field(..., description="Link URL")
    method: Optional[str] = Field(None, description="HTTP method")
    type: Optional[str] = Field(None, description="Content type")
    title: Optional[str] = Field(None, description="Link title")


class OpponentProfile(CamelResponse):
    """Public profile of the other participant."""

    id: str
    name: Optional[str] = None
    avatar: Optional[str] = None
    role: Optional[str] = None


class ConversationResponse(CamelResponse):
    """Created or fetched conversation."""

    conversation_id: str
    participants: List[str]


class ConversationSummary(CamelResponse):
    """Row in the caller's conversation list."""

    conversation_id: str
    opponent: OpponentProfile
    last_message: Optional[str] = None
    last_message_at: Optional[datetime] = None
    updated_at: datetime
    unread_count: int = 0


class PostedMessageResponse(CamelResponse):
    """Acknowledgement of an appended message."""

    message_id: str
    created_at: datetime


class MessageResponse(CamelResponse):
    """Message as returned by the message listing."""

    id: str
    sender_id: str
    content: str
    created_at: datetime
    is_read: bool


class CaseDescriptor(CamelResponse):
    """Unified view of a case shared by both participants."""

    id: str
    type: str
    title: str
    status: str
    status_label: str


class StatusUpdateResponse(CamelResponse):
    """Result of a status transition."""

    new_status: str


class ErrorResponse(BaseModel):
    """RFC 7807 problem document."""

    type: str = Field(..., description="Problem type URI")
    title: str = Field(..., description="Short summary")
    status: int = Field(..., description="HTTP status code")
    detail: str = Field(..., description="Human-readable explanation")
    instance: str = Field(..., description="Request path")
    errors: Optional[List[Dict[str, Any]]] = Field(None, description="Field errors")
