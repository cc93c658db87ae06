# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request models for API endpoints.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator
from .base import to_camel


class CamelModel(BaseModel):
    """Request body accepting camelCase keys (as sent by the mobile client)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True
    )


class StartConversationRequest(CamelModel):
    """Open (or fetch) the conversation with another user or about a report."""

    other_user_id: Optional[str] = Field(None, description="Counterpart user ID")
    report_id: Optional[str] = Field(None, description="Report to discuss with an admin")

    @model_validator(mode='after')
    def validate_target(self):
        if not self.other_user_id and not self.report_id:
            raise ValueError('Either otherUserId or reportId is required')
        return self


class PostMessageRequest(CamelModel):
    """Append a message to a conversation."""

    content: str = Field(..., min_length=1, max_length=2000, description="Message text")
    client_message_id: Optional[str] = Field(
        None, min_length=1, max_length=64, description="Client-generated ID for safe retries"
    )


class UpdateStatusRequest(CamelModel):
    """Move a case to a new status."""

    new_status: str = Field(..., min_length=1, description="Target status")

    @field_validator('new_status')
    @classmethod
    def normalize_status(cls, v):
        return v.upper()


class SubmitReportRequest(CamelModel):
    """Report submitted by a signed-in user or a guest."""

    condition_tags: List[str] = Field(..., min_length=1, description="Observed condition tags")
    description: str = Field(default="", max_length=2000)
    media_refs: List[str] = Field(default_factory=list, description="Uploaded media references")
    address: str = Field(default="", max_length=500)
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    reporter_name: Optional[str] = Field(None, max_length=200)
    reporter_phone: Optional[str] = Field(None, max_length=30)

    @field_validator('condition_tags', mode='before')
    @classmethod
    def split_tags(cls, v):
        """Accept the comma-separated form the mobile client sends."""
        if isinstance(v, str):
            return [tag for tag in v.split(',')]
        return v


class SubmitAdoptionRequest(CamelModel):
    """Adoption application form."""

    cat_id: str = Field(..., description="Cat to adopt")
    full_name: str = Field(..., min_length=1, max_length=200)
    phone: str = Field(..., min_length=1, max_length=30)
    ktp_number: Optional[str] = Field(None, max_length=32)
    social_media: Optional[str] = Field(None, max_length=200)
    home_status: Optional[str] = Field(None, max_length=100)
    is_permitted: bool = False
    staying_with: Optional[str] = Field(None, max_length=200)
    child_ages: Optional[str] = Field(None, max_length=100)
    has_experience: bool = False
    reason: Optional[str] = Field(None, max_length=2000)
    job: Optional[str] = Field(None, max_length=200)
    moving_plan: Optional[str] = Field(None, max_length=500)
    is_committed: bool = False


class SubmitCampaignRequest(CamelModel):
    """Fundraising campaign authored by a shelter."""

    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="", max_length=5000)
    target_amount: int = Field(..., gt=0)
    deadline: datetime


class DonateRequest(CamelModel):
    """Committed donation (payment handled elsewhere)."""

    amount: int = Field(..., gt=0)
    is_anonymous: bool = False
    message: Optional[str] = Field(None, max_length=500)
    payment_method: Optional[str] = Field(None, max_length=50)


class ConversationPath(BaseModel):
    """Path parameters addressing a conversation."""

    conversation_id: str = Field(..., description="Conversation ID")


class CasePath(BaseModel):
    """Path parameters addressing a case."""

    entity_type: str = Field(..., description="report, adoption or campaign")
    entity_id: str = Field(..., description="Case ID")


class CampaignPath(BaseModel):
    """Path parameters addressing a campaign."""

    campaign_id: str = Field(..., description="Campaign ID")
