# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Core entity models for the Peduli Kucing platform.
"""

from datetime import datetime
from typing import List, Optional, Dict, Any
from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict
from .base import BaseEntity
from .enums import (
    UserRole,
    ReportStatus,
    AdoptionStatus,
    CampaignStatus
)


class User(BaseEntity):
    """Account provisioned by the identity provider (read-only here)."""

    name: str = Field(..., min_length=1, max_length=200, description="Display name")
    role: UserRole = Field(default=UserRole.USER, description="Principal role")
    photo_profile: Optional[str] = Field(None, description="Avatar media reference")
    phone_number: Optional[str] = Field(None, description="Contact phone number")
    is_shelter_verified: bool = Field(default=False, description="Shelter verification flag")

    def public_profile(self) -> Dict[str, Any]:
        """Profile fields that may be shown to the other chat participant."""
        return {
            "id": self.id,
            "name": self.name,
            "avatar": self.photo_profile,
            "role": self.role
        }


class Cat(BaseEntity):
    """Cat listed by a shelter; referenced by adoptions."""

    name: str = Field(..., min_length=1, max_length=100, description="Cat name")
    shelter_id: str = Field(..., description="Owning shelter user ID")
    is_approved: bool = Field(default=False, description="Approved for public listing")
    is_adopted: bool = Field(default=False, description="Already adopted")


class Report(BaseEntity):
    """Injured stray cat report, from a signed-in user or a guest."""

    reporter_id: Optional[str] = Field(None, description="Reporter user ID (null for guests)")
    reporter_name: Optional[str] = Field(None, max_length=200, description="Guest reporter name")
    reporter_phone: Optional[str] = Field(None, max_length=30, description="Reporter phone")
    condition_tags: List[str] = Field(..., description="Observed condition tags")
    description: str = Field(default="", max_length=2000, description="Free-text description")
    media_refs: List[str] = Field(default_factory=list, description="Photo/video references")
    address: str = Field(default="", max_length=500, description="Location address")
    latitude: float = Field(..., ge=-90, le=90, description="Latitude")
    longitude: float = Field(..., ge=-180, le=180, description="Longitude")
    status: ReportStatus = Field(default=ReportStatus.PENDING, description="Workflow status")
    version: int = Field(default=0, description="Optimistic concurrency token")

    @field_validator('condition_tags')
    @classmethod
    def validate_condition_tags(cls, v):
        """Condition tags behave as a set; keep first-seen order."""
        tags = []
        for tag in v:
            tag = tag.strip()
            if tag and tag not in tags:
                tags.append(tag)
        if not tags:
            raise ValueError('At least one condition tag is required')
        return tags

    @model_validator(mode='after')
    def validate_reporter(self):
        """Guest reports carry name and phone instead of a user reference."""
        if self.reporter_id is None:
            if not (self.reporter_name or '').strip() or not (self.reporter_phone or '').strip():
                raise ValueError('Guest reports require reporter name and phone')
        return self

    @property
    def is_guest(self) -> bool:
        return self.reporter_id is None


class Adoption(BaseEntity):
    """Adoption application for a shelter's cat."""

    applicant_id: str = Field(..., description="Applicant user ID")
    cat_id: str = Field(..., description="Referenced cat ID")
    full_name: str = Field(..., min_length=1, max_length=200, description="Applicant full name")
    phone: str = Field(..., min_length=1, max_length=30, description="Applicant phone")
    ktp_number: Optional[str] = Field(None, max_length=32, description="Identity card number")
    social_media: Optional[str] = Field(None, max_length=200, description="Social media handle")
    home_status: Optional[str] = Field(None, max_length=100, description="Home ownership status")
    is_permitted: bool = Field(default=False, description="Pets permitted at home")
    staying_with: Optional[str] = Field(None, max_length=200, description="Household members")
    child_ages: Optional[str] = Field(None, max_length=100, description="Ages of children")
    has_experience: bool = Field(default=False, description="Prior pet experience")
    reason: Optional[str] = Field(None, max_length=2000, description="Reason for adopting")
    job: Optional[str] = Field(None, max_length=200, description="Occupation")
    moving_plan: Optional[str] = Field(None, max_length=500, description="Plans to move")
    is_committed: bool = Field(default=False, description="Commitment acknowledged")
    status: AdoptionStatus = Field(default=AdoptionStatus.PENDING, description="Workflow status")
    version: int = Field(default=0, description="Optimistic concurrency token")


class Campaign(BaseEntity):
    """Shelter fundraising campaign."""

    shelter_id: str = Field(..., description="Owning shelter user ID")
    title: str = Field(..., min_length=1, max_length=200, description="Campaign title")
    description: str = Field(default="", max_length=5000, description="Campaign description")
    target_amount: int = Field(..., gt=0, description="Fundraising target")
    current_amount: int = Field(default=0, ge=0, description="Amount raised so far")
    deadline: datetime = Field(..., description="Fundraising deadline")
    is_approved: bool = Field(default=False, description="Approved by an admin")
    is_closed: bool = Field(default=False, description="Closed for donations")
    version: int = Field(default=0, description="Optimistic concurrency token")

    @field_validator('title')
    @classmethod
    def validate_title(cls, v):
        if not v.strip():
            raise ValueError('Campaign title cannot be empty')
        return v.strip()

    @property
    def status(self) -> CampaignStatus:
        """Derived lifecycle status."""
        if self.is_closed:
            return CampaignStatus.CLOSED
        if self.is_approved:
            return CampaignStatus.ACTIVE
        return CampaignStatus.PENDING_APPROVAL


class Donation(BaseEntity):
    """Committed donation; append-only."""

    campaign_id: str = Field(..., description="Campaign ID")
    donor_id: str = Field(..., description="Donor user ID")
    amount: int = Field(..., gt=0, description="Donated amount")
    is_anonymous: bool = Field(default=False, description="Hide donor identity")
    message: Optional[str] = Field(None, max_length=500, description="Message to the shelter")
    payment_method: Optional[str] = Field(None, max_length=50, description="Payment method label")


class Conversation(BaseEntity):
    """Two-party conversation, unique per unordered participant pair."""

    participant_ids: List[str] = Field(..., min_length=2, max_length=2, description="Participants")
    pair_key: str = Field(..., description="Canonical participant pair key")
    last_message: Optional[str] = Field(None, description="Last message content snapshot")
    last_message_sender_id: Optional[str] = Field(None, description="Last message sender")
    last_message_at: Optional[datetime] = Field(None, description="Last message timestamp")
    message_seq: int = Field(default=0, description="Sequence numbers handed out so far")
    last_message_seq: int = Field(default=0, description="Sequence number of the snapshot message")
    message_clock: Optional[datetime] = Field(None, description="Latest message timestamp handed out")

    @staticmethod
    def make_pair_key(user_a: str, user_b: str) -> str:
        """Order-independent key for a participant pair."""
        return ":".join(sorted([user_a, user_b]))

    @model_validator(mode='after')
    def validate_pair(self):
        if self.participant_ids[0] == self.participant_ids[1]:
            raise ValueError('Conversation participants must differ')
        if self.pair_key != self.make_pair_key(*self.participant_ids):
            raise ValueError('pair_key does not match participants')
        return self

    def has_participant(self, user_id: str) -> bool:
        return user_id in self.participant_ids

    def opponent_of(self, user_id: str) -> str:
        """Return the participant that is not `user_id`."""
        if not self.has_participant(user_id):
            raise ValueError(f'User {user_id} is not a participant')
        first, second = self.participant_ids
        return second if first == user_id else first


class Message(BaseEntity):
    """Chat message; ordered by store sequence within a conversation."""

    conversation_id: str = Field(..., description="Parent conversation ID")
    sender_id: str = Field(..., description="Author user ID")
    content: str = Field(..., min_length=1, max_length=2000, description="Message text")
    is_read: bool = Field(default=False, description="Read by the other participant")
    seq: int = Field(default=0, description="Store insertion sequence")
    idempotency_key: str = Field(..., description="Client message ID or the message ID")


class UserContext(BaseModel):
    """Verified principal for request processing."""

    user_id: str = Field(..., description="Authenticated user ID")
    role: UserRole = Field(..., description="Principal role")
    name: Optional[str] = Field(None, description="User display name")
    token_payload: Optional[Dict[str, Any]] = Field(None, description="Original JWT payload")
    ip_address: Optional[str] = Field(None, description="Client IP address")
    user_agent: Optional[str] = Field(None, description="Client user agent")

    model_config = ConfigDict(
        use_enum_values=True
    )

    def has_role(self, *roles: UserRole) -> bool:
        """Check if the principal holds any of the given roles."""
        return self.role in [UserRole(r).value for r in roles]

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    @property
    def is_shelter(self) -> bool:
        return self.role == UserRole.SHELTER.value
