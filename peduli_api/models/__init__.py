# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Models package - Pydantic schemas and data models for the Peduli Kucing platform.
"""

# Base models
from .base import BaseEntity, generate_object_id, utcnow

# Enumerations
from .enums import (
    UserRole,
    CaseType,
    ReportStatus,
    AdoptionStatus,
    CampaignStatus
)

# Core entities
from .entities import (
    User,
    Cat,
    Report,
    Adoption,
    Campaign,
    Donation,
    Conversation,
    Message,
    UserContext
)

# Request models
from .requests import (
    StartConversationRequest,
    PostMessageRequest,
    UpdateStatusRequest,
    SubmitReportRequest,
    SubmitAdoptionRequest,
    SubmitCampaignRequest,
    DonateRequest,
    ConversationPath,
    CasePath,
    CampaignPath
)

# Response models
from .responses import (
    HalLink,
    OpponentProfile,
    ConversationResponse,
    ConversationSummary,
    PostedMessageResponse,
    MessageResponse,
    CaseDescriptor,
    StatusUpdateResponse,
    ErrorResponse
)

__all__ = [
    # Base models
    "BaseEntity",
    "generate_object_id",
    "utcnow",

    # Enumerations
    "UserRole",
    "CaseType",
    "ReportStatus",
    "AdoptionStatus",
    "CampaignStatus",

    # Core entities
    "User",
    "Cat",
    "Report",
    "Adoption",
    "Campaign",
    "Donation",
    "Conversation",
    "Message",
    "UserContext",

    # Request models
    "StartConversationRequest",
    "PostMessageRequest",
    "UpdateStatusRequest",
    "SubmitReportRequest",
    "SubmitAdoptionRequest",
    "SubmitCampaignRequest",
    "DonateRequest",
    "ConversationPath",
    "CasePath",
    "CampaignPath",

    # Response models
    "HalLink",
    "OpponentProfile",
    "ConversationResponse",
    "ConversationSummary",
    "PostedMessageResponse",
    "MessageResponse",
    "CaseDescriptor",
    "StatusUpdateResponse",
    "ErrorResponse"
]
