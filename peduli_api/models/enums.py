# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Enumeration types for the Peduli Kucing platform.
"""

from enum import Enum


class UserRole(str, Enum):
    """Principal roles issued by the identity provider."""
    USER = "USER"
    SHELTER = "SHELTER"
    ADMIN = "ADMIN"


class CaseType(str, Enum):
    """Entity types that own a status lifecycle."""
    REPORT = "report"
    ADOPTION = "adoption"
    CAMPAIGN = "campaign"


class ReportStatus(str, Enum):
    """Injured-cat report workflow status."""
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    ON_PROCESS = "ON_PROCESS"
    RESCUED = "RESCUED"
    REJECTED = "REJECTED"


class AdoptionStatus(str, Enum):
    """Adoption application workflow status."""
    PENDING = "PENDING"
    INTERVIEW = "INTERVIEW"
    APPROVED = "APPROVED"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class CampaignStatus(str, Enum):
    """Derived fundraising campaign status (from isApproved / isClosed)."""
    PENDING_APPROVAL = "PENDING_APPROVAL"
    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"
