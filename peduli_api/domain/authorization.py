# SPDX-License-Identifier: Apache-2.0

"""
Authorization domain logic for case status transitions.

This module contains pure functions deciding whether a principal may move a
case along its status graph. Role is not always enough: adoptions are gated
on ownership of the referenced cat.
"""

from typing import List, Optional
from dataclasses import dataclass, field
from ..models.entities import UserContext, Report, Adoption, Campaign, Cat
from ..models.enums import UserRole, CampaignStatus


@dataclass
class AuthorizationResult:
    """Result of an authorization check."""
    allowed: bool
    reason: Optional[str] = None
    missing_roles: List[str] = field(default_factory=list)


def check_role(user_context: UserContext, *roles: UserRole) -> AuthorizationResult:
    """
    Check if the principal holds one of the given roles.

    Args:
        user_context: Verified principal
        roles: Accepted roles

    Returns:
        AuthorizationResult indicating if the role is accepted
    """
    if user_context.has_role(*roles):
        return AuthorizationResult(allowed=True)

    names = [UserRole(r).value for r in roles]
    return AuthorizationResult(
        allowed=False,
        reason=f"Requires role {' or '.join(names)}",
        missing_roles=names
    )


def can_transition_report(user_context: UserContext, report: Report) -> AuthorizationResult:
    """Reports are handled by any shelter or admin."""
    result = check_role(user_context, UserRole.SHELTER, UserRole.ADMIN)
    if not result.allowed:
        result.reason = f"Only shelters or admins may update report {report.id}"
    return result


def can_transition_adoption(
    user_context: UserContext,
    adoption: Adoption,
    cat: Optional[Cat]
) -> AuthorizationResult:
    """
    Only the shelter that owns the adopted cat may move the adoption.

    Args:
        user_context: Verified principal
        adoption: Adoption being updated
        cat: Cat referenced by the adoption (None if it no longer exists)

    Returns:
        AuthorizationResult indicating if the transition is permitted
    """
    role_result = check_role(user_context, UserRole.SHELTER)
    if not role_result.allowed:
        role_result.reason = f"Only the owning shelter may update adoption {adoption.id}"
        return role_result

    if cat is None or cat.shelter_id != user_context.user_id:
        return AuthorizationResult(
            allowed=False,
            reason=f"Shelter {user_context.user_id} does not own the cat of adoption {adoption.id}"
        )

    return AuthorizationResult(allowed=True)


def can_transition_campaign(
    user_context: UserContext,
    campaign: Campaign,
    new_status: str
) -> AuthorizationResult:
    """
    Admins approve campaigns; the owning shelter or an admin may close them.

    Args:
        user_context: Verified principal
        campaign: Campaign being updated
        new_status: Requested campaign status

    Returns:
        AuthorizationResult indicating if the transition is permitted
    """
    if user_context.is_admin:
        return AuthorizationResult(allowed=True)

    if new_status == CampaignStatus.CLOSED.value and user_context.is_shelter \
            and campaign.shelter_id == user_context.user_id:
        return AuthorizationResult(allowed=True)

    if new_status == CampaignStatus.ACTIVE.value:
        return AuthorizationResult(
            allowed=False,
            reason=f"Only admins may approve campaign {campaign.id}",
            missing_roles=[UserRole.ADMIN.value]
        )

    return AuthorizationResult(
        allowed=False,
        reason=f"Only the owning shelter or an admin may close campaign {campaign.id}"
    )
