# SPDX-License-Identifier: Apache-2.0

"""
Conversation context domain logic.

Pure functions that decide which adoption and report cases are shared by the
two participants of a conversation and project them into one display shape.
Callers load the candidate records; nothing here touches storage.
"""

import re
from datetime import datetime
from typing import Dict, Iterable, List, Optional
from dataclasses import dataclass
from ..models.entities import Adoption, Cat, Report, User
from ..models.enums import CaseType, ReportStatus, UserRole
from .status_machine import status_label

REPORTER = "REPORTER"
HANDLER = "HANDLER"

# Roles that take responsibility for reports
HANDLER_ROLES = frozenset({UserRole.SHELTER, UserRole.ADMIN})


@dataclass(frozen=True)
class CaseRef:
    """Tagged reference to a case, independent of its entity type."""
    case_type: CaseType
    id: str
    title: str
    status: str
    created_at: datetime

    @classmethod
    def from_adoption(cls, adoption: Adoption, cat: Optional[Cat]) -> "CaseRef":
        return cls(
            case_type=CaseType.ADOPTION,
            id=adoption.id,
            title=cat.name if cat else f"Adoption {adoption.id}",
            status=adoption.status,
            created_at=adoption.created_at
        )

    @classmethod
    def from_report(cls, report: Report) -> "CaseRef":
        return cls(
            case_type=CaseType.REPORT,
            id=report.id,
            title=f"Report: {report.condition_tags[0]}",
            status=report.status,
            created_at=report.created_at
        )


def project_case(case: CaseRef) -> Dict[str, str]:
    """Single projection shared by every case type."""
    return {
        "id": case.id,
        "type": case.case_type.value,
        "title": case.title,
        "status": case.status,
        "statusLabel": status_label(case.case_type, case.status)
    }


def normalize_phone(phone: Optional[str]) -> str:
    """Digits only, with the Indonesian +62 prefix folded to a leading 0."""
    digits = re.sub(r'\D', '', phone or '')
    if digits.startswith('62'):
        digits = '0' + digits[2:]
    return digits


def is_report_creator(report: Report, user: User) -> bool:
    """
    Decide whether `user` created `report`.

    Guest reports carry no user reference; they belong to the account whose
    phone number matches the reporter phone.
    """
    if report.reporter_id is not None:
        return report.reporter_id == user.id
    reporter_phone = normalize_phone(report.reporter_phone)
    return bool(reporter_phone) and reporter_phone == normalize_phone(user.phone_number)


def resolve_opponent_role(report: Report, viewer: User, opponent: User) -> Optional[str]:
    """
    Role the opponent plays in `report` within this conversation.

    Reports store no handler. By convention, when one participant created the
    report and the other holds a handler role (SHELTER or ADMIN), the other
    participant is its handler. Returns REPORTER, HANDLER, or None when the
    pair has no reporter and handler.
    """
    if is_report_creator(report, viewer):
        return HANDLER if UserRole(opponent.role) in HANDLER_ROLES else None
    if is_report_creator(report, opponent):
        return REPORTER if UserRole(viewer.role) in HANDLER_ROLES else None
    return None


def select_shared_adoptions(
    viewer: User,
    opponent: User,
    adoptions: Iterable[Adoption],
    cats: Dict[str, Cat]
) -> List[CaseRef]:
    """
    Adoptions linking the pair in either direction, regardless of status.

    Args:
        viewer: Participant asking for the context
        opponent: The other participant
        adoptions: Candidate adoptions (may include unrelated ones)
        cats: Cats referenced by the candidates, keyed by ID

    Returns:
        Case references, newest first
    """
    shared = []
    for adoption in adoptions:
        cat = cats.get(adoption.cat_id)
        if cat is None:
            continue
        if (adoption.applicant_id == viewer.id and cat.shelter_id == opponent.id) or \
                (adoption.applicant_id == opponent.id and cat.shelter_id == viewer.id):
            shared.append(CaseRef.from_adoption(adoption, cat))

    return sorted(shared, key=lambda ref: ref.created_at, reverse=True)


def select_shared_reports(
    viewer: User,
    opponent: User,
    reports: Iterable[Report]
) -> List[CaseRef]:
    """
    Reports created by either participant that someone has acted on.

    A PENDING report has no handling relationship yet and is left out.
    """
    shared = []
    for report in reports:
        if report.status == ReportStatus.PENDING.value:
            continue
        if resolve_opponent_role(report, viewer, opponent) is None:
            continue
        shared.append(CaseRef.from_report(report))

    return sorted(shared, key=lambda ref: ref.created_at, reverse=True)


def build_shared_cases(
    viewer: User,
    opponent: User,
    adoptions: Iterable[Adoption],
    cats: Dict[str, Cat],
    reports: Iterable[Report]
) -> List[Dict[str, str]]:
    """Adoption descriptors followed by report descriptors."""
    cases = select_shared_adoptions(viewer, opponent, adoptions, cats)
    cases += select_shared_reports(viewer, opponent, reports)
    return [project_case(case) for case in cases]
