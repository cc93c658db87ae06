# SPDX-License-Identifier: Apache-2.0

"""
Case status state machines.

This module contains pure functions describing the Report, Adoption and
Campaign status graphs, edge validation, and display labels.
"""

from typing import Dict, List, Optional, FrozenSet
from dataclasses import dataclass, field
from ..models.enums import CaseType, ReportStatus, AdoptionStatus, CampaignStatus


@dataclass
class ValidationResult:
    """Result of a status transition validation."""
    is_valid: bool
    errors: List[str] = field(default_factory=list)


REPORT_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    ReportStatus.PENDING.value: frozenset({ReportStatus.VERIFIED.value, ReportStatus.REJECTED.value}),
    ReportStatus.VERIFIED.value: frozenset({ReportStatus.ON_PROCESS.value}),
    ReportStatus.ON_PROCESS.value: frozenset({ReportStatus.RESCUED.value}),
    ReportStatus.RESCUED.value: frozenset(),  # Terminal state
    ReportStatus.REJECTED.value: frozenset()  # Terminal state
}

_ADOPTION_EXITS = frozenset({AdoptionStatus.REJECTED.value, AdoptionStatus.CANCELLED.value})

ADOPTION_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    AdoptionStatus.PENDING.value: frozenset({AdoptionStatus.INTERVIEW.value}) | _ADOPTION_EXITS,
    AdoptionStatus.INTERVIEW.value: frozenset({AdoptionStatus.APPROVED.value}) | _ADOPTION_EXITS,
    AdoptionStatus.APPROVED.value: frozenset({AdoptionStatus.COMPLETED.value}) | _ADOPTION_EXITS,
    AdoptionStatus.COMPLETED.value: frozenset(),  # Terminal state
    AdoptionStatus.REJECTED.value: frozenset(),  # Terminal state
    AdoptionStatus.CANCELLED.value: frozenset()  # Terminal state
}

CAMPAIGN_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    CampaignStatus.PENDING_APPROVAL.value: frozenset({CampaignStatus.ACTIVE.value, CampaignStatus.CLOSED.value}),
    CampaignStatus.ACTIVE.value: frozenset({CampaignStatus.CLOSED.value}),
    CampaignStatus.CLOSED.value: frozenset()  # Terminal state
}

STATUS_GRAPHS: Dict[str, Dict[str, FrozenSet[str]]] = {
    CaseType.REPORT.value: REPORT_TRANSITIONS,
    CaseType.ADOPTION.value: ADOPTION_TRANSITIONS,
    CaseType.CAMPAIGN.value: CAMPAIGN_TRANSITIONS
}

INITIAL_STATUS: Dict[str, str] = {
    CaseType.REPORT.value: ReportStatus.PENDING.value,
    CaseType.ADOPTION.value: AdoptionStatus.PENDING.value,
    CaseType.CAMPAIGN.value: CampaignStatus.PENDING_APPROVAL.value
}

# Adoptions the applicant is still pursuing
ACTIVE_ADOPTION_STATUSES: FrozenSet[str] = frozenset({
    AdoptionStatus.PENDING.value,
    AdoptionStatus.INTERVIEW.value,
    AdoptionStatus.APPROVED.value
})

STATUS_LABELS: Dict[str, Dict[str, str]] = {
    CaseType.REPORT.value: {
        ReportStatus.PENDING.value: "Waiting for review",
        ReportStatus.VERIFIED.value: "Verified",
        ReportStatus.ON_PROCESS.value: "Rescue in progress",
        ReportStatus.RESCUED.value: "Rescued",
        ReportStatus.REJECTED.value: "Rejected"
    },
    CaseType.ADOPTION.value: {
        AdoptionStatus.PENDING.value: "Waiting for review",
        AdoptionStatus.INTERVIEW.value: "Interview scheduled",
        AdoptionStatus.APPROVED.value: "Approved",
        AdoptionStatus.COMPLETED.value: "Adoption completed",
        AdoptionStatus.REJECTED.value: "Rejected",
        AdoptionStatus.CANCELLED.value: "Cancelled"
    },
    CaseType.CAMPAIGN.value: {
        CampaignStatus.PENDING_APPROVAL.value: "Waiting for admin approval",
        CampaignStatus.ACTIVE.value: "Accepting donations",
        CampaignStatus.CLOSED.value: "Closed"
    }
}


def parse_case_type(entity_type: str) -> Optional[CaseType]:
    """Resolve a case type from its wire name; None if unknown."""
    try:
        return CaseType(str(entity_type).lower())
    except ValueError:
        return None


def is_known_status(case_type: CaseType, status: str) -> bool:
    return status in STATUS_GRAPHS[CaseType(case_type).value]


def is_terminal(case_type: CaseType, status: str) -> bool:
    """A status with no outgoing edge."""
    graph = STATUS_GRAPHS[CaseType(case_type).value]
    return status in graph and not graph[status]


def allowed_transitions(case_type: CaseType, current_status: str) -> List[str]:
    """Statuses reachable in one step, sorted for stable output."""
    graph = STATUS_GRAPHS[CaseType(case_type).value]
    return sorted(graph.get(current_status, frozenset()))


def validate_status_transition(
    case_type: CaseType,
    current_status: str,
    new_status: str
) -> ValidationResult:
    """
    Validate a case status transition against the entity's graph.

    Args:
        case_type: Entity type owning the graph
        current_status: Current status
        new_status: Desired new status

    Returns:
        ValidationResult with validation status and errors
    """
    errors = []
    graph = STATUS_GRAPHS[CaseType(case_type).value]

    if new_status not in graph:
        errors.append(f"Unknown {CaseType(case_type).value} status: {new_status}")
    elif is_terminal(case_type, current_status):
        errors.append(
            f"{CaseType(case_type).value.capitalize()} is already {current_status} and cannot change"
        )
    elif new_status not in graph.get(current_status, frozenset()):
        errors.append(
            f"Invalid status transition from {current_status} to {new_status}"
        )

    return ValidationResult(
        is_valid=len(errors) == 0,
        errors=errors
    )


def status_label(case_type: CaseType, status: str) -> str:
    """Human-readable label for a status; falls back to the raw value."""
    return STATUS_LABELS[CaseType(case_type).value].get(status, status)
