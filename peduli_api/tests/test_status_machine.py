# SPDX-License-Identifier: Apache-2.0

"""
Tests for case status graphs and transition authorization.
"""

import pytest
from datetime import datetime

from peduli_api.domain import authorization as authz
from peduli_api.domain import status_machine
from peduli_api.models.entities import Adoption, Campaign, Cat, Report, UserContext
from peduli_api.models.enums import CaseType, UserRole


class TestStatusGraphs:
    """Test the status graphs."""

    @pytest.mark.parametrize("case_type,current,new", [
        (CaseType.REPORT, "PENDING", "VERIFIED"),
        (CaseType.REPORT, "PENDING", "REJECTED"),
        (CaseType.REPORT, "VERIFIED", "ON_PROCESS"),
        (CaseType.REPORT, "ON_PROCESS", "RESCUED"),
        (CaseType.ADOPTION, "PENDING", "INTERVIEW"),
        (CaseType.ADOPTION, "INTERVIEW", "APPROVED"),
        (CaseType.ADOPTION, "APPROVED", "COMPLETED"),
        (CaseType.ADOPTION, "INTERVIEW", "CANCELLED"),
        (CaseType.ADOPTION, "APPROVED", "REJECTED"),
        (CaseType.CAMPAIGN, "PENDING_APPROVAL", "ACTIVE"),
        (CaseType.CAMPAIGN, "ACTIVE", "CLOSED"),
    ])
    def test_valid_transitions(self, case_type, current, new):
        result = status_machine.validate_status_transition(case_type, current, new)
        assert result.is_valid
        assert result.errors == []

    @pytest.mark.parametrize("case_type,current,new", [
        (CaseType.REPORT, "PENDING", "RESCUED"),
        (CaseType.REPORT, "VERIFIED", "PENDING"),
        (CaseType.ADOPTION, "PENDING", "COMPLETED"),
        (CaseType.ADOPTION, "INTERVIEW", "PENDING"),
        (CaseType.CAMPAIGN, "ACTIVE", "PENDING_APPROVAL"),
    ])
    def test_invalid_transitions(self, case_type, current, new):
        result = status_machine.validate_status_transition(case_type, current, new)
        assert not result.is_valid
        assert "Invalid status transition" in result.errors[0]

    def test_terminal_statuses_have_no_exit(self):
        for case_type, graph in status_machine.STATUS_GRAPHS.items():
            for status, targets in graph.items():
                if targets:
                    continue
                assert status_machine.is_terminal(case_type, status)
                for target in graph:
                    result = status_machine.validate_status_transition(case_type, status, target)
                    assert not result.is_valid
                    assert "cannot change" in result.errors[0]

    def test_unknown_status(self):
        result = status_machine.validate_status_transition(CaseType.REPORT, "PENDING", "LOST")
        assert not result.is_valid
        assert not status_machine.is_known_status(CaseType.REPORT, "LOST")

    def test_allowed_transitions_sorted(self):
        assert status_machine.allowed_transitions(CaseType.ADOPTION, "PENDING") == [
            "CANCELLED", "INTERVIEW", "REJECTED"
        ]
        assert status_machine.allowed_transitions(CaseType.REPORT, "RESCUED") == []

    def test_parse_case_type(self):
        assert status_machine.parse_case_type("Report") == CaseType.REPORT
        assert status_machine.parse_case_type("campaign") == CaseType.CAMPAIGN
        assert status_machine.parse_case_type("donation") is None

    def test_every_status_has_label(self):
        for case_type, graph in status_machine.STATUS_GRAPHS.items():
            for status in graph:
                assert status_machine.status_label(case_type, status) != status

    def test_label_falls_back_to_raw_value(self):
        assert status_machine.status_label(CaseType.REPORT, "MYSTERY") == "MYSTERY"


class TestTransitionAuthorization:
    """Test who may move which case."""

    def setup_method(self):
        self.admin = UserContext(user_id="a" * 24, role=UserRole.ADMIN)
        self.shelter = UserContext(user_id="b" * 24, role=UserRole.SHELTER)
        self.other_shelter = UserContext(user_id="c" * 24, role=UserRole.SHELTER)
        self.user = UserContext(user_id="d" * 24, role=UserRole.USER)

        self.report = Report(
            reporter_id=self.user.user_id, condition_tags=["flu"], latitude=0, longitude=0
        )
        self.cat = Cat(name="Oyen", shelter_id=self.shelter.user_id, is_approved=True)
        self.adoption = Adoption(
            applicant_id=self.user.user_id, cat_id=self.cat.id, full_name="Sari", phone="0812"
        )
        self.campaign = Campaign(
            shelter_id=self.shelter.user_id, title="Food", target_amount=100, deadline=datetime(2030, 1, 1)
        )

    def test_reports_handled_by_shelters_and_admins(self):
        assert authz.can_transition_report(self.admin, self.report).allowed
        assert authz.can_transition_report(self.other_shelter, self.report).allowed

        result = authz.can_transition_report(self.user, self.report)
        assert not result.allowed
        assert self.report.id in result.reason

    def test_adoption_requires_owning_shelter(self):
        assert authz.can_transition_adoption(self.shelter, self.adoption, self.cat).allowed
        assert not authz.can_transition_adoption(self.other_shelter, self.adoption, self.cat).allowed
        assert not authz.can_transition_adoption(self.admin, self.adoption, self.cat).allowed
        assert not authz.can_transition_adoption(self.user, self.adoption, self.cat).allowed

    def test_adoption_with_missing_cat_denied(self):
        assert not authz.can_transition_adoption(self.shelter, self.adoption, None).allowed

    def test_campaign_approval_admin_only(self):
        assert authz.can_transition_campaign(self.admin, self.campaign, "ACTIVE").allowed

        result = authz.can_transition_campaign(self.shelter, self.campaign, "ACTIVE")
        assert not result.allowed
        assert result.missing_roles == ["ADMIN"]

    def test_campaign_closed_by_owner_or_admin(self):
        assert authz.can_transition_campaign(self.shelter, self.campaign, "CLOSED").allowed
        assert authz.can_transition_campaign(self.admin, self.campaign, "CLOSED").allowed
        assert not authz.can_transition_campaign(self.other_shelter, self.campaign, "CLOSED").allowed
        assert not authz.can_transition_campaign(self.user, self.campaign, "CLOSED").allowed

    def test_check_role(self):
        result = authz.check_role(self.user, UserRole.SHELTER, UserRole.ADMIN)
        assert not result.allowed
        assert result.missing_roles == ["SHELTER", "ADMIN"]
        assert authz.check_role(self.user, UserRole.USER).allowed
