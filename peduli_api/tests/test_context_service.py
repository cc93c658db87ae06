# SPDX-License-Identifier: Apache-2.0

"""
Tests for the context correlator over the store.
"""

import pytest

from peduli_api.middleware.error_handler import AuthorizationException, NotFoundException
from peduli_api.models.requests import SubmitAdoptionRequest, SubmitReportRequest
from peduli_api.services.mongodb import USERS


def _adopt(case_store, cat, actor):
    return case_store.create_adoption(
        SubmitAdoptionRequest(cat_id=cat.id, full_name="Sari", phone="0812"), actor
    )


def _report(case_store, actor=None, tag="injured", **contact):
    return case_store.create_report(
        SubmitReportRequest(condition_tags=[tag], latitude=0, longitude=0, **contact), actor
    )


class TestSharedCases:
    """Test get_shared_cases."""

    def test_adoption_visible_to_both_sides(
        self, context_correlator, conversation_registry, case_store, make_cat,
        shelter_user, regular_user, context_for
    ):
        cat = make_cat(shelter_user, name="Oyen")
        adoption = _adopt(case_store, cat, context_for(regular_user))
        conversation = conversation_registry.get_or_create_conversation(regular_user.id, shelter_user.id)

        expected = [{
            "id": adoption.id,
            "type": "adoption",
            "title": "Oyen",
            "status": "PENDING",
            "statusLabel": "Waiting for review"
        }]
        assert context_correlator.get_shared_cases(conversation.id, regular_user.id) == expected
        assert context_correlator.get_shared_cases(conversation.id, shelter_user.id) == expected

    def test_reflects_status_change_without_duplicates(
        self, context_correlator, conversation_registry, case_store, make_cat,
        shelter_user, regular_user, context_for
    ):
        cat = make_cat(shelter_user)
        adoption = _adopt(case_store, cat, context_for(regular_user))
        conversation = conversation_registry.get_or_create_conversation(regular_user.id, shelter_user.id)
        context_correlator.get_shared_cases(conversation.id, regular_user.id)

        case_store.update_status("adoption", adoption.id, "INTERVIEW", context_for(shelter_user))
        cases = context_correlator.get_shared_cases(conversation.id, regular_user.id)

        assert len(cases) == 1
        assert cases[0]["status"] == "INTERVIEW"

    def test_other_shelters_cats_excluded(
        self, context_correlator, conversation_registry, case_store, make_cat, make_user,
        shelter_user, regular_user, context_for
    ):
        other_shelter = make_user(name="Other", role="SHELTER")
        _adopt(case_store, make_cat(other_shelter, name="Mochi"), context_for(regular_user))
        conversation = conversation_registry.get_or_create_conversation(regular_user.id, shelter_user.id)

        assert context_correlator.get_shared_cases(conversation.id, regular_user.id) == []

    def test_report_appears_after_leaving_pending(
        self, context_correlator, conversation_registry, case_store, regular_user, admin_user, context_for
    ):
        report = _report(case_store, context_for(regular_user), tag="flu")
        conversation = conversation_registry.get_or_create_conversation(regular_user.id, admin_user.id)

        assert context_correlator.get_shared_cases(conversation.id, admin_user.id) == []

        case_store.update_status("report", report.id, "VERIFIED", context_for(admin_user))
        cases = context_correlator.get_shared_cases(conversation.id, admin_user.id)

        assert [(c["id"], c["title"], c["statusLabel"]) for c in cases] == [(report.id, "Report: flu", "Verified")]

    def test_guest_report_attributed_by_phone(
        self, context_correlator, conversation_registry, case_store, regular_user, admin_user, context_for
    ):
        report = _report(case_store, reporter_name="Sari", reporter_phone="+62 812-3456-7890")
        case_store.update_status("report", report.id, "VERIFIED", context_for(admin_user))
        conversation = conversation_registry.get_or_create_conversation(admin_user.id, regular_user.id)

        cases = context_correlator.get_shared_cases(conversation.id, regular_user.id)
        assert [c["id"] for c in cases] == [report.id]

    def test_verified_report_not_shared_between_regular_users(
        self, context_correlator, conversation_registry, case_store, regular_user, other_user, admin_user, context_for
    ):
        report = _report(case_store, context_for(regular_user))
        case_store.update_status("report", report.id, "VERIFIED", context_for(admin_user))
        conversation = conversation_registry.get_or_create_conversation(regular_user.id, other_user.id)

        assert context_correlator.get_shared_cases(conversation.id, regular_user.id) == []
        assert context_correlator.get_shared_cases(conversation.id, other_user.id) == []

    def test_adoptions_listed_before_reports(
        self, context_correlator, conversation_registry, case_store, make_cat,
        shelter_user, regular_user, context_for
    ):
        report = _report(case_store, context_for(regular_user))
        case_store.update_status("report", report.id, "VERIFIED", context_for(shelter_user))
        adoption = _adopt(case_store, make_cat(shelter_user), context_for(regular_user))
        conversation = conversation_registry.get_or_create_conversation(shelter_user.id, regular_user.id)

        cases = context_correlator.get_shared_cases(conversation.id, shelter_user.id)
        assert [(c["type"], c["id"]) for c in cases] == [("adoption", adoption.id), ("report", report.id)]

    def test_removed_opponent_keeps_cases(
        self, context_correlator, conversation_registry, case_store, mongodb_service, make_cat,
        shelter_user, regular_user, context_for
    ):
        adoption = _adopt(case_store, make_cat(shelter_user), context_for(regular_user))
        conversation = conversation_registry.get_or_create_conversation(regular_user.id, shelter_user.id)
        mongodb_service.get_collection(USERS).delete_one({"_id": regular_user.id})

        cases = context_correlator.get_shared_cases(conversation.id, shelter_user.id)
        assert [c["id"] for c in cases] == [adoption.id]

    def test_non_participant(self, context_correlator, conversation_registry, regular_user, shelter_user, other_user):
        conversation = conversation_registry.get_or_create_conversation(regular_user.id, shelter_user.id)
        with pytest.raises(AuthorizationException):
            context_correlator.get_shared_cases(conversation.id, other_user.id)

    def test_missing_conversation(self, context_correlator, regular_user):
        with pytest.raises(NotFoundException):
            context_correlator.get_shared_cases("0" * 24, regular_user.id)
