# SPDX-License-Identifier: Apache-2.0

"""
Case endpoints.

Report, adoption and campaign submission, donations, status transitions and
the caller's case listings.
"""

from flask import jsonify, current_app, g
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from ..domain import status_machine
from ..middleware.auth import optional_jwt, require_jwt
from ..middleware.error_handler import AuthorizationException, NotFoundException, ValidationException
from ..middleware.validation import parse_json_body
from ..models.entities import UserContext
from ..models.enums import CaseType
from ..models.requests import (
    CampaignPath,
    CasePath,
    DonateRequest,
    SubmitAdoptionRequest,
    SubmitCampaignRequest,
    SubmitReportRequest,
    UpdateStatusRequest
)
from ..models.responses import StatusUpdateResponse

# Set up logging and tracing
logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

cases_tag = Tag(name="Cases", description="Reports, adoptions, campaigns and donations")
cases_bp = APIBlueprint(
    'cases',
    __name__,
    url_prefix='/api/cases',
    abp_tags=[cases_tag]
)


def _case_body(case_type: CaseType, case) -> dict:
    """Case resource body including its status label."""
    data = case.to_json()
    status = current_app.case_store.current_status(case_type, case)
    data["status"] = status
    data["statusLabel"] = status_machine.status_label(case_type, status)
    return data


def _case_resource(case_type: CaseType, case) -> dict:
    """Case resource with HAL links for the transitions available from it."""
    data = _case_body(case_type, case)
    return current_app.hal_formatter.format_case(
        case_type.value,
        data,
        status_machine.allowed_transitions(case_type, data["status"])
    )


def _can_view(case_type: CaseType, case, user_context: UserContext) -> bool:
    if user_context.is_admin or case_type == CaseType.CAMPAIGN:
        return True
    if case_type == CaseType.REPORT:
        return user_context.is_shelter or case.reporter_id == user_context.user_id
    if case.applicant_id == user_context.user_id:
        return True
    cat = current_app.case_store.get_cat(case.cat_id)
    return cat is not None and cat.shelter_id == user_context.user_id


@cases_bp.post('/reports')
@optional_jwt
def submit_report():
    """
    Submit an injured cat report.

    Guests (no token) must provide `reporterName` and `reporterPhone`.
    """
    user_context = g.user_context

    with tracer.start_as_current_span(
        "cases.report.submit",
        attributes={"user.id": user_context.user_id if user_context else "guest"}
    ) as span:
        body = parse_json_body(SubmitReportRequest)
        report = current_app.case_store.create_report(body, user_context)

        span.set_attribute("report.id", report.id)
        return jsonify(_case_resource(CaseType.REPORT, report)), 201


@cases_bp.post('/adoptions')
@require_jwt
def submit_adoption():
    """Apply to adopt a listed cat."""
    user_context = g.user_context

    with tracer.start_as_current_span(
        "cases.adoption.submit",
        attributes={"user.id": user_context.user_id}
    ) as span:
        body = parse_json_body(SubmitAdoptionRequest)
        adoption = current_app.case_store.create_adoption(body, user_context)

        span.set_attribute("adoption.id", adoption.id)
        return jsonify(_case_resource(CaseType.ADOPTION, adoption)), 201


@cases_bp.post('/campaigns')
@require_jwt
def submit_campaign():
    """Create a fundraising campaign (shelters only); it awaits admin approval."""
    user_context = g.user_context

    with tracer.start_as_current_span(
        "cases.campaign.submit",
        attributes={"user.id": user_context.user_id}
    ) as span:
        body = parse_json_body(SubmitCampaignRequest)
        campaign = current_app.case_store.create_campaign(body, user_context)

        span.set_attribute("campaign.id", campaign.id)
        return jsonify(_case_resource(CaseType.CAMPAIGN, campaign)), 201


@cases_bp.post('/campaigns/<campaign_id>/donations')
@require_jwt
def donate(path: CampaignPath):
    """Record a committed donation to an active campaign."""
    user_context = g.user_context

    with tracer.start_as_current_span(
        "cases.donation.record",
        attributes={"user.id": user_context.user_id, "campaign.id": path.campaign_id}
    ) as span:
        body = parse_json_body(DonateRequest)
        donation = current_app.case_store.record_donation(path.campaign_id, body, user_context)

        span.set_attribute("donation.id", donation.id)
        links = {
            'campaign': current_app.hal_formatter.builder.link_builder.build_link(
                f"/api/cases/campaign/{path.campaign_id}", title="Campaign"
            )
        }
        return jsonify(current_app.hal_formatter.builder.build_resource_response(donation.to_json(), links)), 201


@cases_bp.get('/reports/incoming')
@require_jwt
def list_incoming_reports():
    """PENDING reports waiting for a shelter or admin."""
    user_context = g.user_context

    with tracer.start_as_current_span(
        "cases.report.incoming",
        attributes={"user.id": user_context.user_id}
    ):
        reports = current_app.case_store.list_incoming_reports(user_context)
        return jsonify([_case_body(CaseType.REPORT, report) for report in reports])


@cases_bp.get('/activities')
@require_jwt
def list_activities():
    """The caller's own reports, adoptions and donations."""
    user_context = g.user_context

    with tracer.start_as_current_span(
        "cases.activities.list",
        attributes={"user.id": user_context.user_id}
    ):
        activities = current_app.case_store.list_activities(user_context)
        return jsonify({
            "reports": [_case_body(CaseType.REPORT, r) for r in activities["reports"]],
            "adoptions": [_case_body(CaseType.ADOPTION, a) for a in activities["adoptions"]],
            "donations": [d.to_json() for d in activities["donations"]]
        })


@cases_bp.get('/<entity_type>/<entity_id>')
@require_jwt
def get_case(path: CasePath):
    """Case detail with its available status transition."""
    user_context = g.user_context

    with tracer.start_as_current_span(
        "cases.case.get",
        attributes={"user.id": user_context.user_id, "case.id": path.entity_id}
    ):
        case_type = status_machine.parse_case_type(path.entity_type)
        if case_type is None:
            raise ValidationException(f"Unknown entity type: {path.entity_type}")

        loaders = {
            CaseType.REPORT: current_app.case_store.get_report,
            CaseType.ADOPTION: current_app.case_store.get_adoption,
            CaseType.CAMPAIGN: current_app.case_store.get_campaign
        }
        case = loaders[case_type](path.entity_id)
        if case is None:
            raise NotFoundException(f"{case_type.value.capitalize()} {path.entity_id} not found")
        if not _can_view(case_type, case, user_context):
            raise AuthorizationException(f"Not allowed to view {case_type.value} {path.entity_id}")

        return jsonify(_case_resource(case_type, case))


@cases_bp.patch('/<entity_type>/<entity_id>/status')
@require_jwt
def update_case_status(path: CasePath):
    """Move a case along its status graph."""
    user_context = g.user_context

    with tracer.start_as_current_span(
        "cases.status.update",
        attributes={
            "user.id": user_context.user_id,
            "case.type": path.entity_type,
            "case.id": path.entity_id
        }
    ):
        body = parse_json_body(UpdateStatusRequest)
        case = current_app.case_store.update_status(
            path.entity_type, path.entity_id, body.new_status, user_context
        )

        case_type = status_machine.parse_case_type(path.entity_type)
        new_status = current_app.case_store.current_status(case_type, case)
        response = StatusUpdateResponse(new_status=new_status)
        links = current_app.hal_formatter.builder.build_case_links(
            case_type.value, case.id, status_machine.allowed_transitions(case_type, new_status)
        )
        return jsonify(current_app.hal_formatter.builder.build_resource_response(response.to_json(), links))
