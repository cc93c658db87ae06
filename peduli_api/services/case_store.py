# SPDX-License-Identifier: Apache-2.0

"""
Case store: Report, Adoption, Campaign and Donation persistence.

Submissions create cases in their initial status; afterwards status only
changes through `update_status`, which authorizes the actor, checks the edge
against the status graph and writes with a compare-and-swap on
`(status, version)` so concurrent writers cannot lose an update.
"""

from datetime import timezone
from typing import Dict, Iterable, List, Optional, Tuple
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from opentelemetry import trace
import logging

from ..domain import authorization as authz
from ..domain import status_machine
from ..domain.context import normalize_phone
from ..middleware.error_handler import (
    AuthorizationException,
    ConflictException,
    NotFoundException,
    RateLimitException,
    ValidationException
)
from ..middleware.validation import build_model
from ..models.base import utcnow
from ..models.entities import (
    Adoption, Campaign, Cat, Donation, Report, User, UserContext
)
from ..models.enums import CampaignStatus, CaseType, UserRole
from ..models.requests import (
    DonateRequest, SubmitAdoptionRequest, SubmitCampaignRequest, SubmitReportRequest
)
from .mongodb import (
    ADOPTIONS, CAMPAIGNS, CATS, DONATIONS, REPORTS, USERS,
    MongoDBService, is_valid_object_id
)

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

DEFAULT_REPORT_DAILY_LIMIT = 3


class CaseStore:
    """Store-backed case operations over MongoDB."""

    def __init__(self, mongodb_service: MongoDBService, report_daily_limit: int = DEFAULT_REPORT_DAILY_LIMIT):
        self.mongodb = mongodb_service
        self.report_daily_limit = report_daily_limit

    def _find_entity(self, collection: str, model, entity_id: str):
        if not is_valid_object_id(entity_id):
            return None
        with self.mongodb.storage_errors(f"{collection}.find_one"):
            document = self.mongodb.get_collection(collection).find_one({"_id": entity_id})
        return model.from_document(document)

    def _find_entities(self, collection: str, model, query: Dict, sort=None) -> List:
        with self.mongodb.storage_errors(f"{collection}.find"):
            cursor = self.mongodb.get_collection(collection).find(query)
            if sort:
                cursor = cursor.sort(sort)
            return [model.from_document(document) for document in cursor]

    # Readers

    def get_user(self, user_id: str) -> Optional[User]:
        return self._find_entity(USERS, User, user_id)

    def get_users(self, user_ids: Iterable[str]) -> Dict[str, User]:
        """Load several users at once, keyed by ID."""
        ids = [user_id for user_id in set(user_ids) if is_valid_object_id(user_id)]
        if not ids:
            return {}
        return {user.id: user for user in self._find_entities(USERS, User, {"_id": {"$in": ids}})}

    def find_admin_user(self) -> Optional[User]:
        """The longest-standing ADMIN account, if any."""
        admins = self._find_entities(
            USERS, User, {"role": UserRole.ADMIN.value}, sort=[("createdAt", ASCENDING)]
        )
        return admins[0] if admins else None

    def get_cat(self, cat_id: str) -> Optional[Cat]:
        return self._find_entity(CATS, Cat, cat_id)

    def get_report(self, report_id: str) -> Optional[Report]:
        return self._find_entity(REPORTS, Report, report_id)

    def get_adoption(self, adoption_id: str) -> Optional[Adoption]:
        return self._find_entity(ADOPTIONS, Adoption, adoption_id)

    def get_campaign(self, campaign_id: str) -> Optional[Campaign]:
        return self._find_entity(CAMPAIGNS, Campaign, campaign_id)

    def find_adoptions_between(self, user_a: str, user_b: str) -> Tuple[List[Adoption], Dict[str, Cat]]:
        """
        Adoptions applied for by either user, with the cats they reference.

        Only cats owned by one of the two users are loaded; callers decide
        which direction of the relationship applies.

        Returns:
            Tuple of (adoptions, cats keyed by ID)
        """
        with tracer.start_as_current_span("case_store.find_adoptions_between") as span:
            span.set_attributes({"user.a": user_a, "user.b": user_b})

            adoptions = self._find_entities(
                ADOPTIONS, Adoption,
                {"applicantId": {"$in": [user_a, user_b]}},
                sort=[("createdAt", DESCENDING)]
            )
            cat_ids = list({adoption.cat_id for adoption in adoptions})
            cats = {}
            if cat_ids:
                cats = {
                    cat.id: cat for cat in self._find_entities(
                        CATS, Cat,
                        {"_id": {"$in": cat_ids}, "shelterId": {"$in": [user_a, user_b]}}
                    )
                }

            span.set_attributes({
                "adoptions.count": len(adoptions),
                "cats.count": len(cats)
            })
            return adoptions, cats

    def find_reports_created_by(self, users: Iterable[User]) -> List[Report]:
        """
        Reports created by any of `users`.

        Guest reports are attributed through the normalized reporter phone.
        """
        users = list(users)
        user_ids = [user.id for user in users]
        phones = [phone for phone in (normalize_phone(user.phone_number) for user in users) if phone]

        query = {"$or": [
            {"reporterId": {"$in": user_ids}},
            {"reporterId": None, "reporterPhoneNormalized": {"$in": phones}}
        ]}
        return self._find_entities(REPORTS, Report, query, sort=[("createdAt", DESCENDING)])

    def list_incoming_reports(self, actor: UserContext) -> List[Report]:
        """PENDING reports awaiting a shelter or admin, newest first."""
        with tracer.start_as_current_span("case_store.list_incoming_reports") as span:
            span.set_attributes({"user.id": actor.user_id, "user.role": actor.role})

            result = authz.check_role(actor, UserRole.SHELTER, UserRole.ADMIN)
            if not result.allowed:
                raise AuthorizationException(result.reason)

            return self._find_entities(
                REPORTS, Report,
                {"status": status_machine.INITIAL_STATUS[CaseType.REPORT.value]},
                sort=[("createdAt", DESCENDING)]
            )

    def list_activities(self, actor: UserContext) -> Dict[str, List]:
        """The caller's own reports, adoptions and donations, newest first."""
        with tracer.start_as_current_span("case_store.list_activities") as span:
            span.set_attribute("user.id", actor.user_id)
            newest_first = [("createdAt", DESCENDING)]

            return {
                "reports": self._find_entities(REPORTS, Report, {"reporterId": actor.user_id}, newest_first),
                "adoptions": self._find_entities(ADOPTIONS, Adoption, {"applicantId": actor.user_id}, newest_first),
                "donations": self._find_entities(DONATIONS, Donation, {"donorId": actor.user_id}, newest_first)
            }

    # Submissions

    def create_report(self, payload: SubmitReportRequest, actor: Optional[UserContext] = None) -> Report:
        """
        Create a PENDING report from a signed-in user or a guest.

        Raises:
            ValidationException: Guest report without name and phone, or no tags
            RateLimitException: Signed-in reporter exceeded the daily limit
        """
        with tracer.start_as_current_span("case_store.create_report") as span:
            span.set_attribute("report.guest", actor is None)

            data = payload.model_dump()
            if actor is not None:
                span.set_attribute("user.id", actor.user_id)
                start_of_day = utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
                with self.mongodb.storage_errors("reports.count_documents"):
                    submitted_today = self.mongodb.get_collection(REPORTS).count_documents({
                        "reporterId": actor.user_id,
                        "createdAt": {"$gte": start_of_day}
                    })
                if submitted_today >= self.report_daily_limit:
                    logger.warning(
                        "Daily report limit reached",
                        extra={"user_id": actor.user_id, "limit": self.report_daily_limit}
                    )
                    raise RateLimitException(
                        f"Daily limit of {self.report_daily_limit} reports reached"
                    )

                user = self.get_user(actor.user_id)
                data["reporter_id"] = actor.user_id
                data["reporter_name"] = data.get("reporter_name") or (user.name if user else actor.name)
                data["reporter_phone"] = data.get("reporter_phone") or (user.phone_number if user else None)

            report = build_model(Report, data)

            document = report.to_document()
            document["reporterPhoneNormalized"] = normalize_phone(report.reporter_phone)
            with self.mongodb.storage_errors("reports.insert_one"):
                self.mongodb.get_collection(REPORTS).insert_one(document)

            span.set_attribute("report.id", report.id)
            logger.info(
                "Report submitted",
                extra={
                    "report_id": report.id,
                    "reporter_id": report.reporter_id,
                    "guest": report.is_guest,
                    "tags": report.condition_tags
                }
            )
            return report

    def create_adoption(self, payload: SubmitAdoptionRequest, actor: UserContext) -> Adoption:
        """
        Create a PENDING adoption application.

        Raises:
            NotFoundException: Cat absent or not publicly listed
            ValidationException: Shelter applying for its own cat
            ConflictException: Cat already adopted, or an active application exists
        """
        with tracer.start_as_current_span("case_store.create_adoption") as span:
            span.set_attributes({"user.id": actor.user_id, "cat.id": payload.cat_id})

            cat = self.get_cat(payload.cat_id)
            if cat is None or not cat.is_approved:
                raise NotFoundException(f"Cat {payload.cat_id} not found")
            if cat.shelter_id == actor.user_id:
                raise ValidationException("Shelters cannot adopt their own cats")
            if cat.is_adopted:
                raise ConflictException(f"Cat {cat.id} has already been adopted")

            with self.mongodb.storage_errors("adoptions.find_one"):
                existing = self.mongodb.get_collection(ADOPTIONS).find_one({
                    "applicantId": actor.user_id,
                    "catId": cat.id,
                    "status": {"$in": sorted(status_machine.ACTIVE_ADOPTION_STATUSES)}
                })
            if existing is not None:
                raise ConflictException(f"An active adoption for cat {cat.id} already exists")

            data = payload.model_dump()
            data["applicant_id"] = actor.user_id
            adoption = build_model(Adoption, data)

            with self.mongodb.storage_errors("adoptions.insert_one"):
                self.mongodb.get_collection(ADOPTIONS).insert_one(adoption.to_document())

            logger.info(
                "Adoption submitted",
                extra={"adoption_id": adoption.id, "applicant_id": actor.user_id, "cat_id": cat.id}
            )
            return adoption

    def create_campaign(self, payload: SubmitCampaignRequest, actor: UserContext) -> Campaign:
        """Create an unapproved, open campaign owned by the calling shelter."""
        with tracer.start_as_current_span("case_store.create_campaign") as span:
            span.set_attribute("user.id", actor.user_id)

            result = authz.check_role(actor, UserRole.SHELTER)
            if not result.allowed:
                raise AuthorizationException("Only shelters may create campaigns")

            deadline = payload.deadline
            if deadline.tzinfo is not None:
                deadline = deadline.astimezone(timezone.utc).replace(tzinfo=None)
            if deadline <= utcnow():
                raise ValidationException(
                    "Campaign deadline must be in the future",
                    [{"field": "deadline", "message": "Deadline is in the past", "type": "value_error"}]
                )

            data = payload.model_dump()
            data.update({"shelter_id": actor.user_id, "deadline": deadline})
            campaign = build_model(Campaign, data)

            with self.mongodb.storage_errors("campaigns.insert_one"):
                self.mongodb.get_collection(CAMPAIGNS).insert_one(campaign.to_document())

            span.set_attribute("campaign.id", campaign.id)
            logger.info(
                "Campaign submitted",
                extra={"campaign_id": campaign.id, "shelter_id": actor.user_id}
            )
            return campaign

    def record_donation(self, campaign_id: str, payload: DonateRequest, actor: UserContext) -> Donation:
        """
        Record a committed donation and raise the campaign total.

        The donation insert and the `currentAmount` increment commit together.

        Raises:
            NotFoundException: Campaign absent
            ConflictException: Campaign not approved or already closed
        """
        with tracer.start_as_current_span("case_store.record_donation") as span:
            span.set_attributes({
                "user.id": actor.user_id,
                "campaign.id": campaign_id,
                "donation.amount": payload.amount
            })

            campaign = self.get_campaign(campaign_id)
            if campaign is None:
                raise NotFoundException(f"Campaign {campaign_id} not found")
            if campaign.status != CampaignStatus.ACTIVE:
                raise ConflictException(
                    f"Campaign {campaign_id} is {campaign.status.value} and not accepting donations"
                )

            data = payload.model_dump()
            data.update({"campaign_id": campaign_id, "donor_id": actor.user_id})
            donation = build_model(Donation, data)

            def commit(session):
                campaigns = self.mongodb.get_collection(CAMPAIGNS)
                result = campaigns.update_one(
                    {"_id": campaign_id, "isApproved": True, "isClosed": False},
                    {"$inc": {"currentAmount": donation.amount}, "$set": {"updatedAt": utcnow()}},
                    session=session
                )
                if result.matched_count == 0:
                    raise ConflictException(f"Campaign {campaign_id} closed before the donation was recorded")
                self.mongodb.get_collection(DONATIONS).insert_one(donation.to_document(), session=session)

            with self.mongodb.storage_errors("donations.commit"):
                self.mongodb.run_in_transaction(commit)

            logger.info(
                "Donation recorded",
                extra={
                    "donation_id": donation.id,
                    "campaign_id": campaign_id,
                    "amount": donation.amount,
                    "anonymous": donation.is_anonymous
                }
            )
            return donation

    # Status transitions

    def _load_case(self, case_type: CaseType, entity_id: str):
        loaders = {
            CaseType.REPORT: self.get_report,
            CaseType.ADOPTION: self.get_adoption,
            CaseType.CAMPAIGN: self.get_campaign
        }
        entity = loaders[case_type](entity_id)
        if entity is None:
            raise NotFoundException(f"{case_type.value.capitalize()} {entity_id} not found")
        return entity

    def _authorize_transition(self, case_type: CaseType, entity, new_status: str, actor: UserContext):
        if case_type == CaseType.REPORT:
            result = authz.can_transition_report(actor, entity)
        elif case_type == CaseType.ADOPTION:
            result = authz.can_transition_adoption(actor, entity, self.get_cat(entity.cat_id))
        else:
            result = authz.can_transition_campaign(actor, entity, new_status)

        if not result.allowed:
            logger.warning(
                "Status transition denied",
                extra={
                    "entity_type": case_type.value,
                    "entity_id": entity.id,
                    "user_id": actor.user_id,
                    "role": actor.role,
                    "reason": result.reason
                }
            )
            raise AuthorizationException(result.reason)

    @staticmethod
    def current_status(case_type: CaseType, entity) -> str:
        """Stored status, or the derived one for campaigns."""
        if case_type == CaseType.CAMPAIGN:
            return entity.status.value
        return entity.status

    def update_status(self, entity_type: str, entity_id: str, new_status: str, actor: UserContext):
        """
        Move a case along its status graph.

        Args:
            entity_type: "report", "adoption" or "campaign"
            entity_id: Case ID
            new_status: Requested status
            actor: Verified principal

        Returns:
            The updated entity

        Raises:
            ValidationException: Unknown entity type or status
            NotFoundException: Case absent
            AuthorizationException: Actor may not move this case
            ConflictException: Illegal edge, or the case changed concurrently
        """
        with tracer.start_as_current_span("case_store.update_status") as span:
            span.set_attributes({
                "case.type": str(entity_type),
                "case.id": entity_id,
                "case.new_status": new_status,
                "user.id": actor.user_id
            })

            case_type = status_machine.parse_case_type(entity_type)
            if case_type is None:
                raise ValidationException(f"Unknown entity type: {entity_type}")

            entity = self._load_case(case_type, entity_id)
            current = self.current_status(case_type, entity)

            # A closed case answers the same way whoever asks and whatever they ask for
            if status_machine.is_terminal(case_type, current):
                raise ConflictException(
                    f"{case_type.value.capitalize()} is already {current} and cannot change"
                )

            if not status_machine.is_known_status(case_type, new_status):
                raise ValidationException(
                    f"Unknown {case_type.value} status: {new_status}",
                    [{
                        "field": "newStatus",
                        "message": f"Expected one of {sorted(status_machine.STATUS_GRAPHS[case_type.value])}",
                        "type": "enum"
                    }]
                )

            self._authorize_transition(case_type, entity, new_status, actor)

            validation = status_machine.validate_status_transition(case_type, current, new_status)
            if not validation.is_valid:
                raise ConflictException("; ".join(validation.errors))

            updated = self._compare_and_swap(case_type, entity, new_status)

            span.set_attribute("case.previous_status", current)
            logger.info(
                "Case status updated",
                extra={
                    "entity_type": case_type.value,
                    "entity_id": entity_id,
                    "from_status": current,
                    "to_status": new_status,
                    "user_id": actor.user_id
                }
            )
            return updated

    def _compare_and_swap(self, case_type: CaseType, entity, new_status: str):
        """Write the new status only if the case is unchanged since it was read."""
        now = utcnow()
        guard = {"_id": entity.id, "version": entity.version}

        if case_type == CaseType.CAMPAIGN:
            collection, model = CAMPAIGNS, Campaign
            guard.update({"isApproved": entity.is_approved, "isClosed": entity.is_closed})
            if new_status == CampaignStatus.ACTIVE.value:
                changes = {"isApproved": True}
            else:
                changes = {"isClosed": True}
        else:
            collection = REPORTS if case_type == CaseType.REPORT else ADOPTIONS
            model = Report if case_type == CaseType.REPORT else Adoption
            guard["status"] = entity.status
            changes = {"status": new_status}

        changes["updatedAt"] = now
        with self.mongodb.storage_errors(f"{collection}.find_one_and_update"):
            document = self.mongodb.get_collection(collection).find_one_and_update(
                guard,
                {"$set": changes, "$inc": {"version": 1}},
                return_document=ReturnDocument.AFTER
            )

        if document is None:
            logger.warning(
                "Status write lost a race",
                extra={"entity_type": case_type.value, "entity_id": entity.id}
            )
            raise ConflictException(
                f"{case_type.value.capitalize()} {entity.id} was modified concurrently, reload and retry"
            )

        return model.from_document(document)
