# SPDX-License-Identifier: Apache-2.0

"""
Conversation registry.

Conversations are two-party and unique per unordered participant pair. The
unique `pairKey` index arbitrates concurrent creation: a racing insert that
loses gets a DuplicateKeyError and resolves to the winner's record.
"""

from typing import List
from pymongo import DESCENDING
from pymongo.errors import DuplicateKeyError
from opentelemetry import trace
import logging

from ..middleware.error_handler import (
    AuthorizationException,
    ConflictException,
    NotFoundException,
    ValidationException
)
from ..models.entities import Conversation, UserContext
from ..models.enums import UserRole
from ..models.responses import ConversationSummary, OpponentProfile
from .case_store import CaseStore
from .mongodb import CONVERSATIONS, MESSAGES, MongoDBService, is_valid_object_id

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class ConversationRegistry:
    """Creates, deduplicates and lists two-party conversations."""

    def __init__(self, mongodb_service: MongoDBService, case_store: CaseStore):
        self.mongodb = mongodb_service
        self.case_store = case_store

    @property
    def collection(self):
        return self.mongodb.get_collection(CONVERSATIONS)

    def find_by_pair(self, user_a: str, user_b: str):
        with self.mongodb.storage_errors("conversations.find_one"):
            document = self.collection.find_one({"pairKey": Conversation.make_pair_key(user_a, user_b)})
        return Conversation.from_document(document)

    def get_conversation(self, conversation_id: str, viewer_id: str) -> Conversation:
        """
        Load a conversation the viewer takes part in.

        Raises:
            NotFoundException: Conversation absent
            AuthorizationException: Viewer is not a participant
        """
        conversation = None
        if is_valid_object_id(conversation_id):
            with self.mongodb.storage_errors("conversations.find_one"):
                conversation = Conversation.from_document(
                    self.collection.find_one({"_id": conversation_id})
                )

        if conversation is None:
            raise NotFoundException(f"Conversation {conversation_id} not found")

        if not conversation.has_participant(viewer_id):
            logger.warning(
                "Conversation access denied",
                extra={"conversation_id": conversation_id, "user_id": viewer_id}
            )
            raise AuthorizationException(f"User {viewer_id} is not a participant of conversation {conversation_id}")

        return conversation

    def get_or_create_conversation(self, user_a: str, user_b: str) -> Conversation:
        """
        Return the conversation between two users, creating it if absent.

        Symmetric in its arguments and safe under concurrent calls.

        Args:
            user_a: Requesting user ID
            user_b: Counterpart user ID

        Returns:
            The single conversation for the pair

        Raises:
            ValidationException: Both IDs are the same user
            NotFoundException: Counterpart does not exist
        """
        with tracer.start_as_current_span("conversations.get_or_create") as span:
            span.set_attributes({"user.a": user_a, "user.b": user_b})

            if user_a == user_b:
                raise ValidationException(
                    "Cannot start a conversation with yourself",
                    [{"field": "otherUserId", "message": "Must differ from the caller", "type": "value_error"}]
                )

            if self.case_store.get_user(user_b) is None:
                raise NotFoundException(f"User {user_b} not found")

            existing = self.find_by_pair(user_a, user_b)
            if existing is not None:
                span.set_attribute("conversation.created", False)
                return existing

            conversation = Conversation(
                participant_ids=[user_a, user_b],
                pair_key=Conversation.make_pair_key(user_a, user_b)
            )
            try:
                with self.mongodb.storage_errors("conversations.insert_one"):
                    self.collection.insert_one(conversation.to_document())
            except DuplicateKeyError:
                winner = self.find_by_pair(user_a, user_b)
                if winner is None:
                    raise ConflictException("Conversation creation raced and could not be resolved, retry")
                logger.info(
                    "Conversation creation raced; using existing conversation",
                    extra={"conversation_id": winner.id, "pair_key": winner.pair_key}
                )
                span.set_attribute("conversation.created", False)
                return winner

            span.set_attributes({"conversation.created": True, "conversation.id": conversation.id})
            logger.info(
                "Conversation created",
                extra={"conversation_id": conversation.id, "participants": conversation.participant_ids}
            )
            return conversation

    def get_or_create_for_report(self, actor: UserContext, report_id: str) -> Conversation:
        """
        Open the conversation about a report without a named counterpart.

        A reporter is put in touch with an admin; an admin is put in touch
        with the reporter.

        Raises:
            NotFoundException: Report absent, or no admin account exists
            ValidationException: Admin opening a chat about a guest report
        """
        with tracer.start_as_current_span("conversations.get_or_create_for_report") as span:
            span.set_attributes({"user.id": actor.user_id, "report.id": report_id})

            report = self.case_store.get_report(report_id)
            if report is None:
                raise NotFoundException(f"Report {report_id} not found")

            if actor.role == UserRole.ADMIN.value:
                if report.reporter_id is None:
                    raise ValidationException(f"Report {report_id} was filed by a guest without an account")
                counterpart_id = report.reporter_id
            else:
                admin = self.case_store.find_admin_user()
                if admin is None:
                    raise NotFoundException("No admin is available yet")
                counterpart_id = admin.id

            span.set_attribute("counterpart.id", counterpart_id)
            return self.get_or_create_conversation(actor.user_id, counterpart_id)

    def list_conversations(self, user_id: str) -> List[ConversationSummary]:
        """
        Conversations the user takes part in, most recently active first.

        Each row carries the opponent's public profile, the last message
        snapshot and the number of unread messages addressed to the user.
        """
        with tracer.start_as_current_span("conversations.list") as span:
            span.set_attribute("user.id", user_id)

            with self.mongodb.storage_errors("conversations.find"):
                conversations = [
                    Conversation.from_document(document)
                    for document in self.collection.find({"participantIds": user_id}).sort("updatedAt", DESCENDING)
                ]

            opponents = self.case_store.get_users(c.opponent_of(user_id) for c in conversations)
            messages = self.mongodb.get_collection(MESSAGES)

            summaries = []
            for conversation in conversations:
                opponent_id = conversation.opponent_of(user_id)
                opponent = opponents.get(opponent_id)
                profile = OpponentProfile(**opponent.public_profile()) if opponent else OpponentProfile(id=opponent_id)

                with self.mongodb.storage_errors("messages.count_documents"):
                    unread = messages.count_documents({
                        "conversationId": conversation.id,
                        "senderId": {"$ne": user_id},
                        "isRead": False
                    })

                summaries.append(ConversationSummary(
                    conversation_id=conversation.id,
                    opponent=profile,
                    last_message=conversation.last_message,
                    last_message_at=conversation.last_message_at,
                    updated_at=conversation.updated_at,
                    unread_count=unread
                ))

            span.set_attribute("conversations.count", len(summaries))
            return summaries
