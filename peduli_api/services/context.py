# SPDX-License-Identifier: Apache-2.0

"""
Context correlator: the cases two chat participants currently share.

Recomputed from the case store on every call so that status changes made by
shelters and admins show up on the next read.
"""

from typing import Dict, List
from opentelemetry import trace
import logging

from ..domain import context as context_domain
from ..middleware.error_handler import NotFoundException
from ..models.entities import User
from .case_store import CaseStore
from .conversations import ConversationRegistry

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class ContextCorrelator:
    """Joins a conversation's participants against the case store."""

    def __init__(self, conversations: ConversationRegistry, case_store: CaseStore):
        self.conversations = conversations
        self.case_store = case_store

    def get_shared_cases(self, conversation_id: str, viewer_id: str) -> List[Dict[str, str]]:
        """
        Adoption and report cases shared by the viewer and the opponent.

        Args:
            conversation_id: Conversation being viewed
            viewer_id: Participant asking for the context

        Returns:
            Case descriptors `{id, type, title, status, statusLabel}`,
            adoptions first then reports, newest first within each group
        """
        with tracer.start_as_current_span("context.get_shared_cases") as span:
            span.set_attributes({"conversation.id": conversation_id, "user.id": viewer_id})

            conversation = self.conversations.get_conversation(conversation_id, viewer_id)
            opponent_id = conversation.opponent_of(viewer_id)

            users = self.case_store.get_users([viewer_id, opponent_id])
            viewer = users.get(viewer_id)
            if viewer is None:
                raise NotFoundException(f"User {viewer_id} not found")
            # An opponent whose account was removed still owns their cases by ID
            opponent = users.get(opponent_id) or User(id=opponent_id, name="Unknown user")

            adoptions, cats = self.case_store.find_adoptions_between(viewer.id, opponent.id)
            reports = self.case_store.find_reports_created_by([viewer, opponent])

            cases = context_domain.build_shared_cases(viewer, opponent, adoptions, cats, reports)

            span.set_attributes({
                "context.adoptions.candidates": len(adoptions),
                "context.reports.candidates": len(reports),
                "context.cases": len(cases)
            })
            logger.debug(
                "Shared cases computed",
                extra={
                    "conversation_id": conversation_id,
                    "user_id": viewer_id,
                    "opponent_id": opponent_id,
                    "cases": len(cases)
                }
            )
            return cases
