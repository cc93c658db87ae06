# SPDX-License-Identifier: Apache-2.0

"""
Chat endpoints.

Conversations between two users, their messages, and the cases the two
participants share.
"""

from flask import jsonify, current_app, g
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from ..middleware.auth import require_jwt
from ..middleware.validation import parse_json_body
from ..models.requests import ConversationPath, PostMessageRequest, StartConversationRequest
from ..models.responses import ConversationResponse, MessageResponse, PostedMessageResponse

# Set up logging and tracing
logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

chat_tag = Tag(name="Chat", description="Conversations, messages and shared case context")
chat_bp = APIBlueprint(
    'chat',
    __name__,
    url_prefix='/api/chat',
    abp_tags=[chat_tag]
)


@chat_bp.post('/conversations')
@require_jwt
def start_conversation():
    """
    Create or fetch a conversation.

    With `otherUserId` the conversation with that user is returned; with only
    `reportId` the counterpart is resolved from the report.
    """
    user_context = g.user_context

    with tracer.start_as_current_span(
        "chat.conversation.start",
        attributes={"user.id": user_context.user_id}
    ) as span:
        body = parse_json_body(StartConversationRequest)
        registry = current_app.conversation_registry

        if body.other_user_id:
            conversation = registry.get_or_create_conversation(user_context.user_id, body.other_user_id)
        else:
            conversation = registry.get_or_create_for_report(user_context, body.report_id)

        span.set_attribute("conversation.id", conversation.id)

        response = ConversationResponse(
            conversation_id=conversation.id,
            participants=conversation.participant_ids
        )
        return jsonify(current_app.hal_formatter.format_conversation(response.to_json())), 201


@chat_bp.get('/conversations')
@require_jwt
def list_conversations():
    """List the caller's conversations, most recently active first."""
    user_context = g.user_context

    with tracer.start_as_current_span(
        "chat.conversation.list",
        attributes={"user.id": user_context.user_id}
    ):
        summaries = current_app.conversation_registry.list_conversations(user_context.user_id)
        return jsonify([summary.to_json() for summary in summaries])


@chat_bp.post('/conversations/<conversation_id>/messages')
@require_jwt
def post_message(path: ConversationPath):
    """Append a message; `clientMessageId` makes retries safe."""
    user_context = g.user_context

    with tracer.start_as_current_span(
        "chat.message.post",
        attributes={"user.id": user_context.user_id, "conversation.id": path.conversation_id}
    ):
        body = parse_json_body(PostMessageRequest)

        message = current_app.message_store.post_message(
            path.conversation_id,
            user_context.user_id,
            body.content,
            client_message_id=body.client_message_id
        )

        response = PostedMessageResponse(message_id=message.id, created_at=message.created_at)
        return jsonify(current_app.hal_formatter.format_message(path.conversation_id, response.to_json())), 201


@chat_bp.get('/conversations/<conversation_id>/messages')
@require_jwt
def list_messages(path: ConversationPath):
    """List messages in order and mark the ones addressed to the caller as read."""
    user_context = g.user_context

    with tracer.start_as_current_span(
        "chat.message.list",
        attributes={"user.id": user_context.user_id, "conversation.id": path.conversation_id}
    ):
        messages = current_app.message_store.list_messages(path.conversation_id, user_context.user_id)

        return jsonify([
            MessageResponse(
                id=message.id,
                sender_id=message.sender_id,
                content=message.content,
                created_at=message.created_at,
                is_read=message.is_read
            ).to_json()
            for message in messages
        ])


@chat_bp.get('/conversations/<conversation_id>/context')
@require_jwt
def get_shared_context(path: ConversationPath):
    """Cases the two participants currently share."""
    user_context = g.user_context

    with tracer.start_as_current_span(
        "chat.context.get",
        attributes={"user.id": user_context.user_id, "conversation.id": path.conversation_id}
    ):
        cases = current_app.context_correlator.get_shared_cases(path.conversation_id, user_context.user_id)
        return jsonify(cases)
