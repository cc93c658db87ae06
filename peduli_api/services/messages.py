# SPDX-License-Identifier: Apache-2.0

"""
Message store.

Messages are append-only and ordered by a per-conversation sequence number
taken from an atomic counter on the conversation. The message is inserted
before the conversation's last message snapshot moves, so the snapshot never
names a message that was not stored. The writes commit together in a
transaction when the deployment supports it, otherwise in order under a
lock striped by conversation.

A failed insert without a transaction leaves a gap in the sequence numbers;
readers rely on order, not contiguity.
"""

import threading
from typing import List, Optional
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError
from opentelemetry import trace
import logging

from ..middleware.error_handler import ConflictException, NotFoundException, ValidationException
from ..models.base import generate_object_id, utcnow
from ..models.entities import Message
from .conversations import ConversationRegistry
from .mongodb import CONVERSATIONS, MESSAGES, MongoDBService

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 2000
LOCK_STRIPES = 64


class MessageStore:
    """Ordered messages with read-state."""

    def __init__(self, mongodb_service: MongoDBService, conversations: ConversationRegistry):
        self.mongodb = mongodb_service
        self.conversations = conversations
        self._locks = [threading.Lock() for _ in range(LOCK_STRIPES)]

    def _conversation_lock(self, conversation_id: str) -> threading.Lock:
        return self._locks[hash(conversation_id) % LOCK_STRIPES]

    def _find_by_idempotency_key(self, conversation_id: str, key: str) -> Optional[Message]:
        with self.mongodb.storage_errors("messages.find_one"):
            document = self.mongodb.get_collection(MESSAGES).find_one({
                "conversationId": conversation_id,
                "idempotencyKey": key
            })
        return Message.from_document(document)

    def post_message(
        self,
        conversation_id: str,
        sender_id: str,
        content: str,
        client_message_id: Optional[str] = None
    ) -> Message:
        """
        Append a message to a conversation.

        Args:
            conversation_id: Target conversation
            sender_id: Author, who must be a participant
            content: Message text, trimmed before storing
            client_message_id: Client-generated ID; a retry with the same ID
                returns the original message

        Returns:
            The stored message

        Raises:
            ValidationException: Empty or oversized content
            NotFoundException: Conversation absent
            AuthorizationException: Sender is not a participant
        """
        with tracer.start_as_current_span("messages.post") as span:
            span.set_attributes({
                "conversation.id": conversation_id,
                "user.id": sender_id,
                "message.client_id": client_message_id or ""
            })

            text = (content or "").strip()
            if not text:
                raise ValidationException(
                    "Message content cannot be empty",
                    [{"field": "content", "message": "Content is empty", "type": "value_error"}]
                )
            if len(text) > MAX_MESSAGE_LENGTH:
                raise ValidationException(
                    f"Message content exceeds {MAX_MESSAGE_LENGTH} characters",
                    [{"field": "content", "message": "Content is too long", "type": "string_too_long"}]
                )

            self.conversations.get_conversation(conversation_id, sender_id)

            if client_message_id:
                previous = self._find_by_idempotency_key(conversation_id, client_message_id)
                if previous is not None:
                    span.set_attribute("message.replayed", True)
                    logger.info(
                        "Message retry returned original",
                        extra={"conversation_id": conversation_id, "message_id": previous.id}
                    )
                    return previous

            message_id = generate_object_id()
            idempotency_key = client_message_id or message_id

            def append(session):
                conversations = self.mongodb.get_collection(CONVERSATIONS)
                counter = conversations.find_one_and_update(
                    {"_id": conversation_id},
                    {"$inc": {"messageSeq": 1}, "$max": {"messageClock": utcnow()}},
                    return_document=ReturnDocument.AFTER,
                    session=session
                )
                if counter is None:
                    raise NotFoundException(f"Conversation {conversation_id} not found")

                # Never earlier than the previous message
                created_at = counter["messageClock"]
                seq = counter["messageSeq"]
                message = Message(
                    id=message_id,
                    conversation_id=conversation_id,
                    sender_id=sender_id,
                    content=text,
                    seq=seq,
                    idempotency_key=idempotency_key,
                    created_at=created_at,
                    updated_at=created_at
                )
                self.mongodb.get_collection(MESSAGES).insert_one(message.to_document(), session=session)

                # Snapshot only moves forward, and only once the message exists
                conversations.update_one(
                    {
                        "_id": conversation_id,
                        "$or": [{"lastMessageSeq": {"$exists": False}}, {"lastMessageSeq": {"$lt": seq}}]
                    },
                    {
                        "$set": {
                            "lastMessage": text,
                            "lastMessageSenderId": sender_id,
                            "lastMessageAt": created_at,
                            "lastMessageSeq": seq
                        },
                        "$max": {"updatedAt": created_at}
                    },
                    session=session
                )
                return message

            try:
                with self.mongodb.storage_errors("messages.post"):
                    if self.mongodb.transactions_enabled:
                        message = self.mongodb.run_in_transaction(append)
                    else:
                        with self._conversation_lock(conversation_id):
                            message = append(None)
            except DuplicateKeyError:
                previous = self._find_by_idempotency_key(conversation_id, idempotency_key)
                if previous is None:
                    raise ConflictException("Message could not be stored, retry")
                span.set_attribute("message.replayed", True)
                return previous

            span.set_attributes({"message.id": message.id, "message.seq": message.seq})
            logger.info(
                "Message posted",
                extra={
                    "conversation_id": conversation_id,
                    "message_id": message.id,
                    "sender_id": sender_id,
                    "seq": message.seq
                }
            )
            return message

    def list_messages(self, conversation_id: str, viewer_id: str) -> List[Message]:
        """
        Messages in store order; marks the ones addressed to the viewer as read.

        The returned messages show read-state as it was before this call.
        Calling twice changes nothing the second time.
        """
        with tracer.start_as_current_span("messages.list") as span:
            span.set_attributes({"conversation.id": conversation_id, "user.id": viewer_id})

            self.conversations.get_conversation(conversation_id, viewer_id)
            collection = self.mongodb.get_collection(MESSAGES)

            with self.mongodb.storage_errors("messages.find"):
                messages = [
                    Message.from_document(document)
                    for document in collection.find({"conversationId": conversation_id}).sort("seq", ASCENDING)
                ]

            # Only what the viewer was shown; later arrivals stay unread
            unread_ids = [m.id for m in messages if m.sender_id != viewer_id and not m.is_read]
            marked = 0
            if unread_ids:
                with self.mongodb.storage_errors("messages.update_many"):
                    marked = collection.update_many(
                        {"_id": {"$in": unread_ids}, "isRead": False},
                        {"$set": {"isRead": True}}
                    ).modified_count

            span.set_attributes({"messages.count": len(messages), "messages.marked_read": marked})
            if marked:
                logger.debug(
                    "Messages marked as read",
                    extra={
                        "conversation_id": conversation_id,
                        "user_id": viewer_id,
                        "count": marked
                    }
                )
            return messages
