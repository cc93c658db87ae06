# SPDX-License-Identifier: Apache-2.0

"""
Tests for the message store.
"""

import threading
import pytest
from unittest.mock import MagicMock, patch
from pymongo.errors import AutoReconnect

from peduli_api.middleware.error_handler import (
    AuthorizationException,
    NotFoundException,
    ServiceUnavailableException,
    ValidationException
)
from peduli_api.services.messages import MAX_MESSAGE_LENGTH
from peduli_api.services.mongodb import CONVERSATIONS, MESSAGES


class SessionRecorder:
    """Collection stand-in that records the session each call ran in."""

    def __init__(self, collection, calls):
        self._collection = collection
        self._calls = calls

    def __getattr__(self, name):
        attribute = getattr(self._collection, name)
        if not callable(attribute):
            return attribute

        def call(*args, session=None, **kwargs):
            self._calls.append((name, session))
            return attribute(*args, **kwargs)
        return call


@pytest.fixture
def wrapped_messages(mongodb_service):
    """Messages collection behind a mock that delegates to the real one."""
    proxy = MagicMock(wraps=mongodb_service.get_collection(MESSAGES))
    original = mongodb_service.get_collection

    def get_collection(name):
        return proxy if name == MESSAGES else original(name)

    with patch.object(mongodb_service, "get_collection", side_effect=get_collection):
        yield proxy


@pytest.fixture
def conversation(conversation_registry, regular_user, shelter_user):
    return conversation_registry.get_or_create_conversation(regular_user.id, shelter_user.id)


class TestPostMessage:
    """Test appending messages."""

    def test_post_updates_snapshot(self, message_store, mongodb_service, conversation, regular_user):
        message = message_store.post_message(conversation.id, regular_user.id, "  Halo kak  ")

        assert message.content == "Halo kak"
        assert message.seq == 1
        assert message.is_read is False

        stored = mongodb_service.get_collection(CONVERSATIONS).find_one({"_id": conversation.id})
        assert stored["lastMessage"] == "Halo kak"
        assert stored["lastMessageSenderId"] == regular_user.id
        assert stored["lastMessageAt"] == message.created_at
        assert stored["messageSeq"] == 1

    def test_sequence_and_timestamps_non_decreasing(
        self, message_store, conversation, regular_user, shelter_user
    ):
        senders = [regular_user.id, shelter_user.id] * 5
        for index, sender in enumerate(senders):
            message_store.post_message(conversation.id, sender, f"message {index}")

        messages = message_store.list_messages(conversation.id, regular_user.id)

        assert len(messages) == len(senders)
        assert [m.seq for m in messages] == list(range(1, len(senders) + 1))
        assert [m.content for m in messages] == [f"message {i}" for i in range(len(senders))]
        created = [m.created_at for m in messages]
        assert created == sorted(created)

    def test_retry_with_client_id_is_idempotent(
        self, message_store, mongodb_service, conversation, regular_user
    ):
        first = message_store.post_message(conversation.id, regular_user.id, "Halo", client_message_id="c-1")
        retry = message_store.post_message(conversation.id, regular_user.id, "Halo", client_message_id="c-1")

        assert retry.id == first.id
        assert mongodb_service.get_collection(MESSAGES).count_documents({"conversationId": conversation.id}) == 1

    def test_racing_retry_resolves_to_original(
        self, message_store, mongodb_service, conversation, regular_user
    ):
        first = message_store.post_message(conversation.id, regular_user.id, "Halo", client_message_id="c-2")

        # Pre-check misses, the unique index catches the duplicate
        with patch.object(message_store, "_find_by_idempotency_key", side_effect=[None, first]):
            retry = message_store.post_message(conversation.id, regular_user.id, "Halo", client_message_id="c-2")

        assert retry.id == first.id
        assert mongodb_service.get_collection(MESSAGES).count_documents({}) == 1

    def test_without_client_id_every_post_is_new(self, message_store, conversation, regular_user):
        a = message_store.post_message(conversation.id, regular_user.id, "Halo")
        b = message_store.post_message(conversation.id, regular_user.id, "Halo")
        assert a.id != b.id
        assert a.idempotency_key == a.id

    @pytest.mark.parametrize("content", ["", "   ", "x" * (MAX_MESSAGE_LENGTH + 1)])
    def test_invalid_content(self, message_store, conversation, regular_user, content):
        with pytest.raises(ValidationException):
            message_store.post_message(conversation.id, regular_user.id, content)

    def test_non_participant(self, message_store, conversation, other_user):
        with pytest.raises(AuthorizationException):
            message_store.post_message(conversation.id, other_user.id, "Halo")

    def test_missing_conversation(self, message_store, regular_user):
        with pytest.raises(NotFoundException):
            message_store.post_message("0" * 24, regular_user.id, "Halo")

    def test_concurrent_posts_get_distinct_contiguous_seqs(
        self, message_store, mongodb_service, conversation, regular_user, shelter_user
    ):
        senders = [regular_user.id, shelter_user.id] * 2
        per_sender = 10
        start = threading.Barrier(len(senders))
        errors = []

        def post_batch(index, sender):
            start.wait()
            try:
                for n in range(per_sender):
                    message_store.post_message(conversation.id, sender, f"thread {index} message {n}")
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=post_batch, args=(i, s)) for i, s in enumerate(senders)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        total = len(senders) * per_sender
        stored = list(mongodb_service.get_collection(MESSAGES).find({"conversationId": conversation.id}))
        assert sorted(doc["seq"] for doc in stored) == list(range(1, total + 1))

        snapshot = mongodb_service.get_collection(CONVERSATIONS).find_one({"_id": conversation.id})
        assert snapshot["messageSeq"] == total
        assert snapshot["lastMessageSeq"] == total
        last = next(doc for doc in stored if doc["seq"] == total)
        assert snapshot["lastMessage"] == last["content"]

    def test_storage_outage_is_transient(self, message_store, mongodb_service, conversation, regular_user):
        conversations = MagicMock()
        conversations.find_one.return_value = mongodb_service.get_collection(CONVERSATIONS).find_one(
            {"_id": conversation.id}
        )
        conversations.find_one_and_update.side_effect = AutoReconnect("primary stepped down")
        original = mongodb_service.get_collection

        def get_collection(name):
            return conversations if name == CONVERSATIONS else original(name)

        with patch.object(mongodb_service, "get_collection", side_effect=get_collection):
            with pytest.raises(ServiceUnavailableException):
                message_store.post_message(conversation.id, regular_user.id, "Halo")

    def test_failed_insert_leaves_snapshot_untouched(
        self, message_store, mongodb_service, wrapped_messages, conversation, regular_user
    ):
        message_store.post_message(conversation.id, regular_user.id, "Halo")
        wrapped_messages.insert_one.side_effect = AutoReconnect("primary stepped down")

        with pytest.raises(ServiceUnavailableException):
            message_store.post_message(conversation.id, regular_user.id, "never stored")

        snapshot = mongodb_service.get_collection(CONVERSATIONS).find_one({"_id": conversation.id})
        assert snapshot["lastMessage"] == "Halo"
        assert snapshot["lastMessageSeq"] == 1
        assert wrapped_messages.count_documents({"conversationId": conversation.id}) == 1

        # The lost sequence number is skipped, order still holds
        wrapped_messages.insert_one.side_effect = None
        retry = message_store.post_message(conversation.id, regular_user.id, "Halo lagi")
        snapshot = mongodb_service.get_collection(CONVERSATIONS).find_one({"_id": conversation.id})
        assert retry.seq == 3
        assert snapshot["lastMessage"] == "Halo lagi"
        assert snapshot["lastMessageSeq"] == 3

    def test_transactional_path(self, message_store, mongodb_service, conversation, regular_user):
        session = MagicMock()
        session.with_transaction.side_effect = lambda callback: callback(session)
        mongodb_service.transactions_enabled = True
        calls = []
        original = mongodb_service.get_collection

        with patch.object(mongodb_service._client, "start_session", create=True) as start_session, \
                patch.object(mongodb_service, "get_collection",
                             side_effect=lambda name: SessionRecorder(original(name), calls)):
            start_session.return_value.__enter__.return_value = session
            message = message_store.post_message(conversation.id, regular_user.id, "Halo")

        start_session.assert_called_once()
        session.with_transaction.assert_called_once()
        assert callable(session.with_transaction.call_args[0][0])

        writes = [(name, s) for name, s in calls if name in ("find_one_and_update", "insert_one", "update_one")]
        assert [name for name, _ in writes] == ["find_one_and_update", "insert_one", "update_one"]
        assert all(s is session for _, s in writes)

        assert message.seq == 1
        stored = original(CONVERSATIONS).find_one({"_id": conversation.id})
        assert stored["lastMessage"] == "Halo"
        assert original(MESSAGES).count_documents({"_id": message.id}) == 1


class TestListMessages:
    """Test listing and read-state."""

    def test_marks_only_incoming_as_read(
        self, message_store, mongodb_service, conversation, regular_user, shelter_user
    ):
        mine = message_store.post_message(conversation.id, regular_user.id, "Halo")
        theirs = message_store.post_message(conversation.id, shelter_user.id, "Halo juga")

        listed = message_store.list_messages(conversation.id, regular_user.id)
        # Read-state as it was before this call
        assert [m.is_read for m in listed] == [False, False]

        collection = mongodb_service.get_collection(MESSAGES)
        assert collection.find_one({"_id": theirs.id})["isRead"] is True
        assert collection.find_one({"_id": mine.id})["isRead"] is False

    def test_message_arriving_during_listing_stays_unread(
        self, message_store, mongodb_service, wrapped_messages, conversation, regular_user, shelter_user
    ):
        shown = message_store.post_message(conversation.id, shelter_user.id, "Oyen sudah makan")
        late = []

        def post_then_mark(*args, **kwargs):
            # The shelter writes after the viewer's read but before the mark
            late.append(message_store.post_message(conversation.id, shelter_user.id, "Besok jadi datang?"))
            return mongodb_service.database[MESSAGES].update_many(*args, **kwargs)

        wrapped_messages.update_many.side_effect = post_then_mark
        listed = message_store.list_messages(conversation.id, regular_user.id)

        assert [m.id for m in listed] == [shown.id]
        assert wrapped_messages.find_one({"_id": shown.id})["isRead"] is True
        assert wrapped_messages.find_one({"_id": late[0].id})["isRead"] is False

        summary = message_store.conversations.list_conversations(regular_user.id)[0]
        assert summary.unread_count == 1

    def test_nothing_to_mark_skips_write(
        self, message_store, wrapped_messages, conversation, regular_user
    ):
        message_store.post_message(conversation.id, regular_user.id, "Halo")

        message_store.list_messages(conversation.id, regular_user.id)

        wrapped_messages.update_many.assert_not_called()

    def test_second_listing_changes_nothing(
        self, message_store, mongodb_service, conversation, regular_user, shelter_user
    ):
        message_store.post_message(conversation.id, shelter_user.id, "Halo")
        message_store.list_messages(conversation.id, regular_user.id)
        before = list(mongodb_service.get_collection(MESSAGES).find({}))

        again = message_store.list_messages(conversation.id, regular_user.id)

        assert list(mongodb_service.get_collection(MESSAGES).find({})) == before
        assert again[0].is_read is True

    def test_non_participant(self, message_store, conversation, other_user):
        with pytest.raises(AuthorizationException):
            message_store.list_messages(conversation.id, other_user.id)

    def test_empty_conversation(self, message_store, conversation, regular_user):
        assert message_store.list_messages(conversation.id, regular_user.id) == []
