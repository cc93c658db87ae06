# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Pytest configuration and fixtures.

Storage-backed tests run against an in-memory mongomock client with
transactions disabled.
"""

import os
import pytest
import jwt
import mongomock
from datetime import datetime, timedelta, timezone

# Set test environment
os.environ['ENVIRONMENT'] = 'test'
os.environ['OTEL_ENABLED'] = 'false'
os.environ['MONGODB_DATABASE'] = 'peduli_kucing_test'

from peduli_api.app import create_app
from peduli_api.models.entities import Cat, User, UserContext
from peduli_api.models.enums import UserRole
from peduli_api.services.case_store import CaseStore
from peduli_api.services.context import ContextCorrelator
from peduli_api.services.conversations import ConversationRegistry
from peduli_api.services.messages import MessageStore
from peduli_api.services.mongodb import CATS, USERS, MongoDBService

TEST_JWT_SECRET = "test-secret-key-for-unit-tests"
TEST_BASE_URL = "http://localhost:5000"


@pytest.fixture
def mongo_client():
    """In-memory MongoDB client."""
    return mongomock.MongoClient()


@pytest.fixture
def mongodb_service(mongo_client):
    """MongoDB service over mongomock with all indexes in place."""
    service = MongoDBService(
        "mongodb://localhost:27017/peduli_kucing_test",
        "peduli_kucing_test",
        client=mongo_client,
        transactions_enabled=False
    )
    service.create_indexes()
    return service


@pytest.fixture
def case_store(mongodb_service):
    return CaseStore(mongodb_service, report_daily_limit=3)


@pytest.fixture
def conversation_registry(mongodb_service, case_store):
    return ConversationRegistry(mongodb_service, case_store)


@pytest.fixture
def message_store(mongodb_service, conversation_registry):
    return MessageStore(mongodb_service, conversation_registry)


@pytest.fixture
def context_correlator(conversation_registry, case_store):
    return ContextCorrelator(conversation_registry, case_store)


@pytest.fixture
def app(mongodb_service):
    """Application wired to the in-memory store."""
    app = create_app(
        {
            'ENVIRONMENT': 'test',
            'OTEL_ENABLED': False,
            'JWT_SECRET': TEST_JWT_SECRET,
            'BASE_URL': TEST_BASE_URL
        },
        mongodb_service=mongodb_service
    )
    app.config['TESTING'] = True
    return app


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture
def make_user(mongodb_service):
    """Insert a user and return it."""
    def _make_user(name="Test User", role=UserRole.USER, phone_number=None, **kwargs):
        user = User(name=name, role=role, phone_number=phone_number, **kwargs)
        mongodb_service.get_collection(USERS).insert_one(user.to_document())
        return user
    return _make_user


@pytest.fixture
def make_cat(mongodb_service):
    """Insert a cat owned by a shelter and return it."""
    def _make_cat(shelter, name="Oyen", is_approved=True, **kwargs):
        cat = Cat(name=name, shelter_id=shelter.id, is_approved=is_approved, **kwargs)
        mongodb_service.get_collection(CATS).insert_one(cat.to_document())
        return cat
    return _make_cat


@pytest.fixture
def admin_user(make_user):
    return make_user(name="Admin Peduli", role=UserRole.ADMIN, phone_number="081100000001")


@pytest.fixture
def shelter_user(make_user):
    return make_user(
        name="Rumah Kucing", role=UserRole.SHELTER, phone_number="081100000002", is_shelter_verified=True
    )


@pytest.fixture
def regular_user(make_user):
    return make_user(name="Sari", role=UserRole.USER, phone_number="081234567890")


@pytest.fixture
def other_user(make_user):
    return make_user(name="Budi", role=UserRole.USER, phone_number="081298765432")


def make_token(user_id: str, role: str, secret: str = TEST_JWT_SECRET, expires_in: int = 3600, **claims) -> str:
    """Sign a test token."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "role": role,
        "iat": now,
        "exp": now + timedelta(seconds=expires_in)
    }
    payload.update(claims)
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture
def auth_headers():
    """Authorization headers for a stored user."""
    def _auth_headers(user: User) -> dict:
        return {"Authorization": f"Bearer {make_token(user.id, user.role)}"}
    return _auth_headers


@pytest.fixture
def context_for():
    """Verified principal for a stored user."""
    def _context_for(user: User) -> UserContext:
        return UserContext(user_id=user.id, role=user.role, name=user.name)
    return _context_for


@pytest.fixture
def token_for():
    """Token factory; extra keyword arguments become claims."""
    return make_token
