"""
Acceptance test fixtures.

The application runs against an in-memory mongomock database; tokens are
signed with the same shared secret the app verifies with.
"""

import os
import pytest
import jwt
import mongomock
from datetime import datetime, timedelta, timezone

os.environ['ENVIRONMENT'] = 'test'
os.environ['OTEL_ENABLED'] = 'false'

from peduli_api.app import create_app
from peduli_api.models.entities import Cat, User
from peduli_api.models.enums import UserRole
from peduli_api.services.mongodb import CATS, USERS, MongoDBService

ACCEPTANCE_JWT_SECRET = "acceptance-secret"


@pytest.fixture
def test_app():
    mongodb_service = MongoDBService(
        "mongodb://localhost:27017/peduli_kucing_acceptance",
        "peduli_kucing_acceptance",
        client=mongomock.MongoClient(),
        transactions_enabled=False
    )
    mongodb_service.create_indexes()
    return create_app(
        {
            'ENVIRONMENT': 'test',
            'OTEL_ENABLED': False,
            'JWT_SECRET': ACCEPTANCE_JWT_SECRET,
            'BASE_URL': 'https://api.pedulikucing.test'
        },
        mongodb_service=mongodb_service
    )


@pytest.fixture
def test_client(test_app):
    return test_app.test_client()


@pytest.fixture
def test_db(test_app):
    return test_app.mongodb_service.database


@pytest.fixture
def create_user(test_db):
    def _create_user(name, role=UserRole.USER, phone_number=None):
        user = User(name=name, role=role, phone_number=phone_number)
        test_db[USERS].insert_one(user.to_document())
        return user
    return _create_user


@pytest.fixture
def create_cat(test_db):
    def _create_cat(shelter, name):
        cat = Cat(name=name, shelter_id=shelter.id, is_approved=True)
        test_db[CATS].insert_one(cat.to_document())
        return cat
    return _create_cat


@pytest.fixture
def headers_for():
    """Bearer headers for a stored user."""
    def _headers_for(user):
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {"sub": user.id, "role": user.role, "name": user.name, "iat": now, "exp": now + timedelta(hours=1)},
            ACCEPTANCE_JWT_SECRET,
            algorithm="HS256"
        )
        return {"Authorization": f"Bearer {token}"}
    return _headers_for
