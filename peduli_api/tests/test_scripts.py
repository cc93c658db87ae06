# SPDX-License-Identifier: Apache-2.0

"""
Tests for the operational scripts.
"""

from peduli_api.models.entities import User
from peduli_api.scripts.create_indexes import unique_indexes
from peduli_api.scripts.seed_data import issue_token
from peduli_api.services.auth import AuthService
from peduli_api.services.mongodb import CONVERSATIONS, MESSAGES, USERS


def test_seed_tokens_are_accepted():
    user = User(name="Rumah Kucing", role="SHELTER")

    payload = AuthService("seed-secret", "HS256").validate_token(issue_token(user, "seed-secret"))

    assert payload["sub"] == user.id
    assert payload["role"] == "SHELTER"
    assert payload["name"] == "Rumah Kucing"


def test_unique_indexes_listed(mongodb_service):
    assert len(unique_indexes(mongodb_service, CONVERSATIONS)) == 1
    assert len(unique_indexes(mongodb_service, MESSAGES)) == 1
    assert unique_indexes(mongodb_service, USERS) == []
