#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Seed a development database with accounts, a listed cat and sample cases,
and print bearer tokens for each account.

Usage:
    python -m peduli_api.scripts.seed_data
"""

import os
from datetime import datetime, timedelta, timezone

import jwt

from ..models.entities import Adoption, Campaign, Cat, Report, User
from ..models.enums import UserRole
from ..domain.context import normalize_phone
from ..services.mongodb import (
    ADOPTIONS, CAMPAIGNS, CATS, CONVERSATIONS, DONATIONS, MESSAGES, REPORTS, USERS,
    close_mongodb_connection, get_mongodb_service
)


def issue_token(user: User, secret: str, algorithm: str = "HS256") -> str:
    """Sign a development token carrying the user's id and role."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user.id,
        "role": user.role,
        "name": user.name,
        "iat": now,
        "exp": now + timedelta(days=7)
    }
    return jwt.encode(payload, secret, algorithm=algorithm)


def setup_seed_data():
    """Reset the case and chat collections and insert sample records."""
    print("Setting up development data...")

    mongo_svc = get_mongodb_service()

    print("Clearing existing data...")
    for collection in (USERS, CATS, REPORTS, ADOPTIONS, CAMPAIGNS, DONATIONS, CONVERSATIONS, MESSAGES):
        mongo_svc.get_collection(collection).delete_many({})

    mongo_svc.create_indexes()

    print("Creating accounts...")
    admin = User(name="Admin Peduli", role=UserRole.ADMIN, phone_number="081100000001")
    shelter = User(
        name="Rumah Kucing Bandung",
        role=UserRole.SHELTER,
        phone_number="081100000002",
        is_shelter_verified=True
    )
    adopter = User(name="Sari", role=UserRole.USER, phone_number="081234567890")
    mongo_svc.get_collection(USERS).insert_many([u.to_document() for u in (admin, shelter, adopter)])

    print("Listing a cat...")
    cat = Cat(name="Oyen", shelter_id=shelter.id, is_approved=True)
    mongo_svc.get_collection(CATS).insert_one(cat.to_document())

    print("Creating sample cases...")
    adoption = Adoption(
        applicant_id=adopter.id,
        cat_id=cat.id,
        full_name="Sari Wulandari",
        phone=adopter.phone_number,
        is_permitted=True,
        is_committed=True
    )
    mongo_svc.get_collection(ADOPTIONS).insert_one(adoption.to_document())

    guest_report = Report(
        reporter_name="Sari",
        reporter_phone="+62 812-3456-7890",
        condition_tags=["injured leg"],
        description="Limping near the market",
        latitude=-6.9175,
        longitude=107.6191
    )
    document = guest_report.to_document()
    document["reporterPhoneNormalized"] = normalize_phone(guest_report.reporter_phone)
    mongo_svc.get_collection(REPORTS).insert_one(document)

    campaign = Campaign(
        shelter_id=shelter.id,
        title="Vaccination drive",
        description="Core vaccines for rescued kittens",
        target_amount=5_000_000,
        deadline=datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(days=30),
        is_approved=True
    )
    mongo_svc.get_collection(CAMPAIGNS).insert_one(campaign.to_document())

    secret = os.getenv('JWT_SECRET', 'peduli-kucing-dev-secret')
    algorithm = os.getenv('JWT_ALGORITHM', 'HS256')

    print("Development data setup complete!")
    print(f"Cat ID: {cat.id}")
    print(f"Adoption ID: {adoption.id}")
    print(f"Guest report ID: {guest_report.id}")
    print(f"Campaign ID: {campaign.id}")
    print("Tokens:")
    for user in (admin, shelter, adopter):
        print(f"  - {user.name} ({user.role}): {issue_token(user, secret, algorithm)}")


if __name__ == "__main__":
    try:
        setup_seed_data()
    finally:
        close_mongodb_connection()
