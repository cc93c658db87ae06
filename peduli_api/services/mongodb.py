# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
MongoDB service layer with connection pooling, transactions and index management.
"""

import os
import logging
from contextlib import contextmanager
from typing import Dict, Optional, Any, Callable, TypeVar
from pymongo import MongoClient, ASCENDING, DESCENDING
from pymongo.client_session import ClientSession
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import (
    AutoReconnect,
    ConnectionFailure,
    NetworkTimeout,
    ServerSelectionTimeoutError
)
from bson import ObjectId

from ..middleware.error_handler import ServiceUnavailableException

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Failures a client may recover from by retrying later
TRANSIENT_ERRORS = (
    ConnectionFailure,
    ServerSelectionTimeoutError,
    AutoReconnect,
    NetworkTimeout
)

USERS = "users"
CATS = "cats"
REPORTS = "reports"
ADOPTIONS = "adoptions"
CAMPAIGNS = "campaigns"
DONATIONS = "donations"
CONVERSATIONS = "conversations"
MESSAGES = "messages"


def is_valid_object_id(doc_id: Any) -> bool:
    """Whether `doc_id` is a 24-hex ObjectId string."""
    return isinstance(doc_id, str) and ObjectId.is_valid(doc_id) and len(doc_id) == 24


class MongoDBService:
    """MongoDB service with connection pooling and optional multi-document transactions."""

    def __init__(
        self,
        connection_string: str = None,
        database_name: str = None,
        client: Optional[MongoClient] = None,
        transactions_enabled: Optional[bool] = None
    ):
        """
        Initialize MongoDB service with connection pooling.

        Args:
            connection_string: MongoDB URI (defaults to MONGODB_URI)
            database_name: Database name (defaults to MONGODB_DATABASE)
            client: Pre-built client, used instead of connecting lazily
            transactions_enabled: Use multi-document transactions
                (defaults to MONGODB_TRANSACTIONS)
        """
        self.connection_string = connection_string or os.getenv(
            'MONGODB_URI',
            'mongodb://localhost:27017/peduli_kucing_dev'
        )
        self.database_name = database_name or os.getenv('MONGODB_DATABASE', 'peduli_kucing_dev')
        self._client: Optional[MongoClient] = client
        self._database: Optional[Database] = None

        if transactions_enabled is None:
            transactions_enabled = os.getenv('MONGODB_TRANSACTIONS', 'true').lower() == 'true'
        self.transactions_enabled = transactions_enabled

        # Connection pool settings
        self.max_pool_size = int(os.getenv('MONGODB_MAX_POOL_SIZE', '10'))
        self.min_pool_size = int(os.getenv('MONGODB_MIN_POOL_SIZE', '1'))
        self.max_idle_time_ms = int(os.getenv('MONGODB_MAX_IDLE_TIME_MS', '30000'))
        self.server_selection_timeout_ms = int(os.getenv('MONGODB_SERVER_SELECTION_TIMEOUT_MS', '5000'))

        logger.info(f"MongoDB service initialized for database: {self.database_name}")
        if not self.transactions_enabled:
            logger.warning(
                "MongoDB transactions disabled; multi-document writes fall back to in-process locking",
                extra={"database": self.database_name}
            )

    @property
    def client(self) -> MongoClient:
        """Get MongoDB client with connection pooling."""
        if self._client is None:
            try:
                self._client = MongoClient(
                    self.connection_string,
                    maxPoolSize=self.max_pool_size,
                    minPoolSize=self.min_pool_size,
                    maxIdleTimeMS=self.max_idle_time_ms,
                    serverSelectionTimeoutMS=self.server_selection_timeout_ms,
                    retryWrites=True,
                    retryReads=True
                )
                # Test connection
                self._client.admin.command('ping')
                logger.info("MongoDB connection established successfully")
            except TRANSIENT_ERRORS as e:
                self._client = None
                logger.error(f"Failed to connect to MongoDB: {e}")
                raise ServiceUnavailableException("Storage is temporarily unavailable") from e

        return self._client

    @property
    def database(self) -> Database:
        """Get MongoDB database."""
        if self._database is None:
            self._database = self.client[self.database_name]
        return self._database

    def get_collection(self, collection_name: str) -> Collection:
        """Get MongoDB collection."""
        return self.database[collection_name]

    def close_connection(self) -> None:
        """Close MongoDB connection."""
        if self._client:
            self._client.close()
            self._client = None
            self._database = None
            logger.info("MongoDB connection closed")

    def health_check(self) -> Dict[str, Any]:
        """Check MongoDB connection health."""
        try:
            result = self.client.admin.command('ping')

            return {
                'status': 'healthy',
                'ping': result.get('ok') == 1,
                'database': self.database_name,
                'transactions': self.transactions_enabled,
                'connection_pool_size': self.max_pool_size
            }
        except Exception as e:
            logger.error(f"MongoDB health check failed: {e}")
            return {
                'status': 'unhealthy',
                'error': str(e),
                'database': self.database_name
            }

    @contextmanager
    def storage_errors(self, operation: str):
        """
        Translate transient driver failures into ServiceUnavailableException.

        Args:
            operation: Operation name for logging
        """
        try:
            yield
        except TRANSIENT_ERRORS as e:
            logger.error(
                f"Storage unavailable during {operation}",
                extra={"operation": operation, "error": str(e)}
            )
            raise ServiceUnavailableException("Storage is temporarily unavailable, please retry") from e

    def run_in_transaction(self, callback: Callable[[Optional[ClientSession]], T]) -> T:
        """
        Run `callback` inside a multi-document transaction.

        With transactions enabled the callback receives a session and is
        retried by the driver on transient transaction errors. Otherwise it
        receives None and its writes apply individually.

        Args:
            callback: Function taking the session (or None)

        Returns:
            The callback's return value
        """
        if not self.transactions_enabled:
            return callback(None)

        with self.client.start_session() as session:
            return session.with_transaction(callback)

    # Index Management

    def create_indexes(self) -> None:
        """Create uniqueness and performance indexes for all collections."""
        try:
            logger.info("Creating MongoDB indexes...")

            users = self.get_collection(USERS)
            users.create_index("role")
            users.create_index("phoneNumber")

            cats = self.get_collection(CATS)
            cats.create_index("shelterId")

            reports = self.get_collection(REPORTS)
            reports.create_index([("reporterId", ASCENDING), ("createdAt", DESCENDING)])
            reports.create_index([("reporterPhoneNormalized", ASCENDING), ("createdAt", DESCENDING)])
            reports.create_index([("status", ASCENDING), ("createdAt", DESCENDING)])

            adoptions = self.get_collection(ADOPTIONS)
            adoptions.create_index([("applicantId", ASCENDING), ("createdAt", DESCENDING)])
            adoptions.create_index([("catId", ASCENDING), ("status", ASCENDING)])

            campaigns = self.get_collection(CAMPAIGNS)
            campaigns.create_index([("shelterId", ASCENDING), ("createdAt", DESCENDING)])

            donations = self.get_collection(DONATIONS)
            donations.create_index([("campaignId", ASCENDING), ("createdAt", DESCENDING)])
            donations.create_index([("donorId", ASCENDING), ("createdAt", DESCENDING)])

            # At most one conversation per unordered participant pair
            conversations = self.get_collection(CONVERSATIONS)
            conversations.create_index("pairKey", unique=True)
            conversations.create_index([("participantIds", ASCENDING), ("updatedAt", DESCENDING)])

            messages = self.get_collection(MESSAGES)
            messages.create_index([("conversationId", ASCENDING), ("seq", ASCENDING)])
            messages.create_index(
                [("conversationId", ASCENDING), ("idempotencyKey", ASCENDING)],
                unique=True
            )
            messages.create_index([("conversationId", ASCENDING), ("senderId", ASCENDING), ("isRead", ASCENDING)])

            logger.info("MongoDB indexes created successfully")

        except Exception as e:
            logger.error(f"Failed to create MongoDB indexes: {e}")
            raise


# Singleton instance for application use
_mongodb_service: Optional[MongoDBService] = None


def get_mongodb_service() -> MongoDBService:
    """Get singleton MongoDB service instance."""
    global _mongodb_service
    if _mongodb_service is None:
        _mongodb_service = MongoDBService()
    return _mongodb_service


def close_mongodb_connection() -> None:
    """Close MongoDB connection (for cleanup)."""
    global _mongodb_service
    if _mongodb_service:
        _mongodb_service.close_connection()
        _mongodb_service = None
