#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Create the MongoDB indexes the API relies on.

The unique indexes on conversation pair keys and message idempotency keys
back conversation deduplication and retried message posts; run this before
serving traffic.

Usage:
    python -m peduli_api.scripts.create_indexes
"""

import sys
import logging

from ..services.mongodb import CONVERSATIONS, MESSAGES, get_mongodb_service, close_mongodb_connection

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def unique_indexes(mongodb_service, collection_name):
    """Names of the unique indexes present on a collection."""
    info = mongodb_service.get_collection(collection_name).index_information()
    return sorted(name for name, spec in info.items() if spec.get('unique'))


def main():
    mongodb_service = get_mongodb_service()
    try:
        health = mongodb_service.health_check()
        if health['status'] != 'healthy':
            logger.error(f"MongoDB is not healthy: {health}")
            sys.exit(1)

        logger.info(f"Creating indexes in database {health['database']}")
        mongodb_service.create_indexes()

        for collection_name in (CONVERSATIONS, MESSAGES):
            logger.info(
                f"Unique indexes on {collection_name}: "
                f"{', '.join(unique_indexes(mongodb_service, collection_name)) or 'none'}"
            )

        if not mongodb_service.transactions_enabled:
            logger.warning("MONGODB_TRANSACTIONS is off; message posts rely on in-process locking")

    except Exception as e:
        logger.error(f"Failed to create indexes: {e}")
        sys.exit(1)
    finally:
        close_mongodb_connection()


if __name__ == "__main__":
    main()
