"""
Peduli Kucing API - Flask Application Entry Point

This module builds the Flask application with OpenAPI 3.0 support,
configures middleware, and wires the case and chat services for the
stray cat rescue, adoption and donation platform.
"""

import os
import logging
from typing import Any, Mapping, Optional
from flask import jsonify
from flask_openapi3 import OpenAPI, Info, Tag

from .observability.config import setup_observability
from .observability.middleware import add_observability_middleware
from .middleware.error_handler import ErrorHandlerMiddleware, register_custom_error_handlers
from .middleware.auth import AuthMiddleware
from .services.auth import AuthService
from .services.case_store import CaseStore, DEFAULT_REPORT_DAILY_LIMIT
from .services.context import ContextCorrelator
from .services.conversations import ConversationRegistry
from .services.hal import create_hal_formatter
from .services.health import HealthCheckService
from .services.messages import MessageStore
from .services.mongodb import MongoDBService

logger = logging.getLogger(__name__)

# OpenAPI info
info = Info(
    title="Peduli Kucing API",
    version="1.0.0",
    description="Stray cat rescue reports, adoptions, donations and case-linked chat"
)

# API tags for documentation grouping
tags = [
    Tag(name="Chat", description="Conversations, messages and shared case context"),
    Tag(name="Cases", description="Reports, adoptions, campaigns and donations"),
    Tag(name="Health", description="System health and status")
]


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == 'true'


def load_config(overrides: Optional[Mapping[str, Any]] = None) -> dict:
    """Read configuration from the environment, then apply overrides."""
    config = {
        'ENVIRONMENT': os.getenv('ENVIRONMENT', 'development'),

        # Database configuration
        'MONGODB_URI': os.getenv('MONGODB_URI', 'mongodb://localhost:27017/peduli_kucing_dev'),
        'MONGODB_DATABASE': os.getenv('MONGODB_DATABASE', 'peduli_kucing_dev'),
        'MONGODB_TRANSACTIONS': _env_flag('MONGODB_TRANSACTIONS', 'true'),

        # Security configuration
        'JWT_SECRET': os.getenv('JWT_SECRET', ''),
        'JWT_ALGORITHM': os.getenv('JWT_ALGORITHM', 'HS256'),

        # Business rules
        'REPORT_DAILY_LIMIT': int(os.getenv('REPORT_DAILY_LIMIT', str(DEFAULT_REPORT_DAILY_LIMIT))),

        # Feature flags
        'OTEL_ENABLED': _env_flag('OTEL_ENABLED', 'true'),
        'SERVICE_VERSION': os.getenv('SERVICE_VERSION', '1.0.0'),

        # API configuration
        'BASE_URL': os.getenv('BASE_URL', 'http://localhost:5000')
    }
    if overrides:
        config.update(overrides)
    config['DEBUG'] = config['ENVIRONMENT'] == 'development'
    return config


def create_app(config: Optional[Mapping[str, Any]] = None, mongodb_service: Optional[MongoDBService] = None) -> OpenAPI:
    """
    Build the Flask application.

    Args:
        config: Configuration overrides applied on top of the environment
        mongodb_service: Storage service to use instead of connecting via MONGODB_URI

    Returns:
        Configured OpenAPI (Flask) application
    """
    settings = load_config(config)

    # Initialize observability first
    setup_observability(
        environment=settings['ENVIRONMENT'],
        otel_enabled=settings['OTEL_ENABLED'],
        service_version=settings['SERVICE_VERSION']
    )

    app = OpenAPI(__name__, info=info)
    app.config.update(settings)

    add_observability_middleware(app, instrument=settings['OTEL_ENABLED'])

    # Initialize services
    if mongodb_service is None:
        mongodb_service = MongoDBService(
            settings['MONGODB_URI'],
            settings['MONGODB_DATABASE'],
            transactions_enabled=settings['MONGODB_TRANSACTIONS']
        )
    # Uniqueness of conversations and message retries rests on these
    mongodb_service.create_indexes()
    auth_service = AuthService(settings['JWT_SECRET'] or None, settings['JWT_ALGORITHM'])
    case_store = CaseStore(mongodb_service, report_daily_limit=settings['REPORT_DAILY_LIMIT'])
    conversation_registry = ConversationRegistry(mongodb_service, case_store)
    message_store = MessageStore(mongodb_service, conversation_registry)
    context_correlator = ContextCorrelator(conversation_registry, case_store)
    health_service = HealthCheckService(mongodb_service, settings['SERVICE_VERSION'])

    # Initialize middleware
    hal_formatter = create_hal_formatter(settings['BASE_URL'])
    ErrorHandlerMiddleware(app, hal_formatter)
    register_custom_error_handlers(app, hal_formatter)

    # Make services available to routes
    app.mongodb_service = mongodb_service
    app.auth_service = auth_service
    app.auth_middleware = AuthMiddleware(auth_service)
    app.hal_formatter = hal_formatter
    app.case_store = case_store
    app.conversation_registry = conversation_registry
    app.message_store = message_store
    app.context_correlator = context_correlator
    app.health_service = health_service

    # Register routes
    from .routes.chat import chat_bp
    from .routes.cases import cases_bp

    app.register_api(chat_bp)
    app.register_api(cases_bp)

    @app.get('/api/healthz', tags=[tags[2]])
    def health_check():
        """Health check with storage dependency status."""
        health_data = health_service.get_health()
        status_code = 200 if health_data["status"] == "healthy" else 503

        health_response = hal_formatter.builder.build_resource_response(
            health_data,
            {'self': hal_formatter.builder.link_builder.build_self_link('/api/healthz')}
        )
        return jsonify(health_response), status_code

    logger.info(
        "Application created",
        extra={
            "environment": settings['ENVIRONMENT'],
            "transactions": mongodb_service.transactions_enabled,
            "base_url": settings['BASE_URL']
        }
    )
    return app


if __name__ == '__main__':
    # Development server
    application = create_app()
    application.run(
        host='0.0.0.0',
        port=int(os.getenv('PORT', 5000)),
        debug=application.config['DEBUG']
    )
