"""
Health Check Service

Reports the health of the service and its storage dependency.
"""

import os
import time
from typing import Dict, Any
from opentelemetry import trace

from ..models.base import utcnow
from .mongodb import MongoDBService

tracer = trace.get_tracer(__name__)


class HealthCheckService:
    """Service for system health monitoring."""

    def __init__(self, mongodb_service: MongoDBService, service_version: str = "1.0.0"):
        self.mongodb_service = mongodb_service
        self.service_version = service_version

    def get_health(self) -> Dict[str, Any]:
        """Get health status including the MongoDB dependency."""
        with tracer.start_as_current_span("health.check") as span:
            start_time = time.time()

            mongodb_health = self._check_mongodb_health()
            overall_status = "healthy" if mongodb_health["status"] == "healthy" else "unhealthy"

            response_time_ms = round((time.time() - start_time) * 1000, 2)

            span.set_attributes({
                "health.overall_status": overall_status,
                "health.response_time_ms": response_time_ms,
                "health.mongodb_status": mongodb_health["status"]
            })

            return {
                "status": overall_status,
                "service": "peduli-kucing-api",
                "version": self.service_version,
                "environment": os.getenv('ENVIRONMENT', 'development'),
                "timestamp": utcnow().isoformat(),
                "response_time_ms": response_time_ms,
                "dependencies": {
                    "mongodb": mongodb_health
                }
            }

    def _check_mongodb_health(self) -> Dict[str, Any]:
        """Check MongoDB connectivity."""
        with tracer.start_as_current_span("health.mongodb_check") as span:
            start_time = time.time()
            health_info = self.mongodb_service.health_check()
            health_info["response_time_ms"] = round((time.time() - start_time) * 1000, 2)

            span.set_attribute("mongodb.status", health_info["status"])
            return health_info
