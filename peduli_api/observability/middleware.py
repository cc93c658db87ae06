"""
Observability Middleware

Per-request tracing attributes, request completion logging and the
`X-Trace-Id` response header.
"""

import time
import logging
from flask import Flask, request, g
from opentelemetry import trace
from opentelemetry.instrumentation.flask import FlaskInstrumentor

logger = logging.getLogger(__name__)

# Route parameters copied onto the request span
TRACED_VIEW_ARGS = {
    'conversation_id': 'conversation.id',
    'campaign_id': 'campaign.id',
    'entity_type': 'case.type',
    'entity_id': 'case.id'
}


def _principal_attributes() -> dict:
    user_context = g.get('user_context')
    if user_context is None:
        return {"user.id": "guest"}
    return {"user.id": user_context.user_id, "user.role": user_context.role}


def add_observability_middleware(app: Flask, instrument: bool = True):
    """Instrument the app and log every request with its principal and trace id."""

    if instrument:
        FlaskInstrumentor().instrument_app(app)

    @app.before_request
    def start_request_span():
        g.start_time = time.time()
        g.trace_id = None

        span = trace.get_current_span()
        if not span.is_recording():
            return

        g.trace_id = format(span.get_span_context().trace_id, "032x")
        attributes = {
            "http.method": request.method,
            "http.target": request.path,
            "http.user_agent": request.headers.get("User-Agent", "")
        }
        for arg, attribute in TRACED_VIEW_ARGS.items():
            if request.view_args and arg in request.view_args:
                attributes[attribute] = request.view_args[arg]
        span.set_attributes(attributes)

    @app.after_request
    def finish_request(response):
        duration_ms = round((time.time() - g.get('start_time', time.time())) * 1000, 2)
        principal = _principal_attributes()

        span = trace.get_current_span()
        if span.is_recording():
            span.set_attributes({
                "http.status_code": response.status_code,
                "http.duration_ms": duration_ms,
                **principal
            })

        logger.info(
            "HTTP request completed",
            extra={
                "method": request.method,
                "path": request.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
                "user_id": principal["user.id"],
                "trace_id": g.get('trace_id')
            }
        )

        if g.get('trace_id'):
            response.headers['X-Trace-Id'] = g.trace_id

        return response
