# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request validation helpers using Pydantic models.
Provides request body parsing and error formatting.
"""

from flask import request
from typing import Type, Dict, Any, List, TypeVar
from pydantic import BaseModel, ValidationError
from opentelemetry import trace
import logging

from .error_handler import ValidationException

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def format_validation_errors(validation_error: ValidationError) -> List[Dict[str, Any]]:
    """
    Format Pydantic validation errors for API response.

    Args:
        validation_error: Pydantic ValidationError

    Returns:
        List of formatted error dictionaries
    """
    errors = []

    for error in validation_error.errors():
        field_path = ".".join(str(loc) for loc in error["loc"]) or "body"
        errors.append({
            "field": field_path,
            "message": error["msg"],
            "type": error["type"]
        })

    return errors


def build_model(model_class: Type[ModelT], data: Dict[str, Any]) -> ModelT:
    """
    Validate a mapping against a model.

    Raises:
        ValidationException: With per-field errors if validation fails
    """
    try:
        return model_class.model_validate(data)
    except ValidationError as e:
        validation_errors = format_validation_errors(e)
        logger.warning(
            "Model validation failed",
            extra={
                "model": model_class.__name__,
                "errors": validation_errors
            }
        )
        raise ValidationException(
            f"Validation failed for {model_class.__name__}",
            validation_errors
        )


def parse_json_body(model_class: Type[ModelT]) -> ModelT:
    """
    Parse the current request's JSON body into `model_class`.

    Args:
        model_class: Pydantic model class for validation

    Returns:
        Validated model instance

    Raises:
        ValidationException: If the body is missing, not JSON, or invalid
    """
    with tracer.start_as_current_span("validation.parse_json_body") as span:
        span.set_attributes({
            "validation.model": model_class.__name__,
            "http.method": request.method,
            "http.path": request.path
        })

        if not request.is_json:
            span.set_attribute("validation.result", "invalid_content_type")
            raise ValidationException(
                "Request must have Content-Type: application/json",
                [{
                    "field": "content-type",
                    "message": "Expected application/json",
                    "type": "content_type_error"
                }]
            )

        json_data = request.get_json(silent=True)
        if not isinstance(json_data, dict):
            span.set_attribute("validation.result", "invalid_json")
            raise ValidationException(
                "Invalid JSON in request body",
                [{
                    "field": "body",
                    "message": "Expected a JSON object",
                    "type": "json_error"
                }]
            )

        try:
            validated = build_model(model_class, json_data)
        except ValidationException:
            span.set_attribute("validation.result", "validation_error")
            raise

        span.set_attribute("validation.result", "success")
        return validated
