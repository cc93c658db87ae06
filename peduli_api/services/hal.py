# SPDX-License-Identifier: Apache-2.0

"""
HAL link and RFC 7807 problem formatting.

Single resources returned by the API carry `_links` to the actions available
from them; errors are rendered as problem documents with help links.
"""

from typing import Any, Dict, List, Optional
from ..models.responses import HalLink

PROBLEM_BASE_URI = "https://api.pedulikucing.id/problems"


class HalLinkBuilder:
    """Builder for HAL links."""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip('/')

    def build_link(
        self,
        path: str,
        method: Optional[str] = None,
        content_type: Optional[str] = None,
        title: Optional[str] = None
    ) -> HalLink:
        """Build a HAL link for a path relative to the API base URL."""
        return HalLink(
            href=f"{self.base_url}{path}",
            method=method,
            type=content_type,
            title=title
        )

    def build_self_link(self, resource_path: str) -> HalLink:
        """Build self link for a resource."""
        return self.build_link(resource_path)


class HalResponseBuilder:
    """Builds resource and error documents."""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip('/')
        self.link_builder = HalLinkBuilder(base_url)

    def _links_to_dict(self, links: Dict[str, HalLink]) -> Dict[str, Dict[str, Any]]:
        return {rel: link.model_dump(exclude_none=True) for rel, link in links.items()}

    def build_conversation_links(self, conversation_id: str) -> Dict[str, HalLink]:
        """Links from a conversation to its messages and shared context."""
        base = f"/api/chat/conversations/{conversation_id}"
        return {
            'self': self.link_builder.build_self_link(base),
            'messages': self.link_builder.build_link(f"{base}/messages", title="Messages"),
            'post-message': self.link_builder.build_link(
                f"{base}/messages", method="POST", content_type="application/json",
                title="Send message"
            ),
            'context': self.link_builder.build_link(f"{base}/context", title="Shared cases")
        }

    def build_case_links(
        self,
        case_type: str,
        case_id: str,
        allowed_statuses: List[str]
    ) -> Dict[str, HalLink]:
        """Links from a case; a status action only when a transition exists."""
        base = f"/api/cases/{case_type}/{case_id}"
        links = {'self': self.link_builder.build_self_link(base)}
        if allowed_statuses:
            links['update-status'] = self.link_builder.build_link(
                f"{base}/status", method="PATCH", content_type="application/json",
                title=f"Move to {' | '.join(allowed_statuses)}"
            )
        return links

    def build_resource_response(
        self,
        data: Dict[str, Any],
        links: Dict[str, HalLink]
    ) -> Dict[str, Any]:
        """Attach `_links` to a resource body."""
        response = dict(data)
        response['_links'] = self._links_to_dict(links)
        return response

    def build_error_response(
        self,
        error_type: str,
        title: str,
        status: int,
        detail: str,
        instance: str,
        validation_errors: Optional[List[Dict[str, Any]]] = None
    ) -> Dict[str, Any]:
        """Build RFC 7807 compliant error response with HAL links."""
        error_response = {
            'type': f"{PROBLEM_BASE_URI}/{error_type}",
            'title': title,
            'status': status,
            'detail': detail,
            'instance': instance
        }

        if validation_errors:
            error_response['errors'] = validation_errors

        links = {
            'help': self.link_builder.build_link(
                f"/docs/errors#{error_type}",
                title="Error documentation"
            )
        }

        if error_type == "validation-error":
            links['schema'] = self.link_builder.build_link(
                "/openapi/openapi.json",
                title="API schema"
            )
        elif error_type == "resource-not-found":
            links['conversations'] = self.link_builder.build_link(
                "/api/chat/conversations",
                title="Refresh conversations"
            )

        error_response['_links'] = self._links_to_dict(links)
        return error_response


class HalFormatter:
    """High-level HAL formatter with convenience methods."""

    def __init__(self, base_url: str):
        self.builder = HalResponseBuilder(base_url)

    def format_conversation(self, conversation: Dict[str, Any]) -> Dict[str, Any]:
        """Format a conversation with HAL links."""
        return self.builder.build_resource_response(
            conversation,
            self.builder.build_conversation_links(conversation['conversationId'])
        )

    def format_message(self, conversation_id: str, message: Dict[str, Any]) -> Dict[str, Any]:
        """Format a posted message with a link back to its conversation."""
        links = self.builder.build_conversation_links(conversation_id)
        return self.builder.build_resource_response(
            message,
            {'conversation': links['self'], 'messages': links['messages']}
        )

    def format_case(
        self,
        case_type: str,
        case: Dict[str, Any],
        allowed_statuses: List[str]
    ) -> Dict[str, Any]:
        """Format a case resource with its status affordance."""
        return self.builder.build_resource_response(
            case,
            self.builder.build_case_links(case_type, case['id'], allowed_statuses)
        )

    def format_validation_error(
        self,
        detail: str,
        instance: str,
        validation_errors: Optional[List[Dict[str, Any]]] = None
    ) -> Dict[str, Any]:
        """Format a validation error response."""
        return self.builder.build_error_response(
            "validation-error", "Validation Error", 400, detail, instance, validation_errors
        )

    def format_authentication_error(self, detail: str, instance: str) -> Dict[str, Any]:
        """Format an authentication error response."""
        return self.builder.build_error_response(
            "authentication-required", "Authentication Required", 401, detail, instance
        )

    def format_authorization_error(self, detail: str, instance: str) -> Dict[str, Any]:
        """Format an authorization error response."""
        return self.builder.build_error_response(
            "insufficient-permissions", "Insufficient Permissions", 403, detail, instance
        )

    def format_not_found_error(self, detail: str, instance: str) -> Dict[str, Any]:
        """Format a not found error response."""
        return self.builder.build_error_response(
            "resource-not-found", "Resource Not Found", 404, detail, instance
        )

    def format_conflict_error(self, detail: str, instance: str) -> Dict[str, Any]:
        """Format a conflict error response."""
        return self.builder.build_error_response(
            "resource-conflict", "Resource Conflict", 409, detail, instance
        )

    def format_rate_limit_error(self, detail: str, instance: str) -> Dict[str, Any]:
        """Format a rate limit error response."""
        return self.builder.build_error_response(
            "rate-limit-exceeded", "Rate Limit Exceeded", 429, detail, instance
        )

    def format_unavailable_error(self, detail: str, instance: str) -> Dict[str, Any]:
        """Format a transient storage failure; the client may retry."""
        return self.builder.build_error_response(
            "service-unavailable", "Service Unavailable", 503, detail, instance
        )

    def format_server_error(self, detail: str, instance: str) -> Dict[str, Any]:
        """Format a server error response."""
        return self.builder.build_error_response(
            "internal-server-error", "Internal Server Error", 500, detail, instance
        )


def create_hal_formatter(base_url: str) -> HalFormatter:
    """Create a HAL formatter instance."""
    return HalFormatter(base_url)
