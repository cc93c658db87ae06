# SPDX-License-Identifier: Apache-2.0

"""
HTTP client for the chat and case endpoints, plus a cancellable poller that
keeps a conversation view converged with the server.
"""

import logging
import threading
from typing import Any, Callable, Dict, List, Optional

import requests
from opentelemetry import trace

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DEFAULT_POLL_INTERVAL = 3.0
DEFAULT_TIMEOUT = 10.0


class CaseClientError(Exception):
    """Error response from the API."""

    def __init__(self, message: str, status_code: Optional[int] = None, retryable: bool = False,
                 problem: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.retryable = retryable
        self.problem = problem or {}


class StaleViewError(CaseClientError):
    """The viewed resource no longer exists (404)."""


class ChatSyncClient:
    """Thin wrapper over the HTTP contract; every call fetches fresh state."""

    def __init__(self, base_url: str, token: str, session: Optional[requests.Session] = None,
                 timeout: float = DEFAULT_TIMEOUT):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            'Authorization': f'Bearer {token}',
            'Accept': 'application/json'
        })

    def _request(self, method: str, path: str, json_body: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.base_url}{path}"

        with tracer.start_as_current_span(
            "client.request",
            attributes={"http.method": method, "http.url": url}
        ) as span:
            try:
                response = self.session.request(method, url, json=json_body, timeout=self.timeout)
            except requests.RequestException as e:
                span.set_attribute("client.error", type(e).__name__)
                raise CaseClientError(f"Request to {path} failed: {e}", retryable=True) from e

            span.set_attribute("http.status_code", response.status_code)
            if response.status_code >= 400:
                raise self._error_from_response(response)

            return response.json() if response.content else None

    @staticmethod
    def _error_from_response(response: requests.Response) -> CaseClientError:
        try:
            problem = response.json()
        except ValueError:
            problem = {}

        status = response.status_code
        detail = problem.get('detail') or response.reason or f"HTTP {status}"

        if status == 404:
            return StaleViewError(detail, status_code=status, problem=problem)
        retryable = status in (429, 503) or status >= 500
        return CaseClientError(detail, status_code=status, retryable=retryable, problem=problem)

    # Chat

    def start_conversation(self, other_user_id: Optional[str] = None,
                           report_id: Optional[str] = None) -> Dict[str, Any]:
        body = {}
        if other_user_id:
            body['otherUserId'] = other_user_id
        if report_id:
            body['reportId'] = report_id
        return self._request('POST', '/api/chat/conversations', body)

    def list_conversations(self) -> List[Dict[str, Any]]:
        return self._request('GET', '/api/chat/conversations')

    def post_message(self, conversation_id: str, content: str,
                     client_message_id: Optional[str] = None) -> Dict[str, Any]:
        body = {'content': content}
        if client_message_id:
            body['clientMessageId'] = client_message_id
        return self._request('POST', f'/api/chat/conversations/{conversation_id}/messages', body)

    def list_messages(self, conversation_id: str) -> List[Dict[str, Any]]:
        return self._request('GET', f'/api/chat/conversations/{conversation_id}/messages')

    def get_context(self, conversation_id: str) -> List[Dict[str, Any]]:
        return self._request('GET', f'/api/chat/conversations/{conversation_id}/context')

    # Cases

    def update_status(self, entity_type: str, entity_id: str, new_status: str) -> Dict[str, Any]:
        return self._request(
            'PATCH', f'/api/cases/{entity_type}/{entity_id}/status', {'newStatus': new_status}
        )


class ConversationPoller:
    """
    Calls `fetch` every `interval` seconds on a daemon thread and hands the
    result to `callback`.

    Use as a context manager so polling stops with the view:

        with ConversationPoller(lambda: client.list_messages(cid), render):
            ...
    """

    def __init__(self, fetch: Callable[[], Any], callback: Callable[[Any], None],
                 interval: float = DEFAULT_POLL_INTERVAL, name: str = "conversation-poller"):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.fetch = fetch
        self.callback = callback
        self.interval = interval
        self.name = name
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.stopped_reason: Optional[str] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> "ConversationPoller":
        if self.running:
            return self
        self._stop.clear()
        self.stopped_reason = None
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        return self

    def cancel(self, timeout: Optional[float] = None) -> None:
        """Stop polling; waits for the current poll to finish."""
        self._stop.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)

    def poll_once(self) -> bool:
        """Run one fetch/callback cycle; returns False when polling should stop."""
        try:
            result = self.fetch()
        except StaleViewError as e:
            logger.info("Stopping poller, view is stale", extra={"poller": self.name, "detail": e.message})
            self.stopped_reason = "stale"
            return False
        except CaseClientError as e:
            logger.warning(
                "Poll failed",
                extra={"poller": self.name, "status_code": e.status_code, "retryable": e.retryable}
            )
            return True

        try:
            self.callback(result)
        except Exception as e:
            logger.error(f"Poll callback failed: {e}", exc_info=True, extra={"poller": self.name})
        return True

    def _run(self) -> None:
        while not self._stop.is_set():
            if not self.poll_once():
                break
            self._stop.wait(self.interval)
        if self.stopped_reason is None:
            self.stopped_reason = "cancelled"

    def __enter__(self) -> "ConversationPoller":
        return self.start()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.cancel()
