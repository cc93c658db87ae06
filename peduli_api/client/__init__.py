# SPDX-License-Identifier: Apache-2.0

"""
Client-side access to the chat and case API.
"""

from .sync import CaseClientError, ChatSyncClient, ConversationPoller, StaleViewError

__all__ = [
    'CaseClientError',
    'ChatSyncClient',
    'ConversationPoller',
    'StaleViewError'
]
