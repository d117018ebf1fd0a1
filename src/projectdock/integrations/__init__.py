"""Integration modules for external collaborators."""

from __future__ import annotations

from projectdock.integrations.analysis import AnalysisSource, DatabaseAnalysisSource
from projectdock.integrations.auth import AuthenticationError, TokenActorResolver
from projectdock.integrations.file_store import FileStore, LocalFileStore
from projectdock.integrations.notifier import (
    Notification,
    NotificationType,
    Notifier,
    WebhookNotifier,
)

__all__ = [
    "AnalysisSource",
    "DatabaseAnalysisSource",
    "AuthenticationError",
    "TokenActorResolver",
    "FileStore",
    "LocalFileStore",
    "Notification",
    "NotificationType",
    "Notifier",
    "WebhookNotifier",
]
