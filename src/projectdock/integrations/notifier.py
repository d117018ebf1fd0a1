"""Notification delivery for lifecycle events.

The engines hand notifications to a Notifier after their transaction has
committed. Delivery is best effort: every failure is logged and swallowed,
and nothing is retried by the caller.
"""

from __future__ import annotations

import hashlib
import hmac
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol
from uuid import UUID

import httpx

from projectdock.config import NotifierConfig
from projectdock.logging import get_logger

logger = get_logger(__name__)


class NotificationType(str, Enum):
    """Kinds of user notifications."""

    PROJECT_ASSIGNED = "project_assigned"
    PROJECT_ACCEPTED = "project_accepted"
    PROJECT_UPDATED = "project_updated"
    PROJECT_COMPLETED = "project_completed"
    PROGRAMMER_LEFT = "programmer_left"
    PHASE_COMPLETED = "phase_completed"


class Notifier(Protocol):
    """Delivers one notification to one user."""

    async def notify(
        self,
        user_id: str,
        type: NotificationType,
        title: str,
        message: str,
        project_id: UUID | None = None,
    ) -> None: ...


@dataclass
class Notification:
    """Payload posted to the notification webhook."""

    user_id: str
    type: NotificationType
    title: str
    message: str
    project_id: UUID | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serialisable dictionary."""
        return {
            "user_id": self.user_id,
            "type": self.type.value,
            "title": self.title,
            "message": self.message,
            "project_id": str(self.project_id) if self.project_id else None,
            "created_at": self.created_at.isoformat(),
        }


class WebhookNotifier:
    """Notifier posting JSON payloads to a configured webhook.

    With no webhook URL configured the notification is only logged, which
    is the development default.
    """

    def __init__(self, config: NotifierConfig) -> None:
        self.config = config
        self.logger = logger.bind(component="webhook_notifier")
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.config.timeout_seconds)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def _headers(self, body: str) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.config.secret:
            headers["X-Projectdock-Signature"] = hmac.new(
                self.config.secret.encode(),
                body.encode(),
                hashlib.sha256,
            ).hexdigest()
        return headers

    async def notify(
        self,
        user_id: str,
        type: NotificationType,
        title: str,
        message: str,
        project_id: UUID | None = None,
    ) -> None:
        """Deliver a notification; never raises."""
        notification = Notification(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            project_id=project_id,
        )

        if not self.config.enabled:
            self.logger.debug("notifier_disabled", type=type.value, user_id=user_id)
            return

        if self.config.webhook_url is None:
            self.logger.info(
                "notification_logged",
                type=type.value,
                user_id=user_id,
                project_id=str(project_id) if project_id else None,
                title=title,
            )
            return

        body = json.dumps(notification.to_dict())
        try:
            client = await self._get_client()
            response = await client.post(
                self.config.webhook_url,
                content=body,
                headers=self._headers(body),
            )
        except httpx.HTTPError as exc:
            self.logger.error(
                "notification_delivery_error",
                type=type.value,
                user_id=user_id,
                error=str(exc),
            )
            return

        if response.is_success:
            self.logger.info(
                "notification_delivered",
                type=type.value,
                user_id=user_id,
                status_code=response.status_code,
            )
        else:
            self.logger.warning(
                "notification_delivery_failed",
                type=type.value,
                user_id=user_id,
                status_code=response.status_code,
                response_text=response.text[:200],
            )
