"""Dependency injection for FastAPI endpoints"""

import logging
from fastapi import BackgroundTasks, Depends, Request
from sqlalchemy.orm import Session

from debit_gateway.domain.exceptions import NotificationError
from debit_gateway.domain.models import Notification
from debit_gateway.infrastructure.clients.notifications import NotificationClient
from debit_gateway.infrastructure.database.repositories import (
    AccountRepository,
    LedgerRepository,
    ObligationRepository,
)
from debit_gateway.infrastructure.database.session import get_db
from debit_gateway.services.direct_debits import DirectDebitService

logger = logging.getLogger(__name__)


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_notification_client() -> NotificationClient:
    """Provide notification webhook client instance"""
    return NotificationClient()


async def _deliver(client: NotificationClient, user_id: str, notification: Notification) -> None:
    try:
        await client.notify(user_id, notification)
    except NotificationError as e:
        logger.warning(f"Notification not delivered: {e}", extra={"user_id": user_id})


class BackgroundNotifier:
    """Defers delivery until the response has been sent"""

    def __init__(self, background_tasks: BackgroundTasks, client: NotificationClient):
        self.background_tasks = background_tasks
        self.client = client

    async def notify(self, user_id: str, notification: Notification) -> None:
        self.background_tasks.add_task(_deliver, self.client, user_id, notification)


def get_direct_debit_service(
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    notification_client: NotificationClient = Depends(get_notification_client),
) -> DirectDebitService:
    """Provide a settlement service bound to the request's database session"""
    return DirectDebitService(
        obligations=ObligationRepository(db),
        accounts=AccountRepository(db),
        ledger=LedgerRepository(db),
        notifier=BackgroundNotifier(background_tasks, notification_client),
    )
