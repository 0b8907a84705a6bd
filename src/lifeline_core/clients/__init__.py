"""HTTP clients for Lifeline collaborator services"""

from lifeline_core.clients.access_client import AccessServiceClient
from lifeline_core.clients.base import BaseServiceClient
from lifeline_core.clients.ledger_client import PaymentLedgerClient
from lifeline_core.clients.notification_client import NotificationServiceClient

__all__ = [
    "BaseServiceClient",
    "AccessServiceClient",
    "PaymentLedgerClient",
    "NotificationServiceClient",
]
