"""HTTP client for the payment ledger service."""

import logging
from typing import Optional

import httpx

from lifeline_core.clients.base import BaseServiceClient
from lifeline_core.exceptions import InsufficientFunds
from lifeline_core.interfaces import IPaymentLedger

logger = logging.getLogger(__name__)


class PaymentLedgerClient(BaseServiceClient, IPaymentLedger):
    """Debits prepaid balances held by the ledger service.

    Balance storage and top-ups belong to the ledger; this client only asks
    for a debit and reports whether it went through.
    """

    def __init__(
        self,
        base_url: str = "http://lifeline-ledger-service:8000",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(base_url=base_url, timeout=timeout, transport=transport)

    async def debit(self, actor_id: str, amount: int, reason: str) -> str:
        """Debit an account.

        Returns:
            Ledger transaction ID

        Raises:
            InsufficientFunds: If the ledger answers 402
            httpx.HTTPStatusError: On any other error response
        """
        async with self._get_client() as client:
            response = await client.post(
                f"{self.base_url}/api/v1/accounts/{actor_id}/debits",
                json={"amount": amount, "reason": reason},
                headers=self._headers(user_id=actor_id),
            )

        if response.status_code == httpx.codes.PAYMENT_REQUIRED:
            body = response.json() if response.content else {}
            logger.info(f"Debit of {amount} refused for {actor_id}: insufficient funds")
            raise InsufficientFunds(
                f"Insufficient balance for a {reason} ({amount} required)",
                context={"actor_id": actor_id, "amount": amount, "balance": body.get("balance")},
            )

        response.raise_for_status()
        return response.json()["transaction_id"]
