"""
Payment Notifier

Turns payment state changes into push notifications for tenants and owners.
"""

import logging

from rentpay.domains.payments.application.ports import INotificationSender, IPropertyDirectory
from rentpay.domains.payments.domain.entities import PaymentRecord

logger = logging.getLogger(__name__)


class PaymentNotifier:
    """
    Best-effort notifications. A failed lookup or send is logged and never
    propagates into the payment flow.
    """

    def __init__(self, sender: INotificationSender, property_directory: IPropertyDirectory):
        self._sender = sender
        self._directory = property_directory

    async def collection_succeeded(self, record: PaymentRecord) -> None:
        data = {"type": "payment_success", "payment_id": str(record.id), "transaction_id": record.transaction_id}
        await self._notify(
            record.tenant_id,
            "Payment Successful",
            f"Your rent payment of KES {record.amount:,.2f} for {record.property_name} was received. "
            f"Receipt: {record.transaction_id}",
            data,
        )
        await self._notify(
            record.owner_id,
            "Payment Received",
            f"{record.tenant_name} paid KES {record.amount:,.2f} for {record.property_name}",
            {**data, "type": "payment_received"},
        )

    async def disbursement_settled(self, record: PaymentRecord, succeeded: bool) -> None:
        if succeeded:
            title = "Disbursement Completed"
            body = f"KES {record.disbursement_amount:,.2f} for {record.property_name} was sent to your paybill"
        else:
            title = "Disbursement Failed"
            body = f"Sending KES {record.disbursement_amount:,.2f} for {record.property_name} failed and is queued for retry"
        await self._notify(
            record.owner_id,
            title,
            body,
            {"type": "disbursement", "payment_id": str(record.id), "status": record.disbursement_status.value},
        )

    async def _notify(self, user_id: str, title: str, body: str, data: dict[str, str]) -> None:
        try:
            token = await self._directory.get_user_push_token(user_id)
            if not token:
                logger.debug(f"[NOTIFY] No push token for user {user_id}, skipping '{title}'")
                return
            await self._sender.send(token, title, body, data)
        except Exception as e:
            logger.warning(f"[NOTIFY] '{title}' for user {user_id} not sent: {e}")
