from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Optional

import httpx

from ..config import settings
from ..domain.errors import PaymentGatewayError

SUCCESS_CODE = "201"


@dataclass(frozen=True)
class CheckoutSession:
    payment_token: str
    payment_url: Optional[str]
    raw: dict[str, Any]


@dataclass(frozen=True)
class TransactionStatus:
    status: str
    amount: Optional[float]
    raw: dict[str, Any]


class PaymentGatewayClient:
    """Mobile-money aggregator (Orange, MTN, Moov, Wave through one checkout)."""

    def __init__(self, transport: Optional[httpx.BaseTransport] = None) -> None:
        self.url = settings.payment_base_url or ""
        self.check_url = settings.payment_check_url or ""
        self.api_key = settings.payment_api_key
        self.site_id = settings.payment_site_id
        self.transport = transport

    def enabled(self) -> bool:
        return bool(self.api_key and self.site_id)

    def create_checkout(
        self,
        *,
        transaction_id: str,
        amount: float,
        mois_paiement: date,
        phone: Optional[str],
    ) -> CheckoutSession:
        payload = {
            "apikey": self.api_key,
            "site_id": self.site_id,
            "transaction_id": transaction_id,
            "amount": amount,
            "currency": settings.currency,
            "channels": "ALL",
            "description": f"Paiement loyer - {mois_paiement.isoformat()}",
            "return_url": f"{settings.app_domain}/payment/success",
            "notify_url": f"{settings.app_domain}/api/payments/webhook",
            "customer_phone_number": phone,
        }

        try:
            with httpx.Client(timeout=30.0, transport=self.transport) as client:
                r = client.post(self.url, json=payload)
                data = r.json()
        except (httpx.HTTPError, ValueError) as e:
            raise PaymentGatewayError(f"aggregator call failed: {e}") from e

        if str(data.get("code")) != SUCCESS_CODE:
            raise PaymentGatewayError(f"Erreur agrégateur: {data.get('message')}")

        body = data.get("data") or {}
        token = body.get("payment_token")
        if not token:
            raise PaymentGatewayError("aggregator response missing payment_token")
        return CheckoutSession(payment_token=str(token), payment_url=body.get("payment_url"), raw=data)

    def check_transaction(self, payment_token: str) -> TransactionStatus:
        """Ask the aggregator for the current status of a checkout token."""
        if not self.check_url:
            raise PaymentGatewayError("aggregator check url is not configured")
        payload = {"apikey": self.api_key, "site_id": self.site_id, "token": payment_token}

        try:
            with httpx.Client(timeout=30.0, transport=self.transport) as client:
                r = client.post(self.check_url, json=payload)
                data = r.json()
        except (httpx.HTTPError, ValueError) as e:
            raise PaymentGatewayError(f"aggregator check failed: {e}") from e

        body = data.get("data") or {}
        status = str(body.get("status") or "").strip().upper()
        if not status:
            raise PaymentGatewayError(f"Erreur agrégateur: {data.get('message')}")
        amount = body.get("amount")
        return TransactionStatus(
            status=status,
            amount=float(amount) if amount is not None else None,
            raw=data,
        )
