"""MTN MoMo collection API client.

Implements the PaymentGateway port with two calls of the collection
product: ``requesttopay`` to ask a payer for money under a reference id
we generate, and a GET on the same resource to learn the outcome.  A
bearer token is fetched per call with the collection user's API key.
"""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation

import httpx

from storefront.domain.exceptions import PaymentGatewayError, ValidationError
from storefront.domain.model.payment import PaymentState, normalize_msisdn
from storefront.domain.model.value_objects import Money
from storefront.domain.port.payment_gateway import GatewayStatus, PaymentGateway
from storefront.infrastructure.config import Settings

logger = logging.getLogger(__name__)


class MomoCollectionGateway(PaymentGateway):

    def __init__(self, settings: Settings, client: httpx.Client | None = None) -> None:
        self._settings = settings
        self._client = client or httpx.Client(
            base_url=settings.momo_base_url, timeout=settings.http_timeout
        )
        if not settings.momo_subscription_key:
            logger.warning("MOMO_SUBSCRIPTION_KEY not set")

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> MomoCollectionGateway:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # --- PaymentGateway interface ---------------------------------------------

    def request_to_pay(
        self,
        reference_id: str,
        amount: Money,
        payer_phone: str,
        external_id: str,
    ) -> None:
        headers = {
            **self._auth_headers(),
            "X-Reference-Id": reference_id,
            "X-Target-Environment": self._settings.momo_target_env,
            "Content-Type": "application/json",
        }
        body = {
            "amount": amount.to_wire(),
            "currency": amount.currency,
            "externalId": external_id or reference_id,
            "payer": {
                "partyIdType": "MSISDN",
                "partyId": normalize_msisdn(payer_phone),
            },
            "payerMessage": self._settings.momo_payer_message,
            "payeeNote": self._settings.momo_payee_note,
        }
        self._send("POST", "/collection/v1_0/requesttopay", headers=headers, json=body)
        logger.debug("requesttopay accepted for %s", reference_id)

    def get_status(self, reference_id: str) -> GatewayStatus:
        headers = {
            **self._auth_headers(),
            "X-Target-Environment": self._settings.momo_target_env,
        }
        data = self._json(
            self._send("GET", f"/collection/v1_0/requesttopay/{reference_id}", headers=headers)
        )
        return self._to_status(reference_id, data)

    # --- Helpers --------------------------------------------------------------

    def _auth_headers(self) -> dict[str, str]:
        response = self._send(
            "POST",
            "/collection/token/",
            headers={"Ocp-Apim-Subscription-Key": self._settings.momo_subscription_key or ""},
            auth=(
                self._settings.momo_collection_user or "",
                self._settings.momo_collection_key or "",
            ),
        )
        token = self._json(response).get("access_token")
        if not token:
            raise PaymentGatewayError("MoMo token response had no access_token")
        return {
            "Ocp-Apim-Subscription-Key": self._settings.momo_subscription_key or "",
            "Authorization": f"Bearer {token}",
        }

    def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = self._client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            logger.error("MoMo %s %s failed with HTTP %s: %s", method, url, status, exc.response.text)
            raise PaymentGatewayError(
                f"MoMo {method} {url} returned HTTP {status}",
                retryable=status >= 500 or status == 429,
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("MoMo %s %s failed: %s", method, url, exc)
            raise PaymentGatewayError(f"MoMo {method} {url} failed: {exc}") from exc
        return response

    @staticmethod
    def _json(response: httpx.Response) -> dict:
        try:
            data = response.json()
        except ValueError as exc:
            logger.error("MoMo %s returned a body that is not JSON: %.200s", response.url, response.text)
            raise PaymentGatewayError(
                f"MoMo {response.url.path} returned an unreadable body", retryable=False
            ) from exc
        if not isinstance(data, dict):
            raise PaymentGatewayError(
                f"MoMo {response.url.path} returned {type(data).__name__}, expected an object",
                retryable=False,
            )
        return data

    @staticmethod
    def _to_status(reference_id: str, data: dict) -> GatewayStatus:
        try:
            state = PaymentState.parse(data.get("status", ""))
        except ValidationError as exc:
            raise PaymentGatewayError(str(exc), retryable=False) from exc

        amount = None
        if data.get("amount") is not None:
            try:
                amount = Money(Decimal(str(data["amount"])), data.get("currency") or "USD")
            except (InvalidOperation, ValidationError) as exc:
                raise PaymentGatewayError(
                    f"MoMo reported an unreadable amount {data['amount']!r}", retryable=False
                ) from exc

        return GatewayStatus(
            reference_id=reference_id,
            state=state,
            amount=amount,
            reason=str(data["reason"]) if data.get("reason") else None,
        )
