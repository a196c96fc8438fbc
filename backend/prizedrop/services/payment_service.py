import httpx
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from prizedrop.config import settings
from prizedrop.errors import PaymentGatewayError

logger = logging.getLogger(__name__)

MAX_NOTE_LENGTH = 50
DUPLICATE_KEY_ERROR = "duplicate_idempotency_key"
PAID_CHARGE_STATUSES = ("paid", "succeeded")


@dataclass
class ChargeResult:
    checkout_reference: Optional[str]
    charge_id: Optional[str] = None


@dataclass
class ChargeStatus:
    charge_id: str
    status: str
    amount: int = 0

    @property
    def paid(self) -> bool:
        return self.status in PAID_CHARGE_STATUSES


@dataclass
class LedgerAccount:
    id: str
    transfer_fee: int = 0


@dataclass
class TransferResult:
    transferred: bool
    replayed: bool = False


def truncate_note(note: str) -> str:
    return note if len(note) <= MAX_NOTE_LENGTH else note[: MAX_NOTE_LENGTH - 1]


class PaymentService:
    """Adapter over the payment provider's HTTP API.

    Calls never retry at the application level; retries happen only for
    connection failures inside the httpx transport. Every failure raises
    PaymentGatewayError so the orchestrator decides what to do next.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = None,
        currency: str = "usd",
        timeout: float = 30.0,
        retries: int = 2,
        redirect_url: str = None,
        transport: httpx.AsyncBaseTransport = None,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self.api_key = api_key
        self.currency = currency
        self.timeout = timeout
        self.retries = retries
        self.redirect_url = redirect_url
        self.transport = transport

    @classmethod
    def from_settings(cls) -> "PaymentService":
        return cls(
            base_url=settings.PAYMENT_GATEWAY_URL,
            api_key=settings.PAYMENT_API_KEY,
            currency=settings.CURRENCY,
            timeout=settings.PAYMENT_TIMEOUT_SECONDS,
            retries=settings.PAYMENT_TRANSPORT_RETRIES,
            redirect_url=settings.DEPOSIT_REDIRECT_URL,
        )

    def _client(self) -> httpx.AsyncClient:
        transport = self.transport or httpx.AsyncHTTPTransport(retries=self.retries)
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        return httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=transport, headers=headers
        )

    async def _request(self, method: str, path: str, operation: str, **kwargs) -> httpx.Response:
        try:
            async with self._client() as client:
                return await client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"Network error during {operation}: {e}")
            raise PaymentGatewayError(f"Network error during {operation}: {e}") from e

    @staticmethod
    def _json(response: httpx.Response, operation: str) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            raise PaymentGatewayError(
                f"Invalid {operation} response (HTTP {response.status_code}): {response.text[:100]}"
            )
        if not isinstance(data, dict):
            raise PaymentGatewayError(f"Invalid {operation} response: expected an object")
        return data

    def _raise_for_error(self, response: httpx.Response, operation: str) -> None:
        if response.status_code == 401:
            raise PaymentGatewayError(f"{operation} rejected: API key is invalid or expired (HTTP 401)")
        if response.status_code >= 400:
            raise PaymentGatewayError(f"{operation} failed (HTTP {response.status_code}): {response.text[:100]}")

    async def charge(
        self, user_id: str, amount: int, idempotency_key: str, metadata: Dict[str, str] = None, description: str = None
    ) -> ChargeResult:
        """Create a pending charge; funds move when the provider confirms checkout"""
        payload = {
            "userId": user_id,
            "amount": amount,
            "currency": self.currency,
            "idempotencyKey": idempotency_key,
            "description": description or f"Giveaway deposit - ${amount / 100:.2f}",
            "metadata": metadata or {},
        }
        if self.redirect_url:
            payload["redirectUrl"] = self.redirect_url

        response = await self._request("POST", "/charges", "charge", json=payload)
        self._raise_for_error(response, "charge")
        data = self._json(response, "charge")
        if data.get("error"):
            raise PaymentGatewayError(f"charge failed: {data['error']}")

        return ChargeResult(checkout_reference=data.get("checkoutUrl"), charge_id=data.get("chargeId"))

    async def get_charge(self, charge_id: str) -> ChargeStatus:
        """Current status and captured amount of a charge"""
        response = await self._request("GET", f"/charges/{charge_id}", "charge lookup")
        self._raise_for_error(response, "charge lookup")
        data = self._json(response, "charge lookup")
        if not data.get("status"):
            raise PaymentGatewayError(f"Invalid charge lookup response for {charge_id}: missing status")
        return ChargeStatus(charge_id=charge_id, status=str(data["status"]).lower(), amount=int(data.get("amount") or 0))

    async def get_ledger_account(self, company_id: str) -> LedgerAccount:
        response = await self._request("GET", f"/companies/{company_id}/ledger-account", "ledger lookup")
        self._raise_for_error(response, "ledger lookup")
        data = self._json(response, "ledger lookup")
        if not data.get("id"):
            raise PaymentGatewayError(f"Company {company_id} has no ledger account")
        return LedgerAccount(id=data["id"], transfer_fee=int(data.get("transferFee") or 0))

    async def transfer(
        self,
        from_ledger_ref: str,
        to_user_id: str,
        amount: int,
        idempotency_key: str,
        fee: int = 0,
        notes: str = "",
    ) -> TransferResult:
        """Move funds out of a ledger account.

        The same idempotency_key must be sent on every retry of one payout;
        the provider answers a replayed key with 409 duplicate_idempotency_key,
        which means the original transfer already went through.
        """
        payload = {
            "ledgerAccountId": from_ledger_ref,
            "destinationId": to_user_id,
            "amount": amount,
            "currency": self.currency,
            "transferFee": fee,
            "idempotencyKey": idempotency_key,
            "notes": truncate_note(notes),
        }
        response = await self._request("POST", "/transfers", "transfer", json=payload)

        if response.status_code == 409:
            data = self._json(response, "transfer")
            if data.get("error") == DUPLICATE_KEY_ERROR:
                logger.info(f"Transfer {idempotency_key} was already applied by the gateway")
                return TransferResult(transferred=True, replayed=True)

        self._raise_for_error(response, "transfer")
        data = self._json(response, "transfer")
        return TransferResult(transferred=bool(data.get("transferred")))

    async def get_balance(self, account_ref: str) -> int:
        response = await self._request("GET", f"/ledger-accounts/{account_ref}/balance", "balance")
        self._raise_for_error(response, "balance")
        data = self._json(response, "balance")

        caches = data.get("balanceCaches")
        if isinstance(caches, list):
            return sum(int(cache.get("balance") or 0) for cache in caches if cache)
        return int(data.get("balance") or 0)
