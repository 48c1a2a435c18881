"""
Donation client
Talks to the donation API on behalf of the front end and drives the hosted
payment widget: a confirmed payment becomes a stored donation, a dismissed or
failed checkout becomes a short-lived status message.
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Dict, List, Optional

import httpx

import config
from reports import leaderboard
from schemas import DonationRecord

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE_SECONDS = 3.0
DISMISS_MESSAGE_SECONDS = 3.0
ERROR_MESSAGE_SECONDS = 5.0


class DonationClientError(Exception):
    """Raised when the donation API is unreachable or reports a failure."""

    pass


class PaymentWidgetError(Exception):
    """Raised by a payment widget that failed to load or crashed."""

    pass


class DonationApiClient:
    """HTTP client for the donation API."""

    def __init__(self, base_url: Optional[str] = None, http_client: Optional[httpx.Client] = None):
        """
        Args:
            base_url: API root, e.g. ``http://localhost:3001/api``
            http_client: Preconfigured client (tests pass a TestClient here)
        """
        self.base_url = (base_url or config.DONATION_API_URL).rstrip("/")
        self.http = http_client or httpx.Client(timeout=10.0)

    def close(self):
        self.http.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def _request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = self.http.request(method, url, json=json)
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Request to {url} failed: {e}")
            raise DonationClientError(f"Request to {url} failed") from e

        if isinstance(data, dict) and data.get("success") is False:
            raise DonationClientError(data.get("error") or f"HTTP {response.status_code}")
        if response.status_code >= 400:
            raise DonationClientError(f"HTTP {response.status_code}")
        return data

    def list_donations(self) -> List[DonationRecord]:
        data = self._request("GET", "/donations")
        donations = [DonationRecord(**item) for item in data.get("donations", [])]
        logger.info(f"Loaded {len(donations)} donations from API")
        return donations

    def add_donation(self, record: DonationRecord) -> str:
        data = self._request("POST", "/donations", json=record.model_dump(by_alias=True))
        return data.get("message", "")

    def health(self) -> Dict[str, Any]:
        return self._request("GET", "/health")


@dataclass
class DonationForm:
    name: str = ""
    amount: str = ""
    email: str = ""

    def parsed_amount(self) -> Optional[float]:
        try:
            return float(self.amount)
        except (TypeError, ValueError):
            return None

    def is_valid(self) -> bool:
        amount = self.parsed_amount()
        return bool(self.name) and amount is not None and amount > 0


@dataclass
class CheckoutOrder:
    amount: int  # minor currency units
    currency: str
    name: str
    email: str
    notes: Dict[str, str] = field(default_factory=dict)


@dataclass
class PaymentOutcome:
    payment_id: Optional[str] = None

    @property
    def confirmed(self) -> bool:
        return bool(self.payment_id)

    @classmethod
    def dismissed(cls) -> "PaymentOutcome":
        return cls()


class PaymentWidget(ABC):
    """Hosted checkout: yields a confirmation token or a dismissal."""

    @abstractmethod
    def checkout(self, order: CheckoutOrder) -> PaymentOutcome:
        ...


@dataclass
class PaymentStatus:
    kind: str = "idle"  # idle | loading | success | error
    message: str = ""
    expires_at: Optional[float] = None

    @classmethod
    def transient(cls, kind: str, message: str, seconds: float, now: float) -> "PaymentStatus":
        return cls(kind=kind, message=message, expires_at=now + seconds)

    def current(self, now: float) -> "PaymentStatus":
        """The status as displayed at ``now``; expired messages clear to idle."""
        if self.expires_at is not None and now >= self.expires_at:
            return PaymentStatus()
        return self


def next_donation_id(donations: List[DonationRecord]) -> int:
    if not donations:
        return 1
    return max(d.id for d in donations) + 1


def build_donation(form: DonationForm, payment_id: str, donations: List[DonationRecord],
                   today: Optional[date] = None) -> DonationRecord:
    today = today or date.today()
    return DonationRecord(
        id=next_donation_id(donations),
        name=form.name,
        amount=form.parsed_amount() or 0,
        date=today.isoformat(),
        location=config.DEFAULT_LOCATION,
        payment_id=payment_id,
        email=form.email,
    )


class DonationFlow:
    """Form submission through checkout to the stored donation."""

    def __init__(self, api: DonationApiClient, widget: PaymentWidget,
                 clock: Callable[[], float] = time.monotonic):
        self.api = api
        self.widget = widget
        self.clock = clock
        self.donations: List[DonationRecord] = []
        self.status = PaymentStatus()

    def refresh(self) -> List[DonationRecord]:
        try:
            self.donations = self.api.list_donations()
        except DonationClientError as e:
            logger.error(f"Error loading donations: {e}")
        return self.donations

    def leaderboard(self) -> List[DonationRecord]:
        return leaderboard(self.donations)

    def total_raised(self) -> float:
        return sum(d.amount for d in self.donations)

    def donor_count(self) -> int:
        return len(self.donations)

    def current_status(self) -> PaymentStatus:
        self.status = self.status.current(self.clock())
        return self.status

    def submit(self, form: DonationForm) -> PaymentStatus:
        if not form.is_valid():
            self.status = PaymentStatus(kind="error",
                                        message="Please fill in all required fields with valid amounts.")
            return self.status

        self.status = PaymentStatus(kind="loading", message="Processing payment...")
        order = CheckoutOrder(
            amount=round(form.parsed_amount() * 100),
            currency=config.DONATION_CURRENCY,
            name=form.name,
            email=form.email,
            notes={"name": form.name, "email": form.email},
        )

        try:
            outcome = self.widget.checkout(order)
        except PaymentWidgetError as e:
            logger.error(f"Payment error: {e}")
            self.status = PaymentStatus.transient(
                "error", f"Payment error: {e}", ERROR_MESSAGE_SECONDS, self.clock())
            return self.status

        if not outcome.confirmed:
            logger.info("Payment modal dismissed")
            self.status = PaymentStatus.transient(
                "error", "Payment cancelled by user.", DISMISS_MESSAGE_SECONDS, self.clock())
            return self.status

        donation = build_donation(form, outcome.payment_id, self.donations)
        try:
            self.api.add_donation(donation)
        except DonationClientError as e:
            # Payment went through; the record is not retried
            logger.error(f"Error saving donation {outcome.payment_id}: {e}")
        else:
            self.refresh()

        self.status = PaymentStatus.transient(
            "success", "Payment successful! Thank you for your donation.",
            SUCCESS_MESSAGE_SECONDS, self.clock())
        return self.status
