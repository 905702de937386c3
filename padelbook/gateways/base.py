from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Mapping, Optional

PAYMENT_SUCCESS = "payment.success"


@dataclass
class CheckoutRequest:
    amount: Decimal
    currency: str
    reservation_id: str
    success_url: str
    cancel_url: str
    customer_email: Optional[str] = None
    customer_name: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)


@dataclass
class GatewaySession:
    checkout_url: str
    session_id: Optional[str] = None
    raw: dict = field(default_factory=dict, repr=False)


@dataclass
class WebhookEvent:
    type: str
    reservation_id: Optional[str] = None
    data: dict = field(default_factory=dict, repr=False)

    @property
    def is_payment_success(self) -> bool:
        return self.type == PAYMENT_SUCCESS


class PaymentGateway(ABC):
    name = ""
    signature_header = ""

    @abstractmethod
    def create_session(self, request: CheckoutRequest) -> GatewaySession:
        """Mint a hosted checkout page; raise GatewayError when the provider refuses."""

    @abstractmethod
    def parse_webhook(self, body: bytes, headers: Mapping[str, str]) -> WebhookEvent:
        """Authenticate and decode a callback.

        Raises AuthError for a bad signature and ValidationError for an
        unreadable payload.
        """
