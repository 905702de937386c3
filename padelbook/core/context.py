import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from padelbook.core.config import Settings
from padelbook.gateways.base import PaymentGateway
from padelbook.gateways.lomi import LomiGateway
from padelbook.gateways.stripe_gateway import StripeGateway
from padelbook.repositories.court_repository import CourtRepository
from padelbook.repositories.payment_repository import PaymentRepository
from padelbook.repositories.reservation_repository import ReservationRepository
from padelbook.repositories.session_repository import SessionRepository
from padelbook.repositories.user_repository import UserRepository
from padelbook.services.auth_service import AuthService, SessionContext
from padelbook.services.checkout_service import CheckoutService
from padelbook.services.court_service import CourtService
from padelbook.services.payment_service import PaymentService
from padelbook.services.reporting_service import ReportingService
from padelbook.services.reservation_service import ReservationService

logger = logging.getLogger(__name__)


def build_gateway(settings: Settings, client: Optional[httpx.Client] = None) -> PaymentGateway:
    if settings.payment_provider == "stripe":
        return StripeGateway(settings)
    if settings.payment_provider == "lomi":
        return LomiGateway(settings, client)
    raise ValueError(f"Unknown payment provider: {settings.payment_provider!r}")


@dataclass
class AppContext:
    """Everything a request handler needs, wired once at server start."""

    settings: Settings
    gateway: PaymentGateway
    auth_service: AuthService
    court_service: CourtService
    reservation_service: ReservationService
    checkout_service: CheckoutService
    payment_service: PaymentService
    reporting_service: ReportingService

    @classmethod
    def build(cls, settings: Settings) -> "AppContext":
        court_repo = CourtRepository(settings)
        reservation_repo = ReservationRepository(settings)
        payment_repo = PaymentRepository(settings)
        user_repo = UserRepository(settings)
        session_repo = SessionRepository(settings)

        reservation_service = ReservationService(court_repo, reservation_repo, payment_repo, settings.currency)
        context = cls(
            settings=settings,
            gateway=build_gateway(settings),
            auth_service=AuthService(user_repo, session_repo, settings.session_ttl_minutes),
            court_service=CourtService(court_repo),
            reservation_service=reservation_service,
            checkout_service=CheckoutService(settings, payment_repo),
            payment_service=PaymentService(
                payment_repo,
                reservation_service,
                success_rate=settings.simulation_success_rate,
                always_success=settings.payments_always_success,
            ),
            reporting_service=ReportingService(reservation_repo, court_repo, user_repo),
        )
        logger.info(
            "Payments via %s (%s mode)", settings.payment_provider, "sandbox" if settings.payments_sandbox else "live"
        )
        return context

    def session(self, token: str) -> SessionContext:
        return SessionContext(self.auth_service).init(token)
