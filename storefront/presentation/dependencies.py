import logging
from typing import Optional
from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.application.payments import PaymentDispatcher
from storefront.config import settings
from storefront.database import get_db
from storefront.domain.exceptions import NotAuthorizedError, UnauthenticatedError
from storefront.domain.roles import Actor, Role
from storefront.infrastructure.payment_gateways import CashOnDeliveryBackend, FonepayBackend, StripeBackend
from storefront.infrastructure.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


def get_unit_of_work(db: AsyncSession = Depends(get_db)):
    return UnitOfWork(lambda: db)


def get_payment_dispatcher() -> PaymentDispatcher:
    backends = [CashOnDeliveryBackend()]
    if settings.STRIPE_SECRET_KEY:
        backends.append(StripeBackend(settings.stripe, timeout=settings.PAYMENT_GATEWAY_TIMEOUT))
    if settings.FONEPAY_PID and settings.FONEPAY_SECRET:
        backends.append(FonepayBackend(settings.fonepay, timeout=settings.PAYMENT_GATEWAY_TIMEOUT))
    return PaymentDispatcher(backends)


def get_current_actor(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
    x_user_email: Optional[str] = Header(None),
) -> Actor:
    """Identity forwarded by the auth gateway in front of the service"""
    if not x_user_id:
        raise UnauthenticatedError()
    try:
        role = Role(x_user_role) if x_user_role else Role.CUSTOMER
    except ValueError:
        logger.warning(f"Rejected unknown role {x_user_role!r} for user {x_user_id}")
        raise NotAuthorizedError(f"Unknown role: {x_user_role}")
    return Actor(user_id=x_user_id, role=role, email=x_user_email)
