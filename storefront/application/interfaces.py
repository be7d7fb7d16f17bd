from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, List

from pydantic import BaseModel

from storefront.domain.models import (
    Order, OrderStatus, Payment, PaymentMethod, PaymentStatus, Product, Promotion, Return, ReturnStatus, ShippingZone
)
from storefront.domain.roles import Actor


class OrderRepository(ABC):
    @abstractmethod
    async def get_by_id(self, order_id: str) -> Optional[Order]:
        pass

    @abstractmethod
    async def list_by_user(self, user_id: str) -> List[Order]:
        pass

    @abstractmethod
    async def create(self, order: Order) -> None:
        pass

    @abstractmethod
    async def update_status(
        self,
        order_id: str,
        status: OrderStatus,
        shipping_provider: Optional[str] = None,
        shipping_tracking_id: Optional[str] = None,
        delivered_at: Optional[datetime] = None,
    ) -> None:
        pass

    @abstractmethod
    async def update_payment_status(
        self, order_id: str, payment_status: PaymentStatus, payment_id: Optional[str] = None
    ) -> None:
        pass

    @abstractmethod
    async def list_unpaid_pending(self, methods: List[PaymentMethod], created_before: datetime) -> List[Order]:
        pass


class ProductRepository(ABC):
    @abstractmethod
    async def get_by_id(self, product_id: str) -> Optional[Product]:
        pass

    @abstractmethod
    async def create(self, product: Product) -> None:
        pass

    @abstractmethod
    async def decrement_stock_if_available(self, product_id: str, quantity: int) -> bool:
        """Atomically decrement stock_qty by quantity only if stock_qty >= quantity"""

    @abstractmethod
    async def increment_stock(self, product_id: str, quantity: int) -> None:
        pass


class PaymentRepository(ABC):
    @abstractmethod
    async def get_by_id(self, payment_id: str) -> Optional[Payment]:
        pass

    @abstractmethod
    async def add(self, payment: Payment) -> None:
        pass

    @abstractmethod
    async def list_by_order(self, order_id: str) -> List[Payment]:
        pass


class PromotionRepository(ABC):
    @abstractmethod
    async def get_by_id(self, promotion_id: str) -> Optional[Promotion]:
        pass

    @abstractmethod
    async def get_by_code(self, code: str) -> Optional[Promotion]:
        pass

    @abstractmethod
    async def find_active_by_code(self, code: str, now: datetime) -> Optional[Promotion]:
        pass

    @abstractmethod
    async def create(self, promotion: Promotion) -> None:
        pass

    @abstractmethod
    async def update(self, promotion: Promotion) -> None:
        pass

    @abstractmethod
    async def delete(self, promotion_id: str) -> None:
        pass


class ShippingZoneRepository(ABC):
    @abstractmethod
    async def find_by_region(self, province: str) -> Optional[ShippingZone]:
        pass

    @abstractmethod
    async def create(self, zone: ShippingZone) -> None:
        pass


class ReturnRepository(ABC):
    @abstractmethod
    async def get_by_id(self, return_id: str) -> Optional[Return]:
        pass

    @abstractmethod
    async def create(self, return_request: Return) -> None:
        pass

    @abstractmethod
    async def update_status(self, return_id: str, status: ReturnStatus) -> None:
        pass


class OutboxRepository(ABC):
    @abstractmethod
    async def create(self, event_type: str, event_data: dict, order_id: str) -> str:
        pass

    @abstractmethod
    async def get_pending(self, limit: int = 10) -> List[dict]:
        pass

    @abstractmethod
    async def mark_as_published(self, event_id: str) -> None:
        pass


class UnitOfWork(ABC):
    @property
    @abstractmethod
    def orders(self) -> OrderRepository:
        pass

    @property
    @abstractmethod
    def products(self) -> ProductRepository:
        pass

    @property
    @abstractmethod
    def payments(self) -> PaymentRepository:
        pass

    @property
    @abstractmethod
    def promotions(self) -> PromotionRepository:
        pass

    @property
    @abstractmethod
    def shipping_zones(self) -> ShippingZoneRepository:
        pass

    @property
    @abstractmethod
    def returns(self) -> ReturnRepository:
        pass

    @property
    @abstractmethod
    def outbox(self) -> OutboxRepository:
        pass

    @abstractmethod
    async def __call__(self):
        pass

    @abstractmethod
    async def commit(self):
        pass

    @abstractmethod
    async def rollback(self):
        pass


class PaymentHandle(BaseModel):
    """What a gateway hands back from initiation"""
    method: PaymentMethod
    reference: Optional[str] = None
    payload: dict = {}


class PaymentBackend(ABC):
    method: PaymentMethod
    # key in the verification payload that carries the gateway transaction id
    reference_field: Optional[str] = None

    @abstractmethod
    async def initiate(self, order: Order, payer: Actor) -> PaymentHandle:
        pass

    @abstractmethod
    async def verify(self, order: Order, data: dict) -> bool:
        """True when the gateway reports this order settled; raises if the payload belongs elsewhere"""
        pass


class NotificationsService(ABC):
    @abstractmethod
    async def send_order_confirmation(self, user: dict, order: dict) -> bool:
        pass


class EventPublisher(ABC):
    @abstractmethod
    async def publish(self, event_type: str, key: str, event_data: dict) -> bool:
        pass
