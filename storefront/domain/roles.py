from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict


class Role(str, Enum):
    CUSTOMER = "customer"
    VENDOR = "vendor"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"
    PRODUCT_MANAGER = "product_manager"
    ORDER_MANAGER = "order_manager"


class Capability(str, Enum):
    PLACE_ORDERS = "orders:place"
    VIEW_ANY_ORDER = "orders:view_any"
    MANAGE_ORDERS = "orders:manage"
    MANAGE_PROMOTIONS = "promotions:manage"
    MANAGE_CATALOG = "catalog:manage"


_CUSTOMER = frozenset({Capability.PLACE_ORDERS})

ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.CUSTOMER: _CUSTOMER,
    Role.VENDOR: _CUSTOMER | {Capability.MANAGE_CATALOG},
    Role.PRODUCT_MANAGER: _CUSTOMER | {Capability.MANAGE_CATALOG, Capability.MANAGE_PROMOTIONS},
    Role.ORDER_MANAGER: _CUSTOMER | {Capability.VIEW_ANY_ORDER, Capability.MANAGE_ORDERS},
    Role.ADMIN: frozenset(Capability),
    Role.SUPERADMIN: frozenset(Capability),
}


def has_capability(role: Role, capability: Capability) -> bool:
    return capability in ROLE_CAPABILITIES.get(role, frozenset())


class Actor(BaseModel):
    """Value Object — authenticated caller"""
    model_config = ConfigDict(frozen=True)

    user_id: str
    role: Role = Role.CUSTOMER
    email: Optional[str] = None

    def can(self, capability: Capability) -> bool:
        return has_capability(self.role, capability)
