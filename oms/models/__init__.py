from oms.models.base import Base, SessionLocal, get_db, init_db, commit
from oms.models.customer import Customer
from oms.models.order_pack import OrderPack
from oms.models.shipping_method import ShippingMethod
from oms.models.order import Order
from oms.models.activity import OrderActivity
from oms.models.stripe_event import StripeEvent
from oms.models.feature_request import FeatureRequest

__all__ = [
    "Base",
    "SessionLocal",
    "get_db",
    "init_db",
    "commit",
    "Customer",
    "OrderPack",
    "ShippingMethod",
    "Order",
    "OrderActivity",
    "StripeEvent",
    "FeatureRequest",
]
