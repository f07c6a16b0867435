"""
Schemas for the Elorie Jewels storefront

Database documents and the JSON shapes exchanged between the storefront
client and the backend. Every model serializes with camelCase aliases
(``ourAmount``, ``paymentMode``, ``razorpayOrderId``) and accepts either
spelling on input.
"""
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, List, Literal, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, EmailStr, Field, ValidationError
from pydantic.alias_generators import to_camel

from config import FREE_SHIPPING_THRESHOLD
from errors import InvalidResponseError

ItemType = Literal["Necklaces", "Rings", "Earrings", "Bracelets", "Bangles", "Anklets"]
PaymentMode = Literal["COD", "UPI"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self, **kwargs) -> dict:
        return self.model_dump(by_alias=True, mode="json", **kwargs)


M = TypeVar("M", bound=BaseModel)


def parse_response(model: Type[M], body: Any) -> M:
    """Validate a backend payload, raising InvalidResponseError when it does not fit."""
    try:
        return model.model_validate(body)
    except ValidationError as exc:
        raise InvalidResponseError(f"Unexpected {model.__name__} payload ({exc.error_count()} invalid fields)") from exc


class OrderStatus(str, Enum):
    PENDING_PAYMENT = "pendingPayment"
    ORDER_PLACED = "orderPlaced"
    ORDER_CONFIRMED = "orderConfirmed"
    ORDER_DISPATCHED = "orderDispatched"
    ORDER_DELIVERED = "orderDelivered"
    CANCELLED = "cancelled"


# ----------------------- Catalog -----------------------
class Item(CamelModel):
    """
    Catalog item as stored by the backend
    Collection name: "item"
    """
    id: Optional[str] = None
    type: Optional[ItemType] = None
    title: str = ""
    description: Optional[str] = None
    material: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    image: Optional[str] = None
    original_amount: float = Field(0, ge=0, description="List price in INR")
    our_amount: float = Field(0, ge=0, description="Selling price in INR")
    rating: float = Field(0, ge=0, le=5)
    review_count: int = 0
    is_trending_now: bool = False
    is_best_seller: bool = False
    is_combo: bool = False
    shipping_charge: float = Field(0, ge=0, description="Flat shipping per cart line")
    cod_available: Optional[bool] = None


class Product(CamelModel):
    """Client-side view of an item."""
    id: str
    name: str
    description: Optional[str] = None
    price: float
    original_price: Optional[float] = None
    category: str
    material: Optional[str] = None
    image_url: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    shipping_charge: float = 0
    cod_available: bool = True
    is_trending: bool = False
    is_best_seller: bool = False
    is_combo: bool = False
    rating: float = 0
    review_count: int = 0


class ItemPage(CamelModel):
    data: List[Item] = Field(default_factory=list)
    total_count: int = 0
    total_pages: int = 0
    current_page: int = 1


def map_item_to_product(item: Item) -> Product:
    if not item or not item.id:
        raise ValueError("Invalid item: missing required fields")
    if item.images:
        images = list(item.images)
    elif item.image:
        images = [item.image]
    else:
        images = []
    return Product(
        id=item.id,
        name=item.title or "",
        description=item.description,
        price=item.our_amount or 0,
        original_price=item.original_amount or None,
        category=item.type.lower() if item.type else "other",
        material=item.material or None,
        image_url=images[0] if images else None,
        images=images,
        shipping_charge=item.shipping_charge or 0,
        cod_available=True if item.cod_available is None else item.cod_available,
        is_trending=item.is_trending_now,
        is_best_seller=item.is_best_seller,
        is_combo=item.is_combo,
        rating=item.rating or 0,
        review_count=item.review_count or 0,
    )


# ----------------------- Cart -----------------------
class CartLine(CamelModel):
    item: Optional[Item] = None
    quantity: int = Field(..., ge=1)


class CartSnapshot(CamelModel):
    id: str
    items: List[CartLine] = Field(default_factory=list)


class CartEntry(CamelModel):
    id: str
    product_id: str
    quantity: int = Field(..., ge=1)
    product: Product


class PendingCartAction(CamelModel):
    """Add-to-cart intent waiting for the user to sign in."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    product_id: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1)
    return_to: Optional[str] = None
    created_at: int = Field(..., description="Epoch milliseconds")


# ----------------------- Users -----------------------
REQUIRED_ADDRESS_FIELDS = ("address", "city", "district", "state", "contact_number", "pin_code")


class Address(CamelModel):
    id: Optional[str] = None
    label: Optional[str] = None
    address: str = ""
    city: str = ""
    district: str = ""
    state: str = ""
    landmark: Optional[str] = None
    contact_number: str = ""
    pin_code: str = ""
    is_default: Optional[bool] = None


def format_address_line(address: Optional[Address]) -> str:
    if not address:
        return ""
    parts = [address.address, address.landmark, address.city, address.district, address.state, address.pin_code]
    return ", ".join(str(p).strip() for p in parts if p and str(p).strip())


def missing_address_fields(address: Optional[Address]) -> List[str]:
    """Names (camelCase) of required fields that are blank."""
    if address is None:
        return [to_camel(name) for name in REQUIRED_ADDRESS_FIELDS]
    return [
        to_camel(name)
        for name in REQUIRED_ADDRESS_FIELDS
        if not str(getattr(address, name) or "").strip()
    ]


class User(CamelModel):
    """
    Users collection schema
    Collection name: "user"
    """
    name: str = Field(..., description="Full name")
    email: EmailStr
    phone: str = ""
    password_hash: str = Field(..., description="Hashed password")
    address: str = Field("", description="Primary address, one line")
    addresses: List[Address] = Field(default_factory=list)
    default_address_id: Optional[str] = None


class UserProfile(CamelModel):
    id: str
    name: str
    email: str
    phone: str = ""
    address: str = ""
    addresses: List[Address] = Field(default_factory=list)
    default_address_id: Optional[str] = None


class AuthResponse(CamelModel):
    token: str = Field(..., min_length=1)
    user: UserProfile


# ----------------------- Orders -----------------------
class OrderLine(CamelModel):
    item: Item
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0)


class Order(CamelModel):
    """
    Orders collection schema
    Collection name: "order"
    """
    id: str
    user_id: Optional[str] = None
    status: OrderStatus
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    total_amount: float
    shipping_charge: float = 0
    total_item_amount: float = 0
    items: List[OrderLine] = Field(default_factory=list)
    payment_mode: PaymentMode
    shipping_address: Optional[Address] = None
    received: bool = False
    razorpay_order_id: Optional[str] = None
    razorpay_payment_id: Optional[str] = None
    created_at: Optional[datetime] = None


def compute_shipping(subtotal: float, line_charges: Iterable[float]) -> float:
    """Shipping is free above the threshold, otherwise one flat charge per cart line."""
    if subtotal > FREE_SHIPPING_THRESHOLD:
        return 0
    return sum(line_charges)


class GatewayOrder(CamelModel):
    key_id: str
    amount: int = Field(..., description="Amount in paise")
    currency: str
    razorpay_order_id: str


class PaymentVerification(CamelModel):
    order_id: str
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str
