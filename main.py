import hashlib
import hmac
import math
import secrets
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import jwt
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import EmailStr, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import (
    ADMIN_PASSWORD,
    ADMIN_USERNAME,
    CURRENCY,
    JWT_ALGO,
    JWT_SECRET,
    PORT,
    RAZORPAY_KEY_ID,
    RAZORPAY_KEY_SECRET,
    TOKEN_TTL_DAYS,
)
from database import (
    count_documents,
    create_document,
    db,
    find_document,
    get_document,
    get_documents,
    new_id,
    update_document,
)
from orders import can_transition
from schemas import (
    Address,
    CamelModel,
    GatewayOrder,
    Item,
    Order,
    OrderStatus,
    PaymentMode,
    PaymentVerification,
    User as UserSchema,
    UserProfile,
    compute_shipping,
    format_address_line,
    missing_address_fields,
)

app = FastAPI(title="Elorie Jewels API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

security = HTTPBearer(auto_error=False)


# ----------------------- Errors -----------------------
@app.exception_handler(StarletteHTTPException)
async def http_error(request: Request, exc: StarletteHTTPException):
    content = exc.detail if isinstance(exc.detail, dict) else {"message": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        field = ".".join(str(p) for p in err["loc"] if p != "body")
        errors.append(f"{field}: {err['msg']}" if field else err["msg"])
    return JSONResponse(status_code=400, content={"message": "Validation failed", "errors": errors})


def bad_request(message: str, errors: Optional[List[str]] = None):
    detail = {"message": message}
    if errors:
        detail["errors"] = errors
    raise HTTPException(status_code=400, detail=detail)


# ----------------------- Utils -----------------------
def hash_password(password: str) -> str:
    return hashlib.sha256(password.encode()).hexdigest()


def create_token(payload: dict) -> str:
    exp = datetime.now(timezone.utc) + timedelta(days=TOKEN_TTL_DAYS)
    to_encode = {**payload, "exp": exp}
    return jwt.encode(to_encode, JWT_SECRET, algorithm=JWT_ALGO)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGO])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")


def _bearer_payload(credentials: Optional[HTTPAuthorizationCredentials]) -> dict:
    if credentials is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return decode_token(credentials.credentials)


async def get_current_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)):
    payload = _bearer_payload(credentials)
    user_id = payload.get("id")
    if not user_id or payload.get("role") != "customer":
        raise HTTPException(status_code=401, detail="Invalid token payload")
    user = get_document("user", user_id)
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return user


async def get_current_admin(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)):
    payload = _bearer_payload(credentials)
    if payload.get("role") != "admin":
        raise HTTPException(status_code=401, detail="Admin token required")
    return payload


def payment_signature(razorpay_order_id: str, razorpay_payment_id: str) -> str:
    message = f"{razorpay_order_id}|{razorpay_payment_id}".encode()
    return hmac.new(RAZORPAY_KEY_SECRET.encode(), message, hashlib.sha256).hexdigest()


def serialize_profile(user: dict) -> dict:
    return UserProfile.model_validate(user).to_wire()


def serialize_order(order: dict) -> dict:
    return Order.model_validate(order).to_wire()


def paginate(docs: List[dict], page: int, limit: int, serialize) -> dict:
    total = len(docs)
    start = (page - 1) * limit
    return {
        "data": [serialize(d) for d in docs[start:start + limit]],
        "totalCount": total,
        "totalPages": math.ceil(total / limit) if limit else 0,
        "currentPage": page,
    }


def normalize_addresses(addresses: List[Address]) -> tuple:
    """Assign ids and keep exactly one default; the first address wins when none is marked."""
    out = []
    for addr in addresses:
        out.append(addr.model_copy(update={"id": addr.id or new_id()}))
    if not out:
        return [], None
    default = next((a for a in out if a.is_default), out[0])
    out = [a.model_copy(update={"is_default": a.id == default.id}) for a in out]
    return out, default


# ----------------------- Models -----------------------
class RegisterBody(CamelModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    phone: str = ""
    password: str = Field(..., min_length=6)
    address: Optional[Address] = None


class LoginBody(CamelModel):
    email: EmailStr
    password: str


class ProfileUpdateBody(CamelModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    addresses: Optional[List[Address]] = None


class AddToCartBody(CamelModel):
    item_id: str
    quantity: int = Field(1, ge=1)


class UpdateCartBody(CamelModel):
    quantity: int = Field(..., ge=1)


class CreateOrderBody(CamelModel):
    payment_mode: PaymentMode
    shipping_address: Address


class CreatePaymentOrderBody(CamelModel):
    order_id: str
    amount: float = Field(..., ge=0)


class AdminLoginBody(CamelModel):
    username: str
    password: str


class StatusUpdateBody(CamelModel):
    status: OrderStatus


# ----------------------- Health -----------------------
@app.get("/")
def root():
    return {"message": "Elorie Jewels API running"}


@app.get("/test")
def test_database():
    return {
        "backend": "✅ Running",
        "database": "✅ In-memory",
        "collections": db.list_collection_names()[:10],
    }


# ----------------------- Auth -----------------------
@app.post("/auth/register")
def register(body: RegisterBody):
    if find_document("user", {"email": body.email}):
        bad_request("Email already registered")
    addresses, default = normalize_addresses([body.address] if body.address else [])
    user = UserSchema(
        name=body.name,
        email=body.email,
        phone=body.phone,
        password_hash=hash_password(body.password),
        address=format_address_line(default),
        addresses=addresses,
        default_address_id=default.id if default else None,
    )
    user_id = create_document("user", user)
    token = create_token({"id": user_id, "email": body.email, "role": "customer"})
    return {"token": token, "user": serialize_profile(get_document("user", user_id))}


@app.post("/auth/login")
def login(body: LoginBody):
    user = find_document("user", {"email": body.email})
    if not user or user.get("password_hash") != hash_password(body.password):
        bad_request("Invalid credentials")
    token = create_token({"id": user["id"], "email": user["email"], "role": "customer"})
    return {"token": token, "user": serialize_profile(user)}


@app.get("/auth/me")
def me(user=Depends(get_current_user)):
    return serialize_profile(user)


@app.put("/auth/me")
def update_me(body: ProfileUpdateBody, user=Depends(get_current_user)):
    update = body.model_dump(exclude_none=True, exclude={"addresses"})
    if body.addresses is not None:
        incomplete = [i for i, a in enumerate(body.addresses) if missing_address_fields(a)]
        if incomplete:
            bad_request("Invalid address", [f"addresses.{i}: missing required fields" for i in incomplete])
        addresses, default = normalize_addresses(body.addresses)
        update["addresses"] = [a.model_dump() for a in addresses]
        update["default_address_id"] = default.id if default else None
        update["address"] = format_address_line(default)
    return serialize_profile(update_document("user", user["id"], update))


# ----------------------- Items -----------------------
@app.get("/items")
def list_items(type: Optional[str] = None, page: int = 1, limit: int = 20):
    filt = {"type": type} if type else {}
    docs = get_documents("item", filt)
    return paginate(docs, max(page, 1), max(limit, 1), lambda d: Item.model_validate(d).to_wire())


@app.get("/items/{item_id}")
def get_item(item_id: str):
    item = get_document("item", item_id)
    if not item:
        raise HTTPException(status_code=404, detail="Item not found")
    return Item.model_validate(item).to_wire()


# ----------------------- Cart -----------------------
def user_cart(user_id: str) -> dict:
    cart = find_document("cart", {"user_id": user_id})
    if cart is None:
        cart_id = create_document("cart", {"user_id": user_id, "lines": []})
        cart = get_document("cart", cart_id)
    return cart


def save_lines(cart: dict, lines: List[dict]) -> dict:
    return update_document("cart", cart["id"], {"lines": lines})


def serialize_cart(cart: dict) -> dict:
    items = []
    for line in cart["lines"]:
        item = get_document("item", line["item_id"])
        items.append({
            "item": Item.model_validate(item).to_wire() if item else None,
            "quantity": line["quantity"],
        })
    return {"id": cart["id"], "items": items}


@app.get("/cart")
def get_cart(user=Depends(get_current_user)):
    return serialize_cart(user_cart(user["id"]))


@app.post("/cart")
def add_to_cart(body: AddToCartBody, user=Depends(get_current_user)):
    if not get_document("item", body.item_id):
        raise HTTPException(status_code=404, detail="Item not found")
    cart = user_cart(user["id"])
    lines = cart["lines"]
    for line in lines:
        if line["item_id"] == body.item_id:
            line["quantity"] += body.quantity
            break
    else:
        lines.append({"item_id": body.item_id, "quantity": body.quantity})
    return serialize_cart(save_lines(cart, lines))


@app.put("/cart/{item_id}")
def update_cart_item(item_id: str, body: UpdateCartBody, user=Depends(get_current_user)):
    cart = user_cart(user["id"])
    lines = cart["lines"]
    line = next((l for l in lines if l["item_id"] == item_id), None)
    if line is None:
        raise HTTPException(status_code=404, detail="Item not in cart")
    line["quantity"] = body.quantity
    return serialize_cart(save_lines(cart, lines))


@app.delete("/cart/{item_id}")
def remove_cart_item(item_id: str, user=Depends(get_current_user)):
    cart = user_cart(user["id"])
    lines = [l for l in cart["lines"] if l["item_id"] != item_id]
    return serialize_cart(save_lines(cart, lines))


@app.delete("/cart")
def clear_cart(user=Depends(get_current_user)):
    cart = user_cart(user["id"])
    return serialize_cart(save_lines(cart, []))


# ----------------------- Orders -----------------------
@app.post("/orders")
def create_order(body: CreateOrderBody, user=Depends(get_current_user)):
    cart = user_cart(user["id"])
    lines = []
    for line in cart["lines"]:
        item = get_document("item", line["item_id"])
        if item:
            lines.append((Item.model_validate(item), line["quantity"]))
    if not lines:
        bad_request("Cart is empty")

    missing = missing_address_fields(body.shipping_address)
    if missing:
        bad_request("Invalid shipping address", [f"{name} is required" for name in missing])

    if body.payment_mode == "COD":
        blocked = [item.title for item, _ in lines if item.cod_available is False]
        if blocked:
            bad_request("COD not available", [f"Cash on Delivery is not available for {', '.join(blocked)}"])

    item_total = sum(item.our_amount * qty for item, qty in lines)
    shipping = compute_shipping(item_total, (item.shipping_charge for item, _ in lines))
    status = OrderStatus.PENDING_PAYMENT if body.payment_mode == "UPI" else OrderStatus.ORDER_PLACED
    order_id = create_document("order", {
        "user_id": user["id"],
        "status": status.value,
        "customer_name": user["name"],
        "customer_phone": user.get("phone", ""),
        "total_item_amount": item_total,
        "shipping_charge": shipping,
        "total_amount": item_total + shipping,
        "items": [{"item": item.model_dump(), "quantity": qty, "price": item.our_amount} for item, qty in lines],
        "payment_mode": body.payment_mode,
        "shipping_address": body.shipping_address.model_dump(exclude={"id", "is_default"}),
        "received": False,
    })
    return serialize_order(get_document("order", order_id))


@app.get("/orders")
def my_orders(user=Depends(get_current_user)):
    return {"data": [serialize_order(o) for o in get_documents("order", {"user_id": user["id"]})]}


def owned_order(order_id: str, user: dict) -> dict:
    order = get_document("order", order_id)
    if not order or order["user_id"] != user["id"]:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


# ----------------------- Payment -----------------------
@app.post("/payment/create-order")
def create_payment_order(body: CreatePaymentOrderBody, user=Depends(get_current_user)):
    order = owned_order(body.order_id, user)
    if order["status"] != OrderStatus.PENDING_PAYMENT.value:
        bad_request("Order is not awaiting payment")
    if abs(body.amount - order["total_amount"]) > 0.01:
        bad_request("Amount does not match order total")
    razorpay_order_id = f"order_{secrets.token_hex(7)}"
    update_document("order", order["id"], {"razorpay_order_id": razorpay_order_id})
    return GatewayOrder(
        key_id=RAZORPAY_KEY_ID,
        amount=int(round(order["total_amount"] * 100)),
        currency=CURRENCY,
        razorpay_order_id=razorpay_order_id,
    ).to_wire()


@app.post("/payment/verify")
def verify_payment(body: PaymentVerification, user=Depends(get_current_user)):
    order = owned_order(body.order_id, user)
    expected = payment_signature(body.razorpay_order_id, body.razorpay_payment_id)
    if order.get("razorpay_order_id") != body.razorpay_order_id or not hmac.compare_digest(expected, body.razorpay_signature):
        bad_request("Payment verification failed")
    if order["status"] == OrderStatus.PENDING_PAYMENT.value:
        order = update_document("order", order["id"], {
            "status": OrderStatus.ORDER_PLACED.value,
            "received": True,
            "razorpay_payment_id": body.razorpay_payment_id,
        })
    elif order.get("razorpay_payment_id") != body.razorpay_payment_id:
        bad_request("Order is not awaiting payment")
    return {"verified": True, "order": serialize_order(order)}


# ----------------------- Admin -----------------------
@app.post("/admin/login")
def admin_login(body: AdminLoginBody):
    valid = hmac.compare_digest(body.username, ADMIN_USERNAME) and hmac.compare_digest(body.password, ADMIN_PASSWORD)
    if not valid:
        bad_request("Invalid credentials")
    return {"token": create_token({"sub": body.username, "role": "admin"})}


@app.get("/admin/orders")
def admin_orders(status: Optional[OrderStatus] = None, page: int = 1, limit: int = 10, admin=Depends(get_current_admin)):
    filt = {"status": status.value} if status else {}
    return paginate(get_documents("order", filt), max(page, 1), max(limit, 1), serialize_order)


@app.get("/admin/orders/{order_id}")
def admin_order(order_id: str, admin=Depends(get_current_admin)):
    order = get_document("order", order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return serialize_order(order)


@app.patch("/admin/orders/{order_id}/status")
def update_order_status(order_id: str, body: StatusUpdateBody, admin=Depends(get_current_admin)):
    order = get_document("order", order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    if not can_transition(order["status"], body.status):
        bad_request(f"Cannot move order from {order['status']} to {body.status.value}")
    return serialize_order(update_document("order", order_id, {"status": body.status.value}))


@app.get("/admin/stats")
def admin_stats(admin=Depends(get_current_admin)):
    return {
        "users": count_documents("user"),
        "items": count_documents("item"),
        "orders": count_documents("order"),
        "byStatus": {s.value: count_documents("order", {"status": s.value}) for s in OrderStatus},
    }


# ----------------------- Seed Demo Data -----------------------
DEMO_ITEMS = [
    {
        "title": "Golden Serpent Necklace",
        "type": "Necklaces",
        "description": "A 22K gold necklace with an intricate serpent design and ruby eyes.",
        "material": "22K Gold",
        "images": ["https://images.unsplash.com/photo-1599643478518-a784e5dc4c8f"],
        "original_amount": 2999,
        "our_amount": 2499,
        "rating": 4.9,
        "review_count": 128,
        "is_trending_now": True,
        "is_best_seller": True,
        "shipping_charge": 99,
    },
    {
        "title": "Diamond Solitaire Ring",
        "type": "Rings",
        "description": "Classic diamond solitaire set in 18K white gold.",
        "material": "18K White Gold",
        "images": ["https://images.unsplash.com/photo-1605100804763-247f67b3557e"],
        "original_amount": 3999,
        "our_amount": 3999,
        "rating": 5.0,
        "review_count": 89,
        "is_trending_now": True,
        "shipping_charge": 99,
        "cod_available": False,
    },
    {
        "title": "Pearl Drop Earrings",
        "type": "Earrings",
        "description": "Freshwater pearl drops on a delicate gold chain.",
        "material": "14K Gold",
        "images": ["https://images.unsplash.com/photo-1535632066927-ab7c9ab60908"],
        "original_amount": 1099,
        "our_amount": 899,
        "rating": 4.8,
        "review_count": 245,
        "is_best_seller": True,
        "shipping_charge": 49,
    },
    {
        "title": "Rose Gold Tennis Bracelet",
        "type": "Bracelets",
        "description": "Brilliant-cut diamonds set in rose gold.",
        "material": "18K Rose Gold",
        "images": ["https://images.unsplash.com/photo-1611591437281-460bfbe1220a"],
        "original_amount": 5299,
        "our_amount": 4599,
        "rating": 4.9,
        "review_count": 167,
        "is_trending_now": True,
        "is_best_seller": True,
        "shipping_charge": 99,
        "cod_available": False,
    },
    {
        "title": "Traditional Gold Bangles Set",
        "type": "Bangles",
        "description": "Set of 6 gold bangles with filigree work.",
        "material": "22K Gold",
        "images": ["https://images.unsplash.com/photo-1596944924616-7b38e7cfac36"],
        "original_amount": 5999,
        "our_amount": 5999,
        "rating": 4.7,
        "review_count": 92,
        "is_best_seller": True,
        "is_combo": True,
        "shipping_charge": 99,
    },
    {
        "title": "Dainty Gold Anklet",
        "type": "Anklets",
        "description": "Delicate gold chain anklet with tiny charm accents.",
        "material": "14K Gold",
        "images": ["https://images.unsplash.com/photo-1602173574767-37ac01994b2a"],
        "original_amount": 499,
        "our_amount": 399,
        "rating": 4.6,
        "review_count": 78,
        "is_trending_now": True,
        "shipping_charge": 49,
    },
]


def seed_catalog() -> int:
    if count_documents("item") > 0:
        return 0
    for data in DEMO_ITEMS:
        create_document("item", Item(**data).model_dump(exclude={"id"}))
    return len(DEMO_ITEMS)


@app.post("/seed")
def seed():
    created = seed_catalog()
    if not created:
        return {"seeded": False, "message": "Items already exist"}
    return {"seeded": True, "items": count_documents("item")}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=PORT)
