import os

# ----------------------- Backend -----------------------
JWT_SECRET = os.getenv("JWT_SECRET", "devsecret")
JWT_ALGO = "HS256"
TOKEN_TTL_DAYS = int(os.getenv("TOKEN_TTL_DAYS", 7))

ADMIN_USERNAME = os.getenv("ADMIN_USERNAME", "admin")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin123")

RAZORPAY_KEY_ID = os.getenv("RAZORPAY_KEY_ID", "rzp_test_elorie")
RAZORPAY_KEY_SECRET = os.getenv("RAZORPAY_KEY_SECRET", "rzp_test_secret")
CURRENCY = "INR"

# Orders above this subtotal ship free
FREE_SHIPPING_THRESHOLD = float(os.getenv("FREE_SHIPPING_THRESHOLD", 499))

PORT = int(os.getenv("PORT", 8000))

# ----------------------- Client -----------------------
API_URL = os.getenv("API_URL", "http://localhost:8000")
STORE_NAME = os.getenv("STORE_NAME", "Elorie Jewels")
RAZORPAY_SCRIPT_URL = os.getenv("RAZORPAY_SCRIPT_URL", "https://checkout.razorpay.com/v1/checkout.js")

CUSTOMER_TOKEN_KEY = "elorie_token"
CUSTOMER_PROFILE_KEY = "elorie_user"
ADMIN_TOKEN_KEY = "elorie_admin_token"
PENDING_CART_KEY = "elorie_pending_cart_action"

SIGN_IN_PATH = "/profile"
ADMIN_SIGN_IN_PATH = "/admin/login"
ACCOUNT_PATH = "/profile"
CART_PATH = "/cart"
CHECKOUT_PATH = "/checkout"
