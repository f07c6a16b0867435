from typing import List, Optional

import httpx


class StorefrontError(Exception):
    """Base class for errors raised by the storefront client."""


class NotAuthenticatedError(StorefrontError):
    """A cart or checkout mutation was attempted without a session."""


class NetworkError(StorefrontError):
    """The backend could not be reached."""


class InvalidResponseError(StorefrontError):
    """The backend answered, but not with the shape the client expects."""


class ApiError(StorefrontError):
    def __init__(self, status_code: int, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.errors = errors or []

    @classmethod
    def from_response(cls, response: httpx.Response) -> "ApiError":
        message = response.reason_phrase or "Request failed"
        errors: List[str] = []
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            message = body.get("message") or body.get("detail") or message
            if isinstance(body.get("errors"), list):
                errors = [str(e) for e in body["errors"]]
        return cls(response.status_code, str(message), errors)

    @property
    def user_message(self) -> str:
        """Backend validation messages verbatim when present."""
        if self.errors:
            return ", ".join(self.errors)
        return self.message or "Please try again."

    def __str__(self) -> str:
        return f"{self.status_code}: {self.message}"


class AuthenticationError(ApiError):
    """HTTP 401. The session has already been cleared when this is raised."""


class OrderStatusError(StorefrontError):
    pass


class PaymentError(StorefrontError):
    """Payment gateway integration failure. Each subclass has its own user-facing message."""

    title = "Payment failed"
    description = "The payment could not be completed."

    def __init__(self, detail: Optional[str] = None):
        super().__init__(detail or self.description)
        self.detail = detail


class ScriptLoadError(PaymentError):
    title = "Payment gateway unavailable"
    description = "Razorpay SDK failed to load. Please check your connection."


class GatewayOrderError(PaymentError):
    title = "Could not start payment"
    description = "Your order is saved and awaiting payment. Please retry checkout."


class VerificationError(PaymentError):
    title = "Payment verification failed"
    description = "We could not confirm your payment. If money was deducted, please contact support with your order ID."
