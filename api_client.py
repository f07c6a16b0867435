import logging
from typing import Any, Optional

import httpx

from config import API_URL
from errors import ApiError, AuthenticationError, InvalidResponseError, NetworkError
from session import Session

logger = logging.getLogger(__name__)


class ApiClient:
    """
    JSON client for the storefront backend, bound to one session scope.

    Every request carries the scope's bearer token when there is one. A 401
    expires the whole session (see ``Session.expire``) before
    ``AuthenticationError`` is raised: an invalid token invalidates every
    later call too, so no caller gets to opt out of that.
    """

    def __init__(self, session: Session, http: Optional[httpx.Client] = None):
        self.session = session
        self.http = http or httpx.Client(base_url=API_URL)

    def request(self, method: str, path: str, json: Any = None, params: Optional[dict] = None) -> Any:
        headers = {}
        token = self.session.token
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            response = self.http.request(method, path, json=json, params=params, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning(f"{method} {path} failed: {exc}")
            raise NetworkError(str(exc)) from exc

        if response.status_code == 401:
            error = AuthenticationError.from_response(response)
            logger.info(f"{method} {path} -> 401 ({error.message})")
            self.session.expire()
            raise error
        if response.is_error:
            error = ApiError.from_response(response)
            logger.info(f"{method} {path} -> {error}")
            raise error
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            logger.warning(f"{method} {path} returned a non-JSON body")
            raise InvalidResponseError(f"{method} {path} returned a non-JSON body") from exc

    def get(self, path: str, params: Optional[dict] = None) -> Any:
        return self.request("GET", path, params=params)

    def post(self, path: str, json: Any = None) -> Any:
        return self.request("POST", path, json=json)

    def put(self, path: str, json: Any = None) -> Any:
        return self.request("PUT", path, json=json)

    def patch(self, path: str, json: Any = None) -> Any:
        return self.request("PATCH", path, json=json)

    def delete(self, path: str) -> Any:
        return self.request("DELETE", path)

    def close(self) -> None:
        self.http.close()
