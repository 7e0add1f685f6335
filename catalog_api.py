#!/usr/bin/env python3
"""
Evershine Catalog API Client

Thin wrappers around the backend REST API used by the feeder UI.

Every call is a single request/response round trip: no retries, no caching.
Success is the `success: true` flag in the response body. A missing flag, an
unreadable body or a transport error all come back as a failed ApiResult
carrying a message the UI can show as-is.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import requests

import feeder_config


@dataclass
class FeederSession:
    """Tokens and identity of the logged-in feeder. Lives from login to logout."""
    access_token: str
    refresh_token: str = ""
    name: str = ""
    email: str = ""
    feeder_id: str = ""

    @property
    def is_authenticated(self) -> bool:
        return bool(self.access_token)

    def to_dict(self) -> dict:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "name": self.name,
            "email": self.email,
            "feeder_id": self.feeder_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "FeederSession":
        return cls(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token", ""),
            name=data.get("name", ""),
            email=data.get("email", ""),
            feeder_id=data.get("feeder_id", ""),
        )

    @classmethod
    def from_login_response(cls, data: dict) -> "FeederSession":
        """Build from the `data` block of /api/feeder/login."""
        feeder = data.get("feeder") or {}
        return cls(
            access_token=data["accessToken"],
            refresh_token=data.get("refreshToken", ""),
            name=feeder.get("name", ""),
            email=feeder.get("email", ""),
            feeder_id=feeder.get("feederId", ""),
        )


@dataclass
class ApiResult:
    """Outcome of one backend call."""
    success: bool
    message: str = ""
    data: Any = None
    status_code: Optional[int] = None

    @classmethod
    def failure(cls, message: str, status_code: Optional[int] = None) -> "ApiResult":
        return cls(success=False, message=message, status_code=status_code)


@dataclass
class UploadFile:
    """An image picked in the product form, ready for multipart upload."""
    filename: str
    content: bytes
    content_type: str

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass
class CatalogClient:
    """Backend API client. Pass a FeederSession for authenticated calls."""
    base_url: str = feeder_config.API_URL
    session: Optional[FeederSession] = None
    timeout: Optional[float] = feeder_config.REQUEST_TIMEOUT
    http: requests.Session = field(default_factory=requests.Session)

    def close(self) -> None:
        self.http.close()

    def _url(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}{path}"

    def _auth_headers(self) -> dict:
        if self.session and self.session.is_authenticated:
            return {"Authorization": f"Bearer {self.session.access_token}"}
        return {}

    def _request(
        self,
        method: str,
        path: str,
        failure_message: str,
        unsuccessful_message: Optional[str] = None,
        **kwargs,
    ) -> ApiResult:
        """
        Send one request and normalise the outcome.

        Args:
            method: HTTP method
            path: API path (e.g. /api/getAllProducts)
            failure_message: Message shown when the request itself fails
            unsuccessful_message: Message shown when the backend says no without
                a msg of its own (defaults to failure_message)

        Returns:
            ApiResult
        """
        headers = kwargs.pop("headers", {})
        headers.update(self._auth_headers())

        try:
            response = self.http.request(
                method, self._url(path), headers=headers, timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            logging.error("%s %s failed: %s", method, path, e)
            return ApiResult.failure(failure_message)

        try:
            body = response.json()
        except ValueError:
            logging.error("%s %s returned non-JSON body (HTTP %s)", method, path, response.status_code)
            return ApiResult.failure(failure_message, response.status_code)

        if not isinstance(body, dict):
            logging.error("%s %s returned unexpected body: %r", method, path, body)
            return ApiResult.failure(failure_message, response.status_code)

        message = body.get("msg") or body.get("message") or ""
        if body.get("success") is True:
            return ApiResult(success=True, message=message, data=body.get("data"), status_code=response.status_code)

        logging.warning("%s %s unsuccessful (HTTP %s): %s", method, path, response.status_code, message)
        return ApiResult.failure(message or unsuccessful_message or failure_message, response.status_code)

    # Feeder authentication

    def login_feeder(self, email: str, password: str) -> ApiResult:
        return self._request(
            "POST", "/api/feeder/login",
            "An error occurred during login. Please try again.",
            json={"email": email, "password": password},
        )

    def register_feeder(self, name: str, email: str, password: str) -> ApiResult:
        return self._request(
            "POST", "/api/feeder/register",
            "An error occurred during registration. Please try again.",
            json={"name": name, "email": email, "password": password},
        )

    def get_feeder_profile(self) -> ApiResult:
        if not (self.session and self.session.is_authenticated):
            return ApiResult.failure("Failed to get profile information.")
        return self._request("GET", "/api/feeder/profile", "Failed to get profile information.")

    # Products

    def get_all_products(self) -> ApiResult:
        result = self._request("GET", "/api/getAllProducts", "Error fetching products")
        if result.success and result.data is None:
            result.data = []
        return result

    def get_product_by_id(self, product_id: str) -> ApiResult:
        """
        Fetch one product. The backend answers with a one-element list;
        data is the product dict itself.
        """
        result = self._request(
            "GET", "/api/getPostDataById", "Error fetching product",
            params={"id": product_id},
        )
        if not result.success:
            return result
        if not result.data:
            return ApiResult.failure(result.message or "No data found", result.status_code)
        if isinstance(result.data, list):
            result.data = result.data[0]
        return result

    def create_product(self, fields: dict, images: list[UploadFile]) -> ApiResult:
        """Create a product (multipart). data carries the new postId."""
        return self._request(
            "POST", "/api/create-post", "Error creating product",
            files=_multipart(fields, images),
        )

    def update_product(
        self,
        post_id: str,
        fields: dict,
        images: Optional[list[UploadFile]] = None,
        existing_images: Optional[list[str]] = None,
    ) -> ApiResult:
        """Update a product (multipart). existing_images are the URLs to keep."""
        data = dict(fields)
        if existing_images is not None:
            data["existingImages"] = json.dumps(existing_images)
        return self._request(
            "POST", f"/api/updateProduct/{post_id}", "Error updating product",
            files=_multipart(data, images or []),
        )

    def update_price(self, post_id: str, price: float) -> ApiResult:
        return self._request(
            "POST", f"/api/updateProduct/{post_id}", "Failed to update price. Please try again.",
            unsuccessful_message="Failed to update price",
            json={"price": price},
        )


def _multipart(fields: dict, images: list[UploadFile]) -> list:
    """Form fields and images as multipart parts (multipart even with no images)."""
    parts = [(key, (None, str(value))) for key, value in fields.items() if value is not None]
    parts.extend(("images", (img.filename, img.content, img.content_type)) for img in images)
    return parts


def get_catalog_client(session: Optional[FeederSession] = None) -> CatalogClient:
    """Create a client for the configured backend."""
    return CatalogClient(base_url=feeder_config.API_URL, session=session)
