"""
Async HTTP client for the admin API.

The session cookie set by /api/auth/login lives in the underlying
httpx.AsyncClient cookie jar and rides along on every later call.
"""

from typing import Optional

import httpx

from logger import get_logger

_logger = get_logger(__name__)


class ApiError(Exception):
    def __init__(self, status: int, message: str):
        super().__init__(message)
        self.status = status
        self.message = message


class Unauthorized(ApiError):
    pass


class AdminApiClient:
    def __init__(self, base_url: str = "http://localhost:8000", http: Optional[httpx.AsyncClient] = None):
        self._http = http or httpx.AsyncClient(base_url=base_url)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, path: str, **kwargs):
        res = await self._http.request(method, path, **kwargs)
        if res.is_success:
            return res.json()
        try:
            message = res.json().get("detail") or res.reason_phrase
        except ValueError:
            message = res.reason_phrase
        _logger.debug(f"{method} {path} -> {res.status_code}: {message}")
        if res.status_code == 401:
            raise Unauthorized(401, message)
        raise ApiError(res.status_code, message)

    # ------------------------- Auth ----------------------------
    async def login(self, id_token: str) -> None:
        await self._request("POST", "/api/auth/login", json={"idToken": id_token})

    async def logout(self) -> None:
        await self._request("POST", "/api/auth/logout")

    async def verify(self) -> bool:
        try:
            data = await self._request("GET", "/api/auth/verify")
        except Unauthorized:
            return False
        return bool(data.get("authenticated"))

    # ------------------------- Products ------------------------
    async def list_products(self) -> list:
        return (await self._request("GET", "/api/admin/products"))["products"]

    async def get_product(self, product_id: str) -> dict:
        return await self._request("GET", f"/api/admin/products/{product_id}")

    async def create_product(self, fields: dict) -> str:
        return (await self._request("POST", "/api/admin/products", json=fields))["id"]

    async def update_product(self, product_id: str, fields: dict) -> None:
        await self._request("PUT", f"/api/admin/products/{product_id}", json=fields)

    async def delete_product(self, product_id: str) -> None:
        await self._request("DELETE", f"/api/admin/products/{product_id}")

    async def seed_products(self, products: list) -> int:
        return (await self._request("POST", "/api/admin/products/seed", json={"products": products}))["count"]

    async def upload_product_image(self, filename: str, data: bytes, content_type: str) -> dict:
        return await self._request("POST", "/api/upload", files={"file": (filename, data, content_type)})

    async def adjust_wishlist(self, product_id: str, action: str) -> None:
        await self._request("POST", "/api/wishlist", json={"productId": product_id, "action": action})

    # ------------------------- Bookings ------------------------
    async def list_bookings(self) -> list:
        return (await self._request("GET", "/api/bookings"))["bookings"]

    async def create_booking(self, fields: dict) -> str:
        return (await self._request("POST", "/api/bookings", json=fields))["id"]

    async def set_booked(self, booking_id: str, booked: bool) -> None:
        await self._request("PATCH", f"/api/admin/bookings/{booking_id}", json={"booked": booked})

    async def delete_booking(self, booking_id: str) -> None:
        await self._request("DELETE", f"/api/admin/bookings/{booking_id}")

    # ------------------------- Featured images -----------------
    async def list_featured_images(self) -> list:
        return (await self._request("GET", "/api/featured-images"))["images"]

    async def create_featured_image(self, filename: str, data: bytes, content_type: str, alt: str = "") -> dict:
        return await self._request(
            "POST",
            "/api/admin/featured-images",
            files={"file": (filename, data, content_type)},
            data={"alt": alt},
        )

    async def delete_featured_image(self, image_id: str) -> None:
        await self._request("DELETE", f"/api/admin/featured-images/{image_id}")
