"""
Admin dashboard shell: one toast channel, three resource hooks, a tab bar.
"""

import asyncio
from typing import Dict, Literal, Optional

import httpx

from api_client import AdminApiClient, ApiError, Unauthorized
from hooks import BookingsHook, FeaturedImagesHook, ProductsHook
from logger import get_logger
from toast import Toast

_logger = get_logger(__name__)

TabKey = Literal["products", "bookings", "featured"]
TABS = ("products", "bookings", "featured")


class Dashboard:
    def __init__(self, api: AdminApiClient, toast: Optional[Toast] = None):
        self.api = api
        self.toast = toast or Toast()
        self.active_tab: TabKey = "products"
        self.authenticated = False
        self.needs_login = False
        self.products = ProductsHook(api, self.toast, self._session_lost)
        self.bookings = BookingsHook(api, self.toast, self._session_lost)
        self.featured = FeaturedImagesHook(api, self.toast, self._session_lost)

    def _session_lost(self) -> None:
        if self.authenticated:
            _logger.info("Session rejected, sending admin back to login")
        self.authenticated = False
        self.needs_login = True

    async def login(self, id_token: str) -> bool:
        try:
            await self.api.login(id_token)
        except Unauthorized:
            self.toast.error("Invalid credentials")
            return False
        except ApiError as e:
            self.toast.error(e.message or "Login failed")
            return False
        except httpx.HTTPError as e:
            _logger.error(f"Login request failed: {e}")
            self.toast.error("Login failed")
            return False
        self.authenticated = True
        self.needs_login = False
        return True

    async def start(self) -> bool:
        """Check the session and load every tab; False means go to login."""
        try:
            verified = await self.api.verify()
        except (ApiError, httpx.HTTPError) as e:
            _logger.error(f"Session check failed: {e}")
            self.toast.error("Could not reach the server")
            return False
        if not verified:
            self._session_lost()
            return False
        self.authenticated = True
        self.needs_login = False
        await self.refresh_all()
        return True

    async def refresh_all(self) -> None:
        await asyncio.gather(self.products.refresh(), self.bookings.refresh(), self.featured.refresh())

    async def logout(self) -> bool:
        try:
            await self.api.logout()
        except (ApiError, httpx.HTTPError) as e:
            _logger.error(f"Logout failed: {e}")
            self.toast.error("Logout failed")
            return False
        self.authenticated = False
        self.needs_login = True
        return True

    def switch_tab(self, tab: str) -> None:
        if tab not in TABS:
            raise ValueError(f"Unknown tab {tab!r}")
        self.active_tab = tab

    @property
    def counts(self) -> Dict[str, int]:
        return {
            "products": len(self.products.products),
            "pending": self.bookings.pending_count,
            "emergency": self.bookings.emergency_count,
            "featured": len(self.featured.images),
        }
