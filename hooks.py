"""
Dashboard state containers, one per resource.

Each hook owns a cached copy of its list plus the flags the dashboard binds
to. Any successful mutation is followed by a full refetch (awaited before the
mutation returns), so the cache always reflects server-computed fields such
as discount and timestamps. Failed mutations leave the cache and the form
untouched and report through the toast channel; a 401 goes to the
on_unauthorized callback instead.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

import httpx

from api_client import AdminApiClient, ApiError, Unauthorized
from logger import get_logger
from schemas import CATEGORIES, Booking, FeaturedImage, Product
from toast import Toast
from uploads import HERO_IMAGES, PRODUCT_IMAGES, UploadError, UploadProfile, validate_image

_logger = get_logger(__name__)


class LoadState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    ERROR = "error"


@dataclass
class ImageFile:
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


def _check_image(file: ImageFile, profile: UploadProfile) -> Optional[str]:
    try:
        validate_image(file.content_type, file.size, profile)
    except UploadError as e:
        return "Please select an image file" if e.message == "File must be an image" else e.message
    return None


def _matches(query: str, *values: Optional[str]) -> bool:
    q = query.strip().lower()
    if not q:
        return True
    return any(q in (v or "").lower() for v in values)


class ResourceHook:
    load_error = "Failed to load"

    def __init__(self, api: AdminApiClient, toast: Toast, on_unauthorized: Optional[Callable[[], None]] = None):
        self.api = api
        self.toast = toast
        self.on_unauthorized = on_unauthorized
        self.state = LoadState.IDLE
        self.search = ""
        self.items: list = []

    @property
    def loading(self) -> bool:
        return self.state is LoadState.LOADING

    async def _fetch(self) -> list:
        raise NotImplementedError

    def _unauthorized(self) -> None:
        if self.on_unauthorized:
            self.on_unauthorized()

    async def refresh(self) -> None:
        self.state = LoadState.LOADING
        try:
            self.items = await self._fetch()
        except Unauthorized:
            self.state = LoadState.ERROR
            self._unauthorized()
            return
        except (ApiError, httpx.HTTPError) as e:
            _logger.error(f"{self.load_error}: {e}")
            self.state = LoadState.ERROR
            self.toast.error(self.load_error)
            return
        self.state = LoadState.LOADED

    def _report(self, exc: Exception, fallback: str) -> None:
        if isinstance(exc, Unauthorized):
            self._unauthorized()
            return
        _logger.error(f"{fallback}: {exc}")
        if isinstance(exc, ApiError) and exc.status < 500 and exc.message:
            self.toast.error(exc.message)
        else:
            self.toast.error(fallback)


# ------------------------- Products ---------------------------
@dataclass
class ProductForm:
    name: str = ""
    description: str = ""
    price: str = ""
    original_price: str = ""
    rating: str = ""
    category: str = CATEGORIES[0]
    in_stock: bool = True
    on_sale: bool = False
    highlight: str = ""
    disclaimer: str = ""

    @classmethod
    def from_product(cls, product: Product) -> "ProductForm":
        return cls(
            name=product.name,
            description=product.description,
            price=f"{product.price:g}",
            original_price=f"{product.original_price:g}",
            rating=f"{product.rating:g}",
            category=product.category,
            in_stock=product.in_stock,
            on_sale=product.on_sale,
            highlight=product.highlight,
            disclaimer=product.disclaimer,
        )

    def validate(self, image_required: bool) -> Dict[str, str]:
        errors: Dict[str, str] = {}
        price = _number(self.price)
        original = _number(self.original_price)
        if not self.name.strip():
            errors["name"] = "Name is required"
        if price is None or price <= 0:
            errors["price"] = "Valid price is required"
        if original is None or original <= 0:
            errors["original_price"] = "Valid original price is required"
        elif price is not None and original < price:
            errors["original_price"] = "Must be >= selling price"
        if self.rating.strip():
            rating = _number(self.rating)
            if rating is None or not 0 <= rating <= 5:
                errors["rating"] = "Rating must be 0-5"
        if image_required:
            errors["image"] = "Image is required"
        return errors

    def to_payload(self, image_url: str) -> dict:
        return {
            "name": self.name.strip(),
            "description": self.description.strip(),
            "image": image_url,
            "price": float(self.price),
            "originalPrice": float(self.original_price),
            "rating": _number(self.rating) or 0,
            "category": self.category,
            "inStock": self.in_stock,
            "onSale": self.on_sale,
            "highlight": self.highlight.strip(),
            "disclaimer": self.disclaimer.strip(),
        }


def _number(value: str) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class ProductsHook(ResourceHook):
    load_error = "Failed to load products"

    def __init__(self, api: AdminApiClient, toast: Toast, on_unauthorized: Optional[Callable[[], None]] = None):
        super().__init__(api, toast, on_unauthorized)
        self.items: List[Product] = []
        self.show_form = False
        self.editing: Optional[Product] = None
        self.form = ProductForm()
        self.image_file: Optional[ImageFile] = None
        self.image_preview = ""
        self.form_errors: Dict[str, str] = {}
        self.saving = False
        self.delete_target: Optional[Product] = None
        self.deleting = False
        self.detail: Optional[Product] = None
        self.seeding = False

    @property
    def products(self) -> List[Product]:
        return self.items

    @property
    def filtered(self) -> List[Product]:
        return [p for p in self.items if _matches(self.search, p.name, p.category, p.description)]

    async def _fetch(self) -> List[Product]:
        return [Product.model_validate(p) for p in await self.api.list_products()]

    # ------------------------- Form ----------------------------
    def _reset_form(self, editing: Optional[Product], form: ProductForm, preview: str) -> None:
        self.editing = editing
        self.form = form
        self.image_file = None
        self.image_preview = preview
        self.form_errors = {}

    def open_add_form(self) -> None:
        self._reset_form(None, ProductForm(), "")
        self.show_form = True

    def open_edit_form(self, product: Product) -> None:
        self._reset_form(product, ProductForm.from_product(product), product.image)
        self.show_form = True

    def close_form(self) -> None:
        self._reset_form(None, ProductForm(), "")
        self.show_form = False

    def choose_image(self, file: ImageFile) -> bool:
        error = _check_image(file, PRODUCT_IMAGES)
        if error:
            self.form_errors["image"] = error
            return False
        self.image_file = file
        self.form_errors.pop("image", None)
        return True

    def validate(self) -> bool:
        needs_image = self.editing is None and self.image_file is None and not self.image_preview
        self.form_errors = self.form.validate(image_required=needs_image)
        return not self.form_errors

    async def submit(self) -> bool:
        """Create or update from the form; True when saved."""
        if not self.validate():
            return False
        self.saving = True
        try:
            image_url = self.editing.image if self.editing else ""
            if self.image_file:
                uploaded = await self.api.upload_product_image(
                    self.image_file.filename, self.image_file.data, self.image_file.content_type
                )
                image_url = uploaded["url"]
            payload = self.form.to_payload(image_url)
            if self.editing:
                await self.api.update_product(self.editing.id, payload)
                message = "Product updated successfully"
            else:
                await self.api.create_product(payload)
                message = "Product added successfully"
        except (ApiError, httpx.HTTPError) as e:
            self._report(e, "Failed to save product")
            return False
        finally:
            self.saving = False
        self.toast.success(message)
        self.close_form()
        await self.refresh()
        return True

    # ------------------------- Delete --------------------------
    async def delete(self) -> bool:
        if self.delete_target is None:
            return False
        self.deleting = True
        try:
            await self.api.delete_product(self.delete_target.id)
        except (ApiError, httpx.HTTPError) as e:
            self._report(e, "Failed to delete product")
            return False
        finally:
            self.deleting = False
        self.toast.success("Product deleted successfully")
        self.delete_target = None
        await self.refresh()
        return True

    # ------------------------- Seed ----------------------------
    async def seed(self, products: list) -> int:
        self.seeding = True
        try:
            count = await self.api.seed_products(products)
        except (ApiError, httpx.HTTPError) as e:
            self._report(e, "Failed to seed products")
            return 0
        finally:
            self.seeding = False
        self.toast.success(f"Seeded {count} products successfully")
        await self.refresh()
        return count

    # ------------------------- Detail --------------------------
    async def view_detail(self, product: Product) -> None:
        """Show the cached copy at once, then swap in the latest server copy."""
        self.detail = product
        try:
            latest = Product.model_validate(await self.api.get_product(product.id))
        except (ApiError, httpx.HTTPError) as e:
            _logger.debug(f"Detail refresh for {product.id} failed, keeping cached copy: {e}")
            return
        if self.detail is product:
            self.detail = latest


# ------------------------- Bookings ---------------------------
class BookingsHook(ResourceHook):
    load_error = "Failed to load bookings"

    def __init__(self, api: AdminApiClient, toast: Toast, on_unauthorized: Optional[Callable[[], None]] = None):
        super().__init__(api, toast, on_unauthorized)
        self.items: List[Booking] = []
        self.delete_target: Optional[Booking] = None
        self.deleting = False
        self.updating = False

    @property
    def bookings(self) -> List[Booking]:
        return self.items

    @property
    def filtered(self) -> List[Booking]:
        return [b for b in self.items if _matches(self.search, b.name, b.phone, b.purpose, b.visit_type)]

    @property
    def pending_count(self) -> int:
        return sum(1 for b in self.items if not b.booked)

    @property
    def emergency_count(self) -> int:
        return sum(1 for b in self.items if b.is_emergency and not b.booked)

    async def _fetch(self) -> List[Booking]:
        return [Booking.model_validate(b) for b in await self.api.list_bookings()]

    async def toggle_booked(self, booking: Booking) -> bool:
        self.updating = True
        try:
            await self.api.set_booked(booking.id, not booking.booked)
        except (ApiError, httpx.HTTPError) as e:
            self._report(e, "Failed to update booking")
            return False
        finally:
            self.updating = False
        self.toast.success("Marked as pending" if booking.booked else "Marked as booked")
        await self.refresh()
        return True

    async def delete(self) -> bool:
        if self.delete_target is None:
            return False
        self.deleting = True
        try:
            await self.api.delete_booking(self.delete_target.id)
        except (ApiError, httpx.HTTPError) as e:
            self._report(e, "Failed to delete booking")
            return False
        finally:
            self.deleting = False
        self.toast.success("Booking deleted")
        self.delete_target = None
        await self.refresh()
        return True


# ------------------------- Featured images --------------------
class FeaturedImagesHook(ResourceHook):
    load_error = "Failed to load featured images"

    def __init__(self, api: AdminApiClient, toast: Toast, on_unauthorized: Optional[Callable[[], None]] = None):
        super().__init__(api, toast, on_unauthorized)
        self.items: List[FeaturedImage] = []
        self.uploading = False
        self.alt = ""
        self.file: Optional[ImageFile] = None
        self.delete_target: Optional[FeaturedImage] = None
        self.deleting = False

    @property
    def images(self) -> List[FeaturedImage]:
        return self.items

    async def _fetch(self) -> List[FeaturedImage]:
        return [FeaturedImage.model_validate(i) for i in await self.api.list_featured_images()]

    def choose_file(self, file: ImageFile) -> bool:
        error = _check_image(file, HERO_IMAGES)
        if error:
            self.toast.error(error)
            return False
        self.file = file
        return True

    async def upload(self) -> bool:
        if self.file is None:
            self.toast.error("Please select an image first")
            return False
        self.uploading = True
        try:
            await self.api.create_featured_image(self.file.filename, self.file.data, self.file.content_type, self.alt)
        except (ApiError, httpx.HTTPError) as e:
            self._report(e, "Failed to upload image")
            return False
        finally:
            self.uploading = False
        self.toast.success("Featured image uploaded successfully")
        self.file = None
        self.alt = ""
        await self.refresh()
        return True

    async def delete(self) -> bool:
        if self.delete_target is None:
            return False
        self.deleting = True
        try:
            await self.api.delete_featured_image(self.delete_target.id)
        except (ApiError, httpx.HTTPError) as e:
            self._report(e, "Failed to delete featured image")
            return False
        finally:
            self.deleting = False
        self.toast.success("Featured image deleted")
        self.delete_target = None
        await self.refresh()
        return True
