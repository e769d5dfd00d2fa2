"""
Database Schemas

MongoDB collection schemas as Pydantic models. Stored documents and JSON
bodies use camelCase keys (originalPrice, inStock, publicId ...); Python code
uses the snake_case attribute names.

Collections:
- products: shop products managed from the admin dashboard
- bookings: appointment requests from the public site
- featured_images: hero slider images backed by the image CDN
"""

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

CATEGORIES = ["Pet Food", "Accessories", "Nutrition", "Grooming", "Medications"]


def compute_discount(price: float, original_price: float) -> int:
    """Whole-percent discount, rounded half up; 0 unless originalPrice > price."""
    if not original_price or original_price <= price:
        return 0
    pct = Decimal(str((original_price - price) / original_price * 100))
    return int(pct.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, allow_inf_nan=False)


# ------------------------- Products ---------------------------
class ProductFields(CamelModel):
    name: str = Field(..., min_length=1, description="Product name")
    description: str = Field("", description="Long description")
    image: str = Field("", description="Image CDN URL")
    price: float = Field(..., gt=0, description="Selling price")
    original_price: float = Field(..., gt=0, description="Price before discount")
    rating: float = Field(0, ge=0, le=5, description="Star rating 0-5")
    category: str = Field("", description="Category, open set (see CATEGORIES)")
    in_stock: bool = True
    on_sale: bool = False
    highlight: str = ""
    disclaimer: str = ""

    @field_validator("name", "description", "image", "category", "highlight", "disclaimer", mode="before")
    @classmethod
    def _strip(cls, v):
        if v is None:
            return ""
        return v.strip() if isinstance(v, str) else v

    @field_validator("rating", mode="before")
    @classmethod
    def _blank_rating(cls, v):
        return 0 if v is None or v == "" else v

    @model_validator(mode="after")
    def _price_order(self):
        if self.original_price < self.price:
            raise ValueError("originalPrice must be >= price")
        return self

    def to_document(self) -> dict:
        doc = self.model_dump(by_alias=True)
        doc["discount"] = compute_discount(self.price, self.original_price)
        return doc


class ProductCreate(ProductFields):
    image: str = Field(..., min_length=1, description="Image CDN URL (required on create)")


class SeedProduct(ProductFields):
    category: str = "Uncategorized"

    @field_validator("category", mode="after")
    @classmethod
    def _default_category(cls, v):
        return v or "Uncategorized"


class ProductUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    image: Optional[str] = None
    price: Optional[float] = Field(None, gt=0)
    original_price: Optional[float] = Field(None, gt=0)
    rating: Optional[float] = Field(None, ge=0, le=5)
    category: Optional[str] = None
    in_stock: Optional[bool] = None
    on_sale: Optional[bool] = None
    highlight: Optional[str] = None
    disclaimer: Optional[str] = None

    def changes(self) -> dict:
        """Only the fields the caller actually sent, keyed by attribute name"""
        return {k: v for k, v in self.model_dump().items() if v is not None}


class Product(ProductFields):
    """A stored product as read back from the store."""

    id: str
    discount: int = 0
    wishlist: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @model_validator(mode="after")
    def _price_order(self):
        # no price ordering check on read, discount is whatever was stored
        return self


# ------------------------- Bookings ---------------------------
_REQUIRED_LABELS = {"name": "Name", "phone": "Phone number", "purpose": "Purpose"}


class BookingCreate(CamelModel):
    name: str = Field("", validate_default=True)
    phone: str = Field("", validate_default=True)
    purpose: str = Field("", validate_default=True)
    email: str = ""
    preferred_date: str = ""
    preferred_time: str = ""
    visit_type: str = ""
    is_emergency: bool = False

    @field_validator("name", "phone", "purpose", mode="before")
    @classmethod
    def _required(cls, v, info):
        v = v.strip() if isinstance(v, str) else ""
        if not v:
            raise ValueError(f"{_REQUIRED_LABELS[info.field_name]} is required")
        return v

    @field_validator("email", mode="before")
    @classmethod
    def _blank_email(cls, v):
        return v.strip() if isinstance(v, str) else ""

    @field_validator("preferred_date", "preferred_time", "visit_type", mode="before")
    @classmethod
    def _blank_text(cls, v):
        return v or ""

    @field_validator("is_emergency", mode="before")
    @classmethod
    def _truthy(cls, v):
        return bool(v)

    def to_document(self) -> dict:
        doc = self.model_dump(by_alias=True)
        doc["booked"] = False
        return doc


class BookingUpdate(CamelModel):
    booked: bool


class Booking(CamelModel):
    id: str
    name: str
    phone: str
    email: str = ""
    purpose: str
    preferred_date: str = ""
    preferred_time: str = ""
    visit_type: str = ""
    is_emergency: bool = False
    booked: bool = False
    created_at: Optional[datetime] = None


# ------------------------- Featured images --------------------
DEFAULT_ALT = "Curavet Pet Clinic"


class UploadResult(CamelModel):
    url: str
    public_id: str
    width: Optional[int] = None
    height: Optional[int] = None


class FeaturedImage(CamelModel):
    id: str
    url: str
    public_id: str
    alt: str = ""
    width: Optional[int] = None
    height: Optional[int] = None
    order: int
    created_at: Optional[datetime] = None


# ------------------------- Request bodies ---------------------
class LoginRequest(CamelModel):
    id_token: Optional[str] = None


class WishlistRequest(CamelModel):
    product_id: str = Field(..., min_length=1)
    action: Literal["add", "remove"]


class BlobDeleteRequest(CamelModel):
    public_id: Optional[str] = None


class SeedRequest(CamelModel):
    products: List[SeedProduct]


def describe_validation_error(errors: list) -> str:
    """One human readable line from a pydantic error list"""
    if not errors:
        return "Invalid request"
    err = errors[0]
    msg = err.get("msg", "Invalid value")
    if msg.startswith("Value error, "):
        return msg[len("Value error, "):]
    fields = [str(p) for p in err.get("loc", ()) if p != "body"]
    return f"{fields[-1]}: {msg}" if fields else msg
