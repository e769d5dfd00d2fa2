"""
Repositories for the three admin-managed collections.

Each repository validates input before writing and validates stored documents
on the way out, so a malformed record fails here instead of leaking missing
fields into the dashboard.
"""

from typing import Dict, List

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import ValidationError

from database import Database
from logger import get_logger
from schemas import (
    Booking,
    BookingCreate,
    BookingUpdate,
    FeaturedImage,
    Product,
    ProductCreate,
    ProductFields,
    ProductUpdate,
    SeedProduct,
    UploadResult,
    describe_validation_error,
)

_logger = get_logger(__name__)


class NotFoundError(Exception):
    pass


class InvalidRequestError(Exception):
    pass


def to_object_id(doc_id: str) -> ObjectId:
    try:
        return ObjectId(doc_id)
    except (InvalidId, TypeError):
        raise InvalidRequestError("Invalid id")


def _with_id(doc: Dict) -> Dict:
    d = {**doc}
    d["id"] = str(d.pop("_id"))
    return d


class ProductRepository:
    collection = "products"

    def __init__(self, db: Database):
        self.db = db

    def _find(self, product_id: str) -> Dict:
        doc = self.db.get_document_by_id(self.collection, to_object_id(product_id))
        if not doc:
            raise NotFoundError("Product not found")
        return doc

    def list(self) -> List[Product]:
        docs = self.db.get_documents(self.collection, sort=[("createdAt", -1)])
        return [Product.model_validate(_with_id(d)) for d in docs]

    def get(self, product_id: str) -> Product:
        return Product.model_validate(_with_id(self._find(product_id)))

    def create(self, fields: ProductCreate) -> str:
        doc = fields.to_document()
        doc["wishlist"] = 0
        product_id = self.db.create_document(self.collection, doc)
        _logger.info(f"Created product {product_id} ({fields.name}, discount {doc['discount']}%)")
        return product_id

    def update(self, product_id: str, update: ProductUpdate) -> Product:
        """Apply a partial update; discount is recomputed from the merged prices."""
        changes = update.changes()
        if not changes:
            raise InvalidRequestError("No changes provided")
        current = self.get(product_id)
        merged = current.model_dump(include=set(ProductFields.model_fields))
        merged.update(changes)
        try:
            fields = ProductFields.model_validate(merged)
        except ValidationError as e:
            raise InvalidRequestError(describe_validation_error(e.errors()))
        if not self.db.update_document(self.collection, to_object_id(product_id), fields.to_document()):
            raise NotFoundError("Product not found")
        return self.get(product_id)

    def delete(self, product_id: str) -> None:
        if not self.db.delete_document(self.collection, to_object_id(product_id)):
            raise NotFoundError("Product not found")
        _logger.info(f"Deleted product {product_id}")

    def adjust_wishlist(self, product_id: str, delta: int) -> None:
        """Atomic +1/-1 on the wishlist counter, never going below zero."""
        if delta not in (1, -1):
            raise InvalidRequestError("delta must be +1 or -1")
        oid = to_object_id(product_id)
        if self.db.increment_field(self.collection, oid, "wishlist", delta, floor=0):
            return
        # nothing matched: either the product is gone or the counter is already 0
        if not self.db.get_document_by_id(self.collection, oid):
            raise NotFoundError("Product not found")

    def seed(self, items: List[SeedProduct]) -> int:
        for item in items:
            doc = item.to_document()
            doc["wishlist"] = 0
            self.db.create_document(self.collection, doc)
        _logger.info(f"Seeded {len(items)} products")
        return len(items)


class BookingRepository:
    collection = "bookings"

    def __init__(self, db: Database):
        self.db = db

    def list(self) -> List[Booking]:
        docs = self.db.get_documents(self.collection, sort=[("createdAt", -1)])
        return [Booking.model_validate(_with_id(d)) for d in docs]

    def create(self, fields: BookingCreate) -> str:
        booking_id = self.db.create_document(self.collection, fields.to_document())
        _logger.info(f"New booking {booking_id}{' (emergency)' if fields.is_emergency else ''}")
        return booking_id

    def update(self, booking_id: str, update: BookingUpdate) -> None:
        if not self.db.update_document(self.collection, to_object_id(booking_id), {"booked": update.booked}):
            raise NotFoundError("Booking not found")

    def delete(self, booking_id: str) -> None:
        if not self.db.delete_document(self.collection, to_object_id(booking_id)):
            raise NotFoundError("Booking not found")


class FeaturedImageRepository:
    collection = "featured_images"

    def __init__(self, db: Database):
        self.db = db

    def list(self) -> List[FeaturedImage]:
        docs = self.db.get_documents(self.collection, sort=[("order", 1)])
        return [FeaturedImage.model_validate(_with_id(d)) for d in docs]

    def get(self, image_id: str) -> FeaturedImage:
        doc = self.db.get_document_by_id(self.collection, to_object_id(image_id))
        if not doc:
            raise NotFoundError("Featured image not found")
        return FeaturedImage.model_validate(_with_id(doc))

    def create(self, upload: UploadResult, alt: str) -> FeaturedImage:
        # order is the collection size at write time; two racing uploads may share it
        doc = upload.model_dump(by_alias=True)
        doc["alt"] = alt
        doc["order"] = self.db.count_documents(self.collection)
        image_id = self.db.create_document(self.collection, doc)
        return self.get(image_id)

    def update(self, image_id: str, alt: str) -> None:
        if not self.db.update_document(self.collection, to_object_id(image_id), {"alt": alt}):
            raise NotFoundError("Featured image not found")

    def delete(self, image_id: str) -> None:
        if not self.db.delete_document(self.collection, to_object_id(image_id)):
            raise NotFoundError("Featured image not found")
