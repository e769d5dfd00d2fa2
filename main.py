import os
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, File, Form, HTTPException, Request, Response, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from pydantic import BaseModel, ValidationError
from pymongo.errors import PyMongoError
from starlette.concurrency import run_in_threadpool

from auth import (
    TokenService,
    admin_required,
    clear_session_cookie,
    get_token_from_request,
    set_session_cookie,
)
from config import Settings
from database import Database, DatabaseUnavailable
from logger import get_logger
from repositories import (
    BookingRepository,
    FeaturedImageRepository,
    InvalidRequestError,
    NotFoundError,
    ProductRepository,
)
from schemas import (
    DEFAULT_ALT,
    BlobDeleteRequest,
    BookingCreate,
    BookingUpdate,
    LoginRequest,
    ProductCreate,
    ProductUpdate,
    SeedRequest,
    WishlistRequest,
    describe_validation_error,
)
from uploads import HERO_IMAGES, PRODUCT_IMAGES, ImageStore, UploadError, UploadProfile

_logger = get_logger(__name__)

LOGIN_PATH = "/admin"
DASHBOARD_PATH = "/admin/products"

router = APIRouter()


# ------------------------- Dependencies -----------------------
def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_tokens(request: Request) -> TokenService:
    return request.app.state.tokens


def get_images(request: Request) -> ImageStore:
    return request.app.state.images


def get_products(request: Request) -> ProductRepository:
    return request.app.state.products


def get_bookings(request: Request) -> BookingRepository:
    return request.app.state.bookings


def get_featured(request: Request) -> FeaturedImageRepository:
    return request.app.state.featured


async def _upload(file: Optional[UploadFile], images: ImageStore, profile: UploadProfile):
    if file is None:
        raise HTTPException(status_code=400, detail="No file provided")
    data = await file.read()
    if not data:
        raise HTTPException(status_code=400, detail="No file provided")
    return await run_in_threadpool(images.upload_image, data, file.content_type, profile)


# ------------------------- Basic Routes -----------------------
@router.get("/")
def root():
    return {"message": "Curavet Pet Clinic API"}


@router.get("/health")
def health(request: Request):
    report = request.app.state.database.ping()
    report["backend"] = "running"
    report["images"] = "configured" if request.app.state.images.configured else "not configured"
    return report


# ------------------------- Auth Endpoints ---------------------
@router.post("/api/auth/login")
def login(payload: LoginRequest, response: Response, tokens: TokenService = Depends(get_tokens), settings: Settings = Depends(get_settings)):
    if not payload.id_token:
        raise HTTPException(status_code=400, detail="ID token required")
    if not tokens.verify_external_assertion(payload.id_token):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    set_session_cookie(response, tokens.issue_session_token(), settings)
    _logger.info("Admin signed in")
    return {"success": True}


@router.post("/api/auth/logout")
def logout(response: Response):
    clear_session_cookie(response)
    return {"success": True}


@router.get("/api/auth/verify")
def verify(request: Request, tokens: TokenService = Depends(get_tokens)):
    token = get_token_from_request(request)
    if not token:
        return JSONResponse({"authenticated": False}, status_code=401)
    return {"authenticated": tokens.verify_session_token(token)}


# ------------------------- Products ---------------------------
@router.get("/api/products")
def list_public_products(products: ProductRepository = Depends(get_products)):
    return {"products": [p.model_dump(by_alias=True) for p in products.list()]}


@router.get("/api/admin/products", dependencies=[Depends(admin_required)])
def list_products(products: ProductRepository = Depends(get_products)):
    return {"products": [p.model_dump(by_alias=True) for p in products.list()]}


@router.post("/api/admin/products", dependencies=[Depends(admin_required)])
def create_product(payload: ProductCreate, products: ProductRepository = Depends(get_products)):
    return {"id": products.create(payload), "success": True}


@router.post("/api/admin/products/seed", dependencies=[Depends(admin_required)])
def seed_products(payload: SeedRequest, products: ProductRepository = Depends(get_products)):
    return {"success": True, "count": products.seed(payload.products)}


@router.get("/api/admin/products/{product_id}", dependencies=[Depends(admin_required)])
def get_product(product_id: str, products: ProductRepository = Depends(get_products)):
    return products.get(product_id).model_dump(by_alias=True)


@router.put("/api/admin/products/{product_id}", dependencies=[Depends(admin_required)])
def update_product(product_id: str, payload: ProductUpdate, products: ProductRepository = Depends(get_products)):
    products.update(product_id, payload)
    return {"success": True}


@router.delete("/api/admin/products/{product_id}", dependencies=[Depends(admin_required)])
def delete_product(product_id: str, products: ProductRepository = Depends(get_products)):
    products.delete(product_id)
    return {"success": True}


@router.post("/api/wishlist")
def update_wishlist(payload: WishlistRequest, products: ProductRepository = Depends(get_products)):
    products.adjust_wishlist(payload.product_id, 1 if payload.action == "add" else -1)
    return {"success": True}


# ------------------------- Uploads ----------------------------
@router.post("/api/admin/upload", dependencies=[Depends(admin_required)])
async def admin_upload(file: Optional[UploadFile] = File(None), images: ImageStore = Depends(get_images)):
    result = await _upload(file, images, PRODUCT_IMAGES)
    return {"url": result.url, "publicId": result.public_id}


@router.post("/api/upload")
async def upload(file: Optional[UploadFile] = File(None), images: ImageStore = Depends(get_images)):
    result = await _upload(file, images, PRODUCT_IMAGES)
    return result.model_dump(by_alias=True)


# ------------------------- Bookings ---------------------------
@router.get("/api/bookings")
def list_bookings(bookings: BookingRepository = Depends(get_bookings)):
    return {"bookings": [b.model_dump(by_alias=True) for b in bookings.list()]}


@router.post("/api/bookings", status_code=201)
def create_booking(payload: BookingCreate, bookings: BookingRepository = Depends(get_bookings)):
    return {"success": True, "id": bookings.create(payload)}


@router.patch("/api/admin/bookings/{booking_id}", dependencies=[Depends(admin_required)])
def update_booking(booking_id: str, payload: BookingUpdate, bookings: BookingRepository = Depends(get_bookings)):
    bookings.update(booking_id, payload)
    return {"success": True}


@router.delete("/api/admin/bookings/{booking_id}", dependencies=[Depends(admin_required)])
def delete_booking(booking_id: str, bookings: BookingRepository = Depends(get_bookings)):
    bookings.delete(booking_id)
    return {"success": True}


# ------------------------- Featured images --------------------
@router.get("/api/featured-images")
def list_featured_images(featured: FeaturedImageRepository = Depends(get_featured)):
    return {"images": [i.model_dump(by_alias=True) for i in featured.list()]}


@router.post("/api/featured-images")
async def upload_featured_image(file: Optional[UploadFile] = File(None), images: ImageStore = Depends(get_images)):
    result = await _upload(file, images, HERO_IMAGES)
    return result.model_dump(by_alias=True)


@router.delete("/api/featured-images")
def delete_featured_blob(payload: BlobDeleteRequest, images: ImageStore = Depends(get_images)):
    if payload.public_id:
        images.delete_image(payload.public_id)
    return {"success": True}


class FeaturedImageAlt(BaseModel):
    alt: str


@router.post("/api/admin/featured-images", dependencies=[Depends(admin_required)])
async def create_featured_image(
    file: Optional[UploadFile] = File(None),
    alt: str = Form(""),
    images: ImageStore = Depends(get_images),
    featured: FeaturedImageRepository = Depends(get_featured),
):
    result = await _upload(file, images, HERO_IMAGES)
    image = await run_in_threadpool(featured.create, result, alt.strip() or DEFAULT_ALT)
    return image.model_dump(by_alias=True)


@router.patch("/api/admin/featured-images/{image_id}", dependencies=[Depends(admin_required)])
def update_featured_image(image_id: str, payload: FeaturedImageAlt, featured: FeaturedImageRepository = Depends(get_featured)):
    featured.update(image_id, payload.alt.strip() or DEFAULT_ALT)
    return {"success": True}


@router.delete("/api/admin/featured-images/{image_id}", dependencies=[Depends(admin_required)])
def delete_featured_image(image_id: str, images: ImageStore = Depends(get_images), featured: FeaturedImageRepository = Depends(get_featured)):
    image = featured.get(image_id)
    images.delete_image(image.public_id)
    featured.delete(image_id)
    return {"success": True}


# ------------------------- Admin pages ------------------------
@router.get(LOGIN_PATH, response_class=HTMLResponse)
def login_page():
    return "<!doctype html><title>Curavet Admin</title><div id=\"admin-login\"></div>"


@router.get(DASHBOARD_PATH, response_class=HTMLResponse)
def dashboard_page():
    return "<!doctype html><title>Curavet Dashboard</title><div id=\"admin-dashboard\"></div>"


# ------------------------- App factory ------------------------
def _error(status: int, detail: str) -> JSONResponse:
    return JSONResponse({"detail": detail}, status_code=status)


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def request_validation(request: Request, exc: RequestValidationError):
        return _error(400, describe_validation_error(list(exc.errors())))

    @app.exception_handler(InvalidRequestError)
    async def invalid_request(request: Request, exc: InvalidRequestError):
        return _error(400, str(exc))

    @app.exception_handler(NotFoundError)
    async def not_found(request: Request, exc: NotFoundError):
        return _error(404, str(exc))

    @app.exception_handler(UploadError)
    async def upload_error(request: Request, exc: UploadError):
        return _error(exc.status, exc.message)

    @app.exception_handler(DatabaseUnavailable)
    async def database_unavailable(request: Request, exc: DatabaseUnavailable):
        _logger.error(f"{request.method} {request.url.path}: {exc}")
        return _error(500, "Database not configured")

    @app.exception_handler(PyMongoError)
    async def database_error(request: Request, exc: PyMongoError):
        _logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return _error(500, "Database operation failed")

    @app.exception_handler(ValidationError)
    async def malformed_record(request: Request, exc: ValidationError):
        _logger.error(f"{request.method} {request.url.path}: malformed stored record: {exc}")
        return _error(500, "Failed to read records")


def _install_route_guard(app: FastAPI) -> None:
    @app.middleware("http")
    async def admin_route_guard(request: Request, call_next):
        path = request.url.path
        if path in (LOGIN_PATH, LOGIN_PATH + "/") or path.startswith(DASHBOARD_PATH):
            token = get_token_from_request(request)
            authenticated = bool(token) and app.state.tokens.verify_session_token(token)
            if path.startswith(DASHBOARD_PATH) and not authenticated:
                return RedirectResponse(LOGIN_PATH, status_code=307)
            if not path.startswith(DASHBOARD_PATH) and authenticated:
                return RedirectResponse(DASHBOARD_PATH, status_code=307)
        return await call_next(request)


def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    tokens: Optional[TokenService] = None,
    images: Optional[ImageStore] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    database = database or Database.from_settings(settings)

    app = FastAPI(title="Curavet Pet Clinic API")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.database = database
    app.state.tokens = tokens or TokenService(settings)
    app.state.images = images or ImageStore(settings)
    app.state.products = ProductRepository(database)
    app.state.bookings = BookingRepository(database)
    app.state.featured = FeaturedImageRepository(database)
    app.add_event_handler("shutdown", app.state.tokens.close)

    _install_error_handlers(app)
    _install_route_guard(app)
    app.include_router(router)
    return app


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(create_app(), host="0.0.0.0", port=port)
