import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from pymongo.database import Database

import database
from auth import AuthService, Identity, get_identity
from config import settings
from database import get_db
from errors import install_error_handlers
from schemas import (
    Accessory,
    AccessoryUpdate,
    Brand,
    BrandUpdate,
    LoginRequest,
    PasswordUpdate,
    Product,
    ProductUpdate,
    RegisterRequest,
    SparePart,
    SparePartUpdate,
    UserUpdate,
)
from services import (
    AccessoryService,
    BrandService,
    CatalogItemService,
    ProductService,
    SparePartService,
    UserService,
)

logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if database.db is not None:
        database.ensure_indexes(database.db)
        if settings.admin_email and settings.admin_password:
            AuthService(database.db).bootstrap_admin(settings.admin_email, settings.admin_password)
    else:
        logger.warning("DATABASE_URL / DATABASE_NAME not set, running without a database")
    yield


app = FastAPI(title="Model Vehicle Catalog API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

install_error_handlers(app)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed = (time.perf_counter() - started) * 1000
    logger.info("%s %s %d %.1fms", request.method, request.url.path, response.status_code, elapsed)
    return response


# Envelope

def ok(data: Any = None, count: Optional[int] = None, message: Optional[str] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": True}
    if data is not None:
        body["data"] = data
    if count is not None:
        body["count"] = count
    if message is not None:
        body["message"] = message
    return body


def listing(items: List[dict]) -> Dict[str, Any]:
    return ok(items, count=len(items))


def query_params(request: Request) -> Dict[str, str]:
    return dict(request.query_params)


# Service providers

def auth_service(db: Database = Depends(get_db)) -> AuthService:
    return AuthService(db)


def user_service(db: Database = Depends(get_db)) -> UserService:
    return UserService(db)


def brand_service(db: Database = Depends(get_db)) -> BrandService:
    return BrandService(db)


def product_service(db: Database = Depends(get_db)) -> ProductService:
    return ProductService(db)


def accessory_service(db: Database = Depends(get_db)) -> AccessoryService:
    return AccessoryService(db)


def spare_part_service(db: Database = Depends(get_db)) -> SparePartService:
    return SparePartService(db)


# Health

@app.get("/")
def read_root():
    return {"message": "Model Vehicle Catalog API running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if settings.database_url else "❌ Not Set",
        "database_name": "✅ Set" if settings.database_name else "❌ Not Set",
        "connection_status": "Not Connected",
        "collections": [],
    }
    try:
        if database.db is not None:
            response["collections"] = database.db.list_collection_names()[:10]
            response["database"] = "✅ Connected & Working"
            response["connection_status"] = "Connected"
    except Exception as e:
        response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"
    return response


# Auth

@app.post("/api/auth/register", status_code=201)
def register(body: RegisterRequest, service: AuthService = Depends(auth_service)):
    user, token = service.register(body)
    return ok({"user": user, "token": token})


@app.post("/api/auth/login")
def login(body: LoginRequest, service: AuthService = Depends(auth_service)):
    user, token = service.login(body)
    return ok({"user": user, "token": token})


@app.get("/api/auth/me")
def me(identity: Identity = Depends(get_identity), service: AuthService = Depends(auth_service)):
    return ok(service.current_user(identity))


# Users

@app.get("/api/users")
def list_users(
    request: Request,
    identity: Identity = Depends(get_identity),
    service: UserService = Depends(user_service),
):
    return listing(service.list(identity, query_params(request)))


@app.get("/api/users/{user_id}")
def get_user(user_id: str, identity: Identity = Depends(get_identity), service: UserService = Depends(user_service)):
    return ok(service.get(identity, user_id))


@app.put("/api/users/{user_id}")
def update_user(
    user_id: str,
    body: UserUpdate,
    identity: Identity = Depends(get_identity),
    service: UserService = Depends(user_service),
):
    return ok(service.update(identity, user_id, body))


@app.put("/api/users/{user_id}/password")
def update_password(
    user_id: str,
    body: PasswordUpdate,
    identity: Identity = Depends(get_identity),
    service: UserService = Depends(user_service),
):
    service.update_password(identity, user_id, body)
    return ok(message="Password updated successfully")


@app.delete("/api/users/{user_id}")
def delete_user(user_id: str, identity: Identity = Depends(get_identity), service: UserService = Depends(user_service)):
    service.delete(identity, user_id)
    return ok({})


# Brands

@app.get("/api/brands")
def list_brands(request: Request, service: BrandService = Depends(brand_service)):
    return listing(service.list(query_params(request)))


@app.get("/api/brands/{brand_id}")
def get_brand(brand_id: str, service: BrandService = Depends(brand_service)):
    return ok(service.get(brand_id))


@app.post("/api/brands", status_code=201)
def create_brand(body: Brand, identity: Identity = Depends(get_identity), service: BrandService = Depends(brand_service)):
    return ok(service.create(body))


@app.put("/api/brands/{brand_id}")
def update_brand(
    brand_id: str,
    body: BrandUpdate,
    identity: Identity = Depends(get_identity),
    service: BrandService = Depends(brand_service),
):
    return ok(service.update(brand_id, body))


@app.delete("/api/brands/{brand_id}")
def delete_brand(brand_id: str, identity: Identity = Depends(get_identity), service: BrandService = Depends(brand_service)):
    service.delete(brand_id)
    return ok({})


# Products

@app.get("/api/products")
def list_products(request: Request, service: ProductService = Depends(product_service)):
    return listing(service.list(query_params(request)))


@app.get("/api/products/slug/{slug}")
def get_product_by_slug(slug: str, service: ProductService = Depends(product_service)):
    return ok(service.get_by_slug(slug))


@app.get("/api/products/{product_id}")
def get_product(product_id: str, service: ProductService = Depends(product_service)):
    return ok(service.get(product_id))


@app.get("/api/products/{product_id}/spare-parts")
def get_product_with_spare_parts(product_id: str, service: ProductService = Depends(product_service)):
    return ok(service.with_spare_parts(product_id))


@app.get("/api/products/{product_id}/accessories")
def get_product_with_accessories(product_id: str, service: ProductService = Depends(product_service)):
    return ok(service.with_accessories(product_id))


@app.get("/api/products/{product_id}/complete")
def get_complete_product(product_id: str, service: ProductService = Depends(product_service)):
    return ok(service.complete(product_id))


@app.post("/api/products", status_code=201)
def create_product(
    body: Product,
    identity: Identity = Depends(get_identity),
    service: ProductService = Depends(product_service),
):
    return ok(service.create(body))


@app.put("/api/products/{product_id}")
def update_product(
    product_id: str,
    body: ProductUpdate,
    identity: Identity = Depends(get_identity),
    service: ProductService = Depends(product_service),
):
    return ok(service.update(product_id, body))


@app.delete("/api/products/{product_id}")
def delete_product(
    product_id: str,
    identity: Identity = Depends(get_identity),
    service: ProductService = Depends(product_service),
):
    service.delete(product_id)
    return ok({})


# Accessories and spare parts share one set of handlers per collection

def add_catalog_item_routes(prefix: str, provider, create_model, update_model) -> None:
    @app.get(prefix, name=f"list{prefix}")
    def list_items(request: Request, service: CatalogItemService = Depends(provider)):
        return listing(service.list(query_params(request)))

    @app.get(prefix + "/slug/{slug}", name=f"get{prefix}_by_slug")
    def get_item_by_slug(slug: str, service: CatalogItemService = Depends(provider)):
        return ok(service.get_by_slug(slug))

    @app.get(prefix + "/product/{product_id}", name=f"list{prefix}_for_product")
    def list_items_for_product(product_id: str, service: CatalogItemService = Depends(provider)):
        return listing(service.for_product(product_id))

    @app.get(prefix + "/{item_id}", name=f"get{prefix}")
    def get_item(item_id: str, service: CatalogItemService = Depends(provider)):
        return ok(service.get(item_id))

    @app.post(prefix, status_code=201, name=f"create{prefix}")
    def create_item(
        body: create_model,
        identity: Identity = Depends(get_identity),
        service: CatalogItemService = Depends(provider),
    ):
        return ok(service.create(body))

    @app.put(prefix + "/{item_id}", name=f"update{prefix}")
    def update_item(
        item_id: str,
        body: update_model,
        identity: Identity = Depends(get_identity),
        service: CatalogItemService = Depends(provider),
    ):
        return ok(service.update(item_id, body))

    @app.delete(prefix + "/{item_id}", name=f"delete{prefix}")
    def delete_item(
        item_id: str,
        identity: Identity = Depends(get_identity),
        service: CatalogItemService = Depends(provider),
    ):
        service.delete(item_id)
        return ok({})


add_catalog_item_routes("/api/accessories", accessory_service, Accessory, AccessoryUpdate)
add_catalog_item_routes("/api/spare-parts", spare_part_service, SparePart, SparePartUpdate)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.port)
