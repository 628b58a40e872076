"""
Collection wrappers for users, brands, products, accessories and spare parts.

Stores speak in plain dicts: documents come back through `utils.serialize`
(string `id`, no password hash) and writes stamp `createdAt` / `updatedAt`.
They know nothing about cross-collection rules; those live in `integrity`.
"""
from typing import Any, Callable, Dict, List, Mapping, Optional

from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.database import Database

import database
from errors import bad_request
from utils import canonical_id, serialize, to_object_id

NEWEST_FIRST = [("createdAt", DESCENDING), ("_id", DESCENDING)]


def as_bool(name: str, raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    value = str(raw).strip().lower()
    if value in ("true", "1", "yes"):
        return True
    if value in ("false", "0", "no"):
        return False
    raise bad_request(f"Invalid value for {name}: {raw}")


def as_number(name: str, raw: Any) -> float:
    try:
        return float(raw)
    except (TypeError, ValueError):
        raise bad_request(f"Invalid value for {name}: {raw}")


class MongoStore:
    collection_name: str = ""
    label: str = "resource"
    sort: List = NEWEST_FIRST
    # query parameter -> cast, for exact-match filtering on stored fields
    filter_fields: Dict[str, Callable[[str, Any], Any]] = {}

    def __init__(self, db: Database):
        self.collection = db[self.collection_name]

    def object_id(self, id: str):
        return to_object_id(id, self.label)

    def find_by_id(self, id: str) -> Optional[dict]:
        return serialize(self.collection.find_one({"_id": self.object_id(id)}))

    def find_one(self, field: str, value: Any) -> Optional[dict]:
        return serialize(self.collection.find_one({field: value}))

    def exists(self, field: str, value: Any, exclude_id: Optional[str] = None) -> bool:
        query: Dict[str, Any] = {field: value}
        if exclude_id:
            query["_id"] = {"$ne": self.object_id(exclude_id)}
        return self.collection.count_documents(query, limit=1) > 0

    def build_query(self, params: Mapping[str, Any]) -> Dict[str, Any]:
        query: Dict[str, Any] = {}
        for key, raw in params.items():
            cast = self.filter_fields.get(key)
            if cast is not None:
                query[key] = cast(key, raw)
        return query

    def find_many(self, params: Optional[Mapping[str, Any]] = None) -> List[dict]:
        query = self.build_query(params or {})
        return [serialize(doc) for doc in self.collection.find(query).sort(self.sort)]

    def count(self, query: Optional[Dict[str, Any]] = None) -> int:
        return self.collection.count_documents(query or {})

    def create(self, data: Dict[str, Any]) -> dict:
        now = database.utcnow()
        doc = {**data, "createdAt": now, "updatedAt": now}
        result = self.collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        return serialize(doc)

    def update(self, id: str, changes: Dict[str, Any]) -> Optional[dict]:
        changes = {**changes, "updatedAt": database.utcnow()}
        doc = self.collection.find_one_and_update(
            {"_id": self.object_id(id)},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )
        return serialize(doc)

    def delete(self, id: str) -> bool:
        return self.collection.delete_one({"_id": self.object_id(id)}).deleted_count > 0


def _text(name: str, raw: Any) -> str:
    return str(raw)


class UserStore(MongoStore):
    collection_name = database.USERS
    label = "user"
    filter_fields = {"name": _text, "email": _text, "role": _text, "isActive": as_bool}

    def find_by_email(self, email: str) -> Optional[dict]:
        return self.find_one("email", email)

    def find_credentials(self, *, email: Optional[str] = None, id: Optional[str] = None) -> Optional[dict]:
        """Raw document including the password hash; never hand this to a response."""
        query = {"email": email} if email is not None else {"_id": self.object_id(id)}
        return self.collection.find_one(query)


class BrandStore(MongoStore):
    collection_name = database.BRANDS
    label = "brand"
    sort = [("name", ASCENDING)]
    filter_fields = {"name": _text, "logo": _text}

    def find_by_name(self, name: str) -> Optional[dict]:
        return self.find_one("name", name)


class SluggedStore(MongoStore):
    """Catalog collections addressed by slug and filterable by price and stock."""

    def find_by_slug(self, slug: str) -> Optional[dict]:
        return self.find_one("slug", slug)

    def count_by_brand(self, brand: str) -> int:
        return self.count({"brand": brand})

    def build_query(self, params: Mapping[str, Any]) -> Dict[str, Any]:
        query = super().build_query(params)
        price: Dict[str, float] = {}
        if params.get("minPrice") not in (None, ""):
            price["$gte"] = as_number("minPrice", params["minPrice"])
        if params.get("maxPrice") not in (None, ""):
            price["$lte"] = as_number("maxPrice", params["maxPrice"])
        if price:
            query["price"] = price
        if params.get("outOfStock") not in (None, ""):
            query["outOfStock"] = as_bool("outOfStock", params["outOfStock"])
        return query


class ProductStore(SluggedStore):
    collection_name = database.PRODUCTS
    label = "product"
    filter_fields = {
        "name": _text,
        "brand": _text,
        "color": _text,
        "modelCode": _text,
        "scale": _text,
        "slug": _text,
        "price": as_number,
    }


class CatalogItemStore(SluggedStore):
    filter_fields = {
        "name": _text,
        "brand": _text,
        "slug": _text,
        "sku": _text,
        "price": as_number,
        "stock": as_number,
        "weight": as_number,
    }

    def find_by_sku(self, sku: str) -> Optional[dict]:
        return self.find_one("sku", sku)

    def build_query(self, params: Mapping[str, Any]) -> Dict[str, Any]:
        query = super().build_query(params)
        category = params.get("category")
        if category:
            tags = [tag.strip() for tag in str(category).split(",") if tag.strip()]
            query["categories"] = {"$in": tags}
        return query

    def find_compatible_with(self, product_id: str) -> List[dict]:
        product_id = canonical_id(product_id, "product")
        cursor = self.collection.find({"compatibleProductIds": product_id}).sort(self.sort)
        return [serialize(doc) for doc in cursor]

    def pull_product(self, product_id: str) -> int:
        product_id = canonical_id(product_id, "product")
        result = self.collection.update_many(
            {"compatibleProductIds": product_id},
            {"$pull": {"compatibleProductIds": product_id}, "$set": {"updatedAt": database.utcnow()}},
        )
        return result.modified_count


class AccessoryStore(CatalogItemStore):
    collection_name = database.ACCESSORIES
    label = "accessory"


class SparePartStore(CatalogItemStore):
    collection_name = database.SPARE_PARTS
    label = "spare part"
