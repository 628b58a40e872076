import logging
from typing import Any, Dict, List, Mapping, Optional

from pymongo.database import Database

from auth import Identity, authorize, get_password_hash, verify_password
from errors import bad_request, forbidden, not_found, unauthorized
from integrity import ReferentialIntegrity
from schemas import (
    Brand,
    BrandUpdate,
    CatalogItem,
    CatalogItemUpdate,
    PasswordUpdate,
    Product,
    ProductUpdate,
    UserUpdate,
)
from stores import CatalogItemStore, UserStore

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, db: Database):
        self.users = UserStore(db)

    def list(self, identity: Identity, params: Optional[Mapping[str, Any]] = None) -> List[dict]:
        authorize(identity, required_role="admin")
        return self.users.find_many(params)

    def get(self, identity: Identity, id: str) -> dict:
        authorize(identity, owner_id=id)
        user = self.users.find_by_id(id)
        if user is None:
            raise not_found(f"User with id {id} not found")
        return user

    def update(self, identity: Identity, id: str, body: UserUpdate) -> dict:
        authorize(identity, owner_id=id)
        user = self.get(identity, id)
        changes = body.to_changes()
        if not identity.is_admin:
            changes.pop("isActive", None)
        email = changes.get("email")
        if email and email != user["email"] and self.users.exists("email", email, exclude_id=id):
            raise bad_request(f"Email {email} is already in use")
        if not changes:
            return user
        updated = self.users.update(id, changes)
        logger.info("Updated user %s", id)
        return updated

    def update_password(self, identity: Identity, id: str, body: PasswordUpdate) -> None:
        # self-service only, admins included
        if identity.user_id != id:
            raise forbidden()
        creds = self.users.find_credentials(id=id)
        if creds is None:
            raise not_found(f"User with id {id} not found")
        if not verify_password(body.current_password, creds.get("password", "")):
            raise unauthorized("Current password is incorrect")
        self.users.update(id, {"password": get_password_hash(body.new_password)})
        logger.info("Password changed for user %s", id)

    def delete(self, identity: Identity, id: str) -> None:
        authorize(identity, required_role="admin")
        if not self.users.delete(id):
            raise not_found(f"User with id {id} not found")
        logger.info("Deleted user %s", id)


class BrandService:
    def __init__(self, db: Database):
        self.integrity = ReferentialIntegrity(db)
        self.brands = self.integrity.brands

    def list(self, params: Optional[Mapping[str, Any]] = None) -> List[dict]:
        return self.brands.find_many(params)

    def get(self, id: str) -> dict:
        brand = self.brands.find_by_id(id)
        if brand is None:
            raise not_found(f"Brand with id {id} not found")
        return brand

    def create(self, body: Brand) -> dict:
        data = body.to_document()
        self.integrity.check_unique(self.brands, "name", data, entity="Brand")
        brand = self.brands.create(data)
        logger.info("Created brand %s (%s)", brand["id"], brand["name"])
        return brand

    def update(self, id: str, body: BrandUpdate) -> dict:
        brand = self.get(id)
        changes = body.to_changes()
        self.integrity.check_unique(self.brands, "name", changes, current=brand, entity="Brand")
        if not changes:
            return brand
        updated = self.brands.update(id, changes)
        logger.info("Updated brand %s", id)
        return updated

    def delete(self, id: str) -> None:
        brand = self.get(id)
        references = sum(
            store.count_by_brand(brand["name"])
            for store in (self.integrity.products, self.integrity.accessories, self.integrity.spare_parts)
        )
        if references:
            logger.warning("Deleting brand %s still named by %d catalog records", brand["name"], references)
        self.brands.delete(id)
        logger.info("Deleted brand %s", id)


class ProductService:
    def __init__(self, db: Database):
        self.integrity = ReferentialIntegrity(db)
        self.products = self.integrity.products

    def list(self, params: Optional[Mapping[str, Any]] = None) -> List[dict]:
        return self.products.find_many(params)

    def get(self, id: str) -> dict:
        product = self.products.find_by_id(id)
        if product is None:
            raise not_found(f"Product with id {id} not found")
        return product

    def get_by_slug(self, slug: str) -> dict:
        product = self.products.find_by_slug(slug)
        if product is None:
            raise not_found(f"Product with slug {slug} not found")
        return product

    def with_spare_parts(self, id: str) -> dict:
        product = self.get(id)
        return {**product, "compatibleSpareParts": self.integrity.spare_parts.find_compatible_with(id)}

    def with_accessories(self, id: str) -> dict:
        product = self.get(id)
        return {**product, "compatibleAccessories": self.integrity.accessories.find_compatible_with(id)}

    def complete(self, id: str) -> dict:
        product = self.get(id)
        return {
            **product,
            "compatibleSpareParts": self.integrity.spare_parts.find_compatible_with(id),
            "compatibleAccessories": self.integrity.accessories.find_compatible_with(id),
        }

    def create(self, body: Product) -> dict:
        data = self.integrity.prepare(self.products, "Product", body.to_document())
        product = self.products.create(data)
        logger.info("Created product %s (%s)", product["id"], product["slug"])
        return product

    def update(self, id: str, body: ProductUpdate) -> dict:
        product = self.get(id)
        changes = self.integrity.prepare(self.products, "Product", body.to_changes(), current=product)
        if not changes:
            return product
        updated = self.products.update(id, changes)
        logger.info("Updated product %s", id)
        return updated

    def delete(self, id: str) -> None:
        self.get(id)
        self.integrity.cascade_product_delete(id)
        self.products.delete(id)
        logger.info("Deleted product %s", id)


class CatalogItemService:
    """Accessories and spare parts: same rules, different collection."""

    entity = "Item"

    def __init__(self, db: Database):
        self.integrity = ReferentialIntegrity(db)
        self.store: CatalogItemStore = self.select_store()

    def select_store(self) -> CatalogItemStore:
        raise NotImplementedError

    def list(self, params: Optional[Mapping[str, Any]] = None) -> List[dict]:
        return self.store.find_many(params)

    def get(self, id: str) -> dict:
        item = self.store.find_by_id(id)
        if item is None:
            raise not_found(f"{self.entity} with ID {id} not found")
        return item

    def get_by_slug(self, slug: str) -> dict:
        item = self.store.find_by_slug(slug)
        if item is None:
            raise not_found(f"{self.entity} with slug {slug} not found")
        return item

    def for_product(self, product_id: str) -> List[dict]:
        if self.integrity.products.find_by_id(product_id) is None:
            raise not_found(f"Product with ID {product_id} not found")
        return self.store.find_compatible_with(product_id)

    def create(self, body: CatalogItem) -> dict:
        data: Dict[str, Any] = self.integrity.prepare(self.store, self.entity, body.to_document(), has_sku=True)
        item = self.store.create(data)
        logger.info("Created %s %s (%s)", self.store.label, item["id"], item["sku"])
        return item

    def update(self, id: str, body: CatalogItemUpdate) -> dict:
        item = self.get(id)
        changes = self.integrity.prepare(self.store, self.entity, body.to_changes(), current=item, has_sku=True)
        if not changes:
            return item
        updated = self.store.update(id, changes)
        logger.info("Updated %s %s", self.store.label, id)
        return updated

    def delete(self, id: str) -> None:
        self.get(id)
        self.store.delete(id)
        logger.info("Deleted %s %s", self.store.label, id)


class AccessoryService(CatalogItemService):
    entity = "Accessory"

    def select_store(self) -> CatalogItemStore:
        return self.integrity.accessories


class SparePartService(CatalogItemService):
    entity = "Spare part"

    def select_store(self) -> CatalogItemStore:
        return self.integrity.spare_parts
