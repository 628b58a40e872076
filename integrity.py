"""
Write-time referential integrity for the catalog.

References between collections are plain values (brand *name*, product *id*)
and are only checked when a record is written. Unique indexes remain the
source of truth for uniqueness; the checks here run first so a normal
duplicate gets a 400 with a readable message instead of a 409.
"""
import logging
from typing import Any, Dict, Optional

from pymongo.database import Database

from errors import bad_request
from stores import AccessoryStore, BrandStore, MongoStore, ProductStore, SparePartStore
from utils import canonical_id, is_valid_object_id, slugify

logger = logging.getLogger(__name__)


class ReferentialIntegrity:
    def __init__(self, db: Database):
        self.brands = BrandStore(db)
        self.products = ProductStore(db)
        self.accessories = AccessoryStore(db)
        self.spare_parts = SparePartStore(db)

    def check_brand(self, data: Dict[str, Any], current: Optional[dict] = None) -> None:
        brand = data.get("brand")
        if not brand:
            return
        if current is not None and brand == current.get("brand"):
            return
        if self.brands.find_by_name(brand) is None:
            raise bad_request(f"Brand {brand} does not exist")

    def check_unique(
        self,
        store: MongoStore,
        field: str,
        data: Dict[str, Any],
        current: Optional[dict] = None,
        entity: str = "Record",
    ) -> None:
        value = data.get(field)
        if not value:
            return
        if current is not None and value == current.get(field):
            return
        exclude_id = current["id"] if current is not None else None
        if store.exists(field, value, exclude_id=exclude_id):
            raise bad_request(f"{entity} with {field} {value} already exists")

    def assign_slug(self, data: Dict[str, Any], creating: bool = True) -> None:
        """Normalise an explicit slug; on create, derive a missing one from the name."""
        if data.get("slug"):
            slug = slugify(data["slug"])
            if not slug:
                raise bad_request(f"Invalid slug: {data['slug']}")
        elif creating:
            slug = slugify(data.get("name", ""))
            if not slug:
                raise bad_request("A name is required to generate the slug")
        else:
            return
        data["slug"] = slug

    def check_compatible_products(self, data: Dict[str, Any]) -> None:
        product_ids = data.get("compatibleProductIds")
        if not product_ids:
            return
        # first bad id aborts the whole write
        for product_id in product_ids:
            if not is_valid_object_id(product_id):
                raise bad_request(f"Invalid product ID: {product_id}")
            if self.products.find_by_id(product_id) is None:
                raise bad_request(f"Product with ID {product_id} not found")
        # stored in the form `serialize` emits so $pull and lookups match by equality
        data["compatibleProductIds"] = list(dict.fromkeys(canonical_id(pid, "product") for pid in product_ids))

    @staticmethod
    def apply_stock_status(data: Dict[str, Any]) -> None:
        if "stock" in data:
            data["outOfStock"] = data["stock"] <= 0

    def prepare(
        self,
        store: MongoStore,
        entity: str,
        data: Dict[str, Any],
        current: Optional[dict] = None,
        has_sku: bool = False,
    ) -> Dict[str, Any]:
        """
        Validate a create (``current is None``) or a merge update of ``current``
        and fill in the derived fields. Raises BadRequest on the first broken
        reference or duplicate; nothing is written here.
        """
        self.check_brand(data, current)
        self.assign_slug(data, creating=current is None)
        self.check_unique(store, "slug", data, current, entity)
        if has_sku:
            self.check_unique(store, "sku", data, current, entity)
            self.check_compatible_products(data)
            self.apply_stock_status(data)
        return data

    def cascade_product_delete(self, product_id: str) -> Dict[str, int]:
        """
        Unlink a product from every accessory and spare part before it is
        deleted. Two independent sweeps, not a transaction: a crash between
        them and the delete can leave either a dangling id or a product that
        has already been unlinked.
        """
        product_id = canonical_id(product_id, "product")
        unlinked = {
            "accessories": self.accessories.pull_product(product_id),
            "spareParts": self.spare_parts.pull_product(product_id),
        }
        logger.info(
            "Unlinked product %s from %d accessories and %d spare parts",
            product_id,
            unlinked["accessories"],
            unlinked["spareParts"],
        )
        return unlinked
