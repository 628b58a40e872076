"""
Database Schemas

Pydantic models for the MongoDB collections and the request bodies that write
to them. Fields are snake_case in Python and camelCase on the wire and in the
stored documents (`model_code` <-> `modelCode`).

- User -> "users"
- Brand -> "brands"
- Product -> "products"
- Accessory -> "accessories"
- SparePart -> "spareparts"
"""
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        protected_namespaces=(),
    )

    def to_document(self) -> Dict[str, Any]:
        """Fields for an insert, defaults included."""
        return self.model_dump(by_alias=True, exclude_none=True)

    def to_changes(self) -> Dict[str, Any]:
        """Only the fields the client actually sent, for merge updates."""
        return self.model_dump(by_alias=True, exclude_unset=True, exclude_none=True)


def _unique(values: Optional[List[str]]) -> Optional[List[str]]:
    if values is None:
        return None
    return list(dict.fromkeys(values))


# Shared value objects
class Media(CamelModel):
    type: Literal["image", "video", "instagram"]
    url: str = Field(..., min_length=1)


class SocialLinks(CamelModel):
    instagram: Optional[str] = None
    facebook: Optional[str] = None
    youtube: Optional[str] = None


class Dimensions(CamelModel):
    length: float = Field(..., ge=0)
    width: float = Field(..., ge=0)
    height: float = Field(..., ge=0)
    unit: Literal["mm", "cm", "in"]


# Auth / users
class RegisterRequest(CamelModel):
    name: str = Field(..., min_length=1, description="Full name")
    email: EmailStr = Field(..., description="Unique email address")
    password: str = Field(..., min_length=6, description="Plain password, stored as a bcrypt hash")


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class User(CamelModel):
    name: str
    email: EmailStr
    password: str = Field(..., description="BCrypt password hash")
    role: Literal["admin", "user"] = "user"
    is_active: bool = Field(True, description="Whether the account is active")


class UserUpdate(CamelModel):
    # no role or password here; unknown keys are ignored
    name: Optional[str] = Field(None, min_length=1)
    email: Optional[EmailStr] = None
    is_active: Optional[bool] = None


class PasswordUpdate(CamelModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6)


# Brands
class Brand(CamelModel):
    name: str = Field(..., min_length=1)
    logo: str = Field(..., min_length=1)


class BrandUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1)
    logo: Optional[str] = Field(None, min_length=1)


# Products
class Product(CamelModel):
    name: str = Field(..., min_length=1)
    brand: str = Field(..., min_length=1, description="Name of an existing brand")
    color: str = Field(..., min_length=1)
    model_code: str = Field(..., min_length=1)
    scale: str = Field(..., min_length=1)
    out_of_stock: bool = False
    price: float = Field(..., ge=0)
    slug: Optional[str] = Field(None, description="Derived from name when absent")
    media: List[Media] = Field(default_factory=list)
    social_links: Optional[SocialLinks] = None
    technical_specs: List[str] = Field(default_factory=list)


class ProductUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1)
    brand: Optional[str] = Field(None, min_length=1)
    color: Optional[str] = Field(None, min_length=1)
    model_code: Optional[str] = Field(None, min_length=1)
    scale: Optional[str] = Field(None, min_length=1)
    out_of_stock: Optional[bool] = None
    price: Optional[float] = Field(None, ge=0)
    slug: Optional[str] = Field(None, min_length=1)
    media: Optional[List[Media]] = None
    social_links: Optional[SocialLinks] = None
    technical_specs: Optional[List[str]] = None


# Accessories and spare parts share one shape; outOfStock is always derived from stock
class CatalogItem(CamelModel):
    name: str = Field(..., min_length=1)
    slug: Optional[str] = Field(None, description="Derived from name when absent")
    sku: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    stock: int = Field(0, ge=0)
    categories: List[str] = Field(..., min_length=1)
    compatible_product_ids: List[str] = Field(default_factory=list)
    brand: str = Field(..., min_length=1, description="Name of an existing brand")
    description: str = Field(..., min_length=1)
    media: List[Media] = Field(default_factory=list)
    weight: float = Field(..., ge=0)
    dimensions: Optional[Dimensions] = None

    @field_validator("categories", "compatible_product_ids")
    @classmethod
    def dedupe(cls, values):
        return _unique(values)


class CatalogItemUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1)
    slug: Optional[str] = Field(None, min_length=1)
    sku: Optional[str] = Field(None, min_length=1)
    price: Optional[float] = Field(None, ge=0)
    stock: Optional[int] = Field(None, ge=0)
    categories: Optional[List[str]] = Field(None, min_length=1)
    compatible_product_ids: Optional[List[str]] = None
    brand: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = Field(None, min_length=1)
    media: Optional[List[Media]] = None
    weight: Optional[float] = Field(None, ge=0)
    dimensions: Optional[Dimensions] = None

    @field_validator("categories", "compatible_product_ids")
    @classmethod
    def dedupe(cls, values):
        return _unique(values)


class Accessory(CatalogItem):
    pass


class AccessoryUpdate(CatalogItemUpdate):
    pass


class SparePart(CatalogItem):
    pass


class SparePartUpdate(CatalogItemUpdate):
    pass
