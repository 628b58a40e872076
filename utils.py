import re
from typing import Any, Dict, Optional

from bson import ObjectId

from errors import bad_request

_WHITESPACE = re.compile(r"\s+")
_NON_WORD = re.compile(r"[^\w-]+", re.ASCII)
_HYPHENS = re.compile(r"--+")
_OBJECT_ID = re.compile(r"^[0-9a-fA-F]{24}$")


def slugify(text: str) -> str:
    """
    Lowercase, trim, turn whitespace runs into a hyphen, `&` into `-and-`,
    drop anything that is not a word character or hyphen and collapse
    repeated hyphens.

    >>> slugify("Acme Racer")
    'acme-racer'
    >>> slugify("Nuts & Bolts")
    'nuts-and-bolts'
    """
    slug = str(text).lower().strip()
    slug = _WHITESPACE.sub("-", slug)
    slug = slug.replace("&", "-and-")
    slug = _NON_WORD.sub("", slug)
    return _HYPHENS.sub("-", slug)


def is_valid_object_id(value: Any) -> bool:
    return isinstance(value, str) and bool(_OBJECT_ID.match(value))


def to_object_id(value: str, label: str = "resource") -> ObjectId:
    if not is_valid_object_id(value):
        raise bad_request(f"Invalid {label} ID: {value}")
    return ObjectId(value)


def canonical_id(value: str, label: str = "resource") -> str:
    """Lowercase hex form of an ObjectId string, as `serialize` emits it."""
    return str(to_object_id(value, label))


def serialize(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Mongo document -> API dict: `_id` becomes `id`, the password hash is dropped."""
    if doc is None:
        return None
    out = dict(doc)
    out["id"] = str(out.pop("_id"))
    out.pop("password", None)
    return out
