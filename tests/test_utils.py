import pytest
from bson import ObjectId

from errors import ApiError, ErrorKind
from utils import is_valid_object_id, serialize, slugify, to_object_id


@pytest.mark.parametrize(
    "text, expected",
    [
        ("Acme Racer", "acme-racer"),
        ("  Ferrari   F40  ", "ferrari-f40"),
        ("Nuts & Bolts", "nuts-and-bolts"),
        ("Porsche 911 (1:18)!", "porsche-911-118"),
        ("already-a-slug", "already-a-slug"),
        ("Double -- Hyphen", "double-hyphen"),
    ],
)
def test_slugify(text, expected):
    assert slugify(text) == expected


def test_slugify_output_is_lowercase_and_hyphenated():
    slug = slugify("The Big  BLUE Truck")
    assert slug == slug.lower()
    assert " " not in slug
    assert slug == "the-big-blue-truck"


def test_object_id_validation():
    assert is_valid_object_id(str(ObjectId()))
    assert not is_valid_object_id("123")
    assert not is_valid_object_id("z" * 24)
    assert not is_valid_object_id(None)


def test_to_object_id_rejects_malformed_id():
    with pytest.raises(ApiError) as exc:
        to_object_id("nope", "product")
    assert exc.value.kind is ErrorKind.BAD_REQUEST
    assert exc.value.message == "Invalid product ID: nope"
    assert exc.value.status_code == 400


def test_serialize_exposes_id_and_hides_password():
    oid = ObjectId()
    out = serialize({"_id": oid, "email": "a@example.com", "password": "hash"})
    assert out == {"id": str(oid), "email": "a@example.com"}
    assert serialize(None) is None
