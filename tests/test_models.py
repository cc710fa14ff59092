import json

import pytest
from pydantic import ValidationError

from nft_indexer.models import (
    BoostNumberAttribute,
    BoostPercentageAttribute,
    Collection,
    DateAttribute,
    Metadata,
    NumberAttribute,
    StringAttribute,
    Token,
)


def test_attributes_from_list():
    metadata = Metadata.model_validate(
        {
            "image": "https://x/1.png",
            "attributes": [
                {"trait_type": "Background", "value": "Blue"},
                {"trait_type": "Level", "value": 5, "display_type": "number", "max_value": 10},
                {"trait_type": "Power", "value": 12.5, "display_type": "boost_percentage"},
                {"trait_type": "Speed", "value": 3, "display_type": "boost_number"},
                {"trait_type": "Birthday", "value": 1546360800, "display_type": "date"},
            ],
        }
    )
    assert [type(a) for a in metadata.attributes] == [
        StringAttribute,
        NumberAttribute,
        BoostPercentageAttribute,
        BoostNumberAttribute,
        DateAttribute,
    ]
    assert metadata.attributes[1].max_value == 10
    assert metadata.attributes[4].value == 1546360800


def test_attributes_from_map():
    metadata = Metadata.model_validate({"image": "", "attributes": {"Eyes": "Laser", "Rank": 3}})
    assert metadata.attributes == [
        StringAttribute(trait_type="Eyes", value="Laser"),
        StringAttribute(trait_type="Rank", value="3"),
    ]


def test_untyped_values_are_coerced_to_strings():
    metadata = Metadata.model_validate(
        {
            "attributes": [
                {"trait_type": "Rare", "value": True},
                {"trait_type": "Rank", "value": 5},
                {"trait_type": 7, "value": "seven"},
                {"trait_type": "Other", "value": 1, "display_type": "unknown"},
            ]
        }
    )
    assert [a.map() for a in metadata.attributes] == [
        ("Rare", "true"),
        ("Rank", "5"),
        ("7", "seven"),
        ("Other", "1"),
    ]


def test_display_value_is_always_a_string():
    attributes = [
        StringAttribute(trait_type="a", value="x"),
        NumberAttribute(trait_type="b", value=1),
        BoostPercentageAttribute(trait_type="c", value=2.5),
        DateAttribute(trait_type="d", value=0),
    ]
    assert all(isinstance(a.display_value, str) for a in attributes)


@pytest.mark.parametrize(
    "attribute",
    [
        {"value": "no trait type"},
        {"trait_type": "No value"},
        {"trait_type": "Level", "value": "high", "display_type": "number"},
    ],
)
def test_invalid_attributes(attribute):
    with pytest.raises(ValidationError):
        Metadata.model_validate({"attributes": [attribute]})


def test_missing_optional_fields():
    metadata = Metadata.model_validate({"name": 1, "image": None})
    assert metadata.name == "1"
    assert metadata.image == ""
    assert metadata.attributes == []


def test_token_serializes_with_display_type():
    token = Token(
        id=1,
        metadata=Metadata(
            image="https://x/1.png",
            attributes=[
                StringAttribute(trait_type="Eyes", value="Laser"),
                NumberAttribute(trait_type="Level", value=2),
            ],
        ),
    )
    data = json.loads(token.model_dump_json(exclude_none=True))
    assert data["metadata"]["attributes"] == [
        {"trait_type": "Eyes", "value": "Laser"},
        {"trait_type": "Level", "display_type": "number", "value": 2},
    ]
    assert Token.model_validate(data) == token


def test_collection_total_supply_is_set_once():
    collection = Collection.from_contract("0x" + "ab" * 20, "Test")
    assert collection.set_total_supply(10)
    assert not collection.set_total_supply(20)
    assert collection.total_supply == 10


def test_collection_start_token_only_increases():
    collection = Collection.from_url("id", "https://x/")
    collection.increment_start_token(0)
    collection.increment_start_token(-1)
    assert collection.start_token == 0
    collection.increment_start_token(2)
    assert collection.start_token == 2


def test_collection_url():
    assert Collection.from_url("id", "https://x/").url(3) == "https://x/3"
    assert Collection.from_contract("0x" + "ab" * 20).url(3) is None


def test_collection_key():
    assert Collection.from_url("id", "https://x/").key == "id"
    assert not Collection.from_url("id", "https://x/").is_contract
    assert Collection.from_contract("0xAB").key == "0xAB"
