"""
Pydantic models for collections, tokens and their metadata
"""

import json
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any, Union, Literal, Tuple
from pydantic import BaseModel, Field, field_validator

DISPLAY_TYPE = "display_type"
TRAIT_TYPE = "trait_type"
VALUE = "value"


class Attribute(BaseModel):
    """Base class for a single metadata trait"""
    trait_type: str

    @property
    def display_value(self) -> str:
        """Trait value rendered as a string, whatever the variant"""
        return str(getattr(self, "value"))

    def map(self) -> Tuple[str, str]:
        return self.trait_type, self.display_value


class StringAttribute(Attribute):
    """Plain trait, any non-typed source value is coerced to a string"""
    value: str


class NumberAttribute(Attribute):
    """Integer trait (``display_type: number``)"""
    display_type: Literal["number"] = "number"
    value: int
    max_value: Optional[int] = None


class BoostPercentageAttribute(Attribute):
    """Percentage boost trait (``display_type: boost_percentage``)"""
    display_type: Literal["boost_percentage"] = "boost_percentage"
    value: float
    max_value: Optional[int] = None


class BoostNumberAttribute(Attribute):
    """Numeric boost trait (``display_type: boost_number``)"""
    display_type: Literal["boost_number"] = "boost_number"
    value: float
    max_value: Optional[int] = None


class DateAttribute(Attribute):
    """Date trait, value is a unix timestamp in seconds (``display_type: date``)"""
    display_type: Literal["date"] = "date"
    value: int


AttributeType = Union[
    NumberAttribute,
    BoostPercentageAttribute,
    BoostNumberAttribute,
    DateAttribute,
    StringAttribute,
]

ATTRIBUTE_TYPES: Dict[str, type] = {
    "number": NumberAttribute,
    "boost_percentage": BoostPercentageAttribute,
    "boost_number": BoostNumberAttribute,
    "date": DateAttribute,
}


class Metadata(BaseModel):
    """Token metadata document, normalized"""

    name: Optional[str] = None
    description: Optional[str] = None
    image: str = ""
    external_url: Optional[str] = None
    attributes: List[AttributeType] = Field(default_factory=list)
    background_color: Optional[str] = None
    created_by: Optional[str] = None
    animation_url: Optional[str] = None
    youtube_url: Optional[str] = None

    @field_validator("attributes", mode="before")
    @classmethod
    def _decode_attributes(cls, value: Any) -> List[Any]:
        return decode_attributes(value)

    @field_validator("name", "description", "external_url", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Optional[str]:
        if value is None or isinstance(value, str):
            return value
        return str(value)

    @field_validator("image", mode="before")
    @classmethod
    def _coerce_image(cls, value: Any) -> str:
        return "" if value is None else value


def _as_text(value: Any) -> str:
    """JSON text of a non-string value (``5``, ``true``), strings unchanged"""
    if isinstance(value, str):
        return value
    return json.dumps(value)


def decode_attribute(data: Dict[str, Any]) -> Attribute:
    """
    Build the attribute variant selected by ``display_type``.

    Without a (known) display type the value is kept as a string, even when the
    source encoded it as a number or boolean.
    """
    if data.get(TRAIT_TYPE) is None:
        raise ValueError(f"attribute is missing {TRAIT_TYPE}")
    if VALUE not in data:
        raise ValueError(f"attribute is missing {VALUE}")

    data = {**data, TRAIT_TYPE: _as_text(data[TRAIT_TYPE])}
    attribute_type = ATTRIBUTE_TYPES.get(data.get(DISPLAY_TYPE) or "")
    if attribute_type is None:
        return StringAttribute(trait_type=data[TRAIT_TYPE], value=_as_text(data[VALUE]))
    return attribute_type.model_validate(data)


def decode_attributes(value: Any) -> List[Any]:
    """
    Decode attributes given either as a list of attribute objects or as a flat
    ``{trait_type: value}`` map. Already decoded attributes pass through.
    """
    if value is None:
        return []
    if isinstance(value, dict):
        return [StringAttribute(trait_type=key, value=_as_text(item)) for key, item in value.items()]
    if isinstance(value, list):
        return [decode_attribute(item) if isinstance(item, dict) else item for item in value]
    raise ValueError("attributes must be a sequence or a map")


class Token(BaseModel):
    """A token within a collection"""

    id: int
    metadata: Optional[Metadata] = None
    last_viewed: Optional[datetime] = None

    def set_last_viewed(self) -> None:
        self.last_viewed = datetime.now(timezone.utc)


class Contract(BaseModel):
    """A verified contract as returned by the explorer"""

    address: str
    name: str


class Collection(BaseModel):
    """
    A collection of tokens, identified either by contract address or by an
    encoded metadata url.
    """

    address: Optional[str] = None
    id: Optional[str] = None
    name: Optional[str] = None
    base_uri: Optional[str] = None
    start_token: int = 0
    total_supply: Optional[int] = None
    last_viewed: Optional[datetime] = None

    @classmethod
    def from_contract(cls, address: str, name: Optional[str] = None) -> "Collection":
        return cls(address=address, name=name or address)

    @classmethod
    def from_url(cls, identifier: str, base_uri: str, name: Optional[str] = None) -> "Collection":
        return cls(id=identifier, base_uri=base_uri, name=name)

    @property
    def key(self) -> str:
        """Cache key of the collection"""
        return self.address or self.id or ""

    @property
    def is_contract(self) -> bool:
        return self.address is not None

    def url(self, token: int) -> Optional[str]:
        """Metadata url of ``token``, if the base uri is known"""
        if not self.base_uri:
            return None
        return f"{self.base_uri}{token}"

    def set_base_uri(self, base_uri: str) -> None:
        self.base_uri = base_uri

    def set_total_supply(self, total_supply: int) -> bool:
        """Set the total supply once; returns False if it was already known"""
        if self.total_supply is not None:
            return False
        self.total_supply = total_supply
        return True

    def increment_start_token(self, increment: int = 1) -> None:
        if increment > 0:
            self.start_token += increment

    def set_last_viewed(self) -> None:
        self.last_viewed = datetime.now(timezone.utc)


class RecentlyViewedItem(BaseModel):
    """Entry of the recently viewed list"""

    name: str
    image: str
    route: str
