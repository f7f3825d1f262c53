"""Entry form types and the payload pipeline used when submitting them."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from config import config
from navigation import Category
from utils.objects import apply_rules, fill_defaults, rename_fields
from utils.validation import blank_to_none, is_valid_phone_number

TITLE_MIN_LENGTH = 3
DESCRIPTION_MIN_LENGTH = 10
DESCRIPTION_MAX_LENGTH = 250

DEFAULT_FIELD_VALUES: Mapping[str, Any] = {
    "tags": [],
    "custom_links": [],
    "version": 0,
}
RENAMED_FIELDS: Mapping[str, str] = {"custom_links": "links"}

DUPLICATE_FIELDS = (
    "title",
    "description",
    "city",
    "zip",
    "country",
    "state",
    "street",
    "lat",
    "lng",
    "telephone",
    "email",
)


class CustomLink(BaseModel):
    """A user supplied link shown on the entry, e.g. a social media profile."""

    model_config = ConfigDict(str_strip_whitespace=True)

    url: str = Field(..., min_length=1)
    title: Optional[str] = None
    description: Optional[str] = None


class NewEntry(BaseModel):
    """Fields shared by the create and edit forms."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    title: str = Field(..., min_length=TITLE_MIN_LENGTH)
    description: str = Field(
        ..., min_length=DESCRIPTION_MIN_LENGTH, max_length=DESCRIPTION_MAX_LENGTH
    )
    city: Optional[str] = None
    zip: Optional[str] = None
    country: Optional[str] = None
    state: Optional[str] = None
    street: Optional[str] = None
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)
    contact: Optional[str] = None
    telephone: Optional[str] = None
    email: Optional[EmailStr] = None
    homepage: Optional[str] = None
    opening_hours: Optional[str] = None
    image_url: Optional[str] = None
    image_link_url: Optional[str] = None
    tags: Optional[List[str]] = None
    # the api expects a list but an entry holds exactly one category
    categories: List[str] = Field(default_factory=list)
    custom_links: Optional[List[CustomLink]] = None

    @field_validator("telephone")
    @classmethod
    def validate_telephone(cls, value: Optional[str]) -> Optional[str]:
        value = blank_to_none(value)
        if value is not None and not is_valid_phone_number(value, config.PHONE_REGION):
            raise ValueError("not a valid telephone number")
        return value

    @field_validator("email", mode="before")
    @classmethod
    def blank_email(cls, value: Any) -> Any:
        return blank_to_none(value) if isinstance(value, str) else value

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        if value is None:
            return None
        tags: List[str] = []
        for raw in value:
            tag = str(raw).strip().lower()
            if tag and tag not in tags:
                tags.append(tag)
        return tags

    @field_validator("categories")
    @classmethod
    def validate_categories(cls, value: List[str]) -> List[str]:
        if len(value) > 1:
            raise ValueError("an entry has exactly one category")
        return value


class NewEntryWithLicense(NewEntry):
    """Create form: the license is collected as a checkbox group."""

    license: List[str]

    @field_validator("license", mode="before")
    @classmethod
    def validate_license(cls, value: Any) -> List[str]:
        if isinstance(value, str):
            value = [value] if value.strip() else []
        licenses = [str(item).strip() for item in value or [] if str(item).strip()]
        if not licenses:
            raise ValueError("the license terms must be accepted")
        return licenses


class NewEntryWithVersion(NewEntry):
    """Edit form: carries the version the entry was loaded with."""

    version: Optional[int] = Field(None, ge=0)


EntryFormType = Union[NewEntryWithLicense, NewEntryWithVersion]


class EntryRatings(BaseModel):
    total: float = 0
    diversity: float = 0
    fairness: float = 0
    humanity: float = 0
    renewable: float = 0
    solidarity: float = 0
    transparency: float = 0


class SearchEntry(BaseModel):
    """Search-result shaped record kept in the local result collection."""

    id: str
    status: Optional[str] = "created"
    lat: Optional[float] = None
    lng: Optional[float] = None
    title: str
    description: str = ""
    categories: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    ratings: EntryRatings = Field(default_factory=EntryRatings)


def parse_entry_form(payload: Mapping[str, Any], is_edit: bool) -> EntryFormType:
    """Validate a submitted form; raises ``pydantic.ValidationError``."""

    model = NewEntryWithVersion if is_edit else NewEntryWithLicense
    return model.model_validate(dict(payload))


def entry_form_to_dict(entry: EntryFormType) -> Dict[str, Any]:
    return entry.model_dump(mode="json")


def _next_version(version: Any) -> int:
    return int(version) + 1


def _first_license(licenses: Any) -> str:
    if isinstance(licenses, str):
        return licenses
    licenses = list(licenses or [])
    if not licenses:
        return ""
    return licenses[0]


FIELD_RULES = {
    "version": _next_version,
    "license": _first_license,
}


def prepare_entry_payload(entry: Mapping[str, Any]) -> Dict[str, Any]:
    """Return the wire payload for a create or update call.

    Applies the defaults, then the version and license rules, then renames
    ``custom_links`` to ``links``. Every edit advances the version by one.
    """

    with_defaults = fill_defaults(entry, DEFAULT_FIELD_VALUES)
    transformed = apply_rules(with_defaults, FIELD_RULES)
    return rename_fields(transformed, RENAMED_FIELDS)


def build_duplicate_payload(entry: Mapping[str, Any]) -> Dict[str, Any]:
    """Return the reduced projection sent to the duplicate check."""

    license_value = entry.get("license")
    if isinstance(license_value, (list, tuple)):
        license_value = "".join(str(item) for item in license_value)

    payload: Dict[str, Any] = {field: entry.get(field) for field in DUPLICATE_FIELDS}
    payload.update(
        {
            "id": None,
            "homepage": None,
            "tags": [],
            "image_url": None,
            "image_link_url": None,
            "opening_hours": None,
            "links": [],
            "version": 1,
            "contact": None,
            "categories": [],
            "license": license_value,
        }
    )
    return payload


def convert_new_entry_to_search_entry(entry_id: str, entry: Mapping[str, Any]) -> SearchEntry:
    """Build the search result for an entry that was just created."""

    return SearchEntry(
        id=str(entry_id),
        lat=entry.get("lat"),
        lng=entry.get("lng"),
        title=str(entry.get("title") or ""),
        description=str(entry.get("description") or ""),
        categories=list(entry.get("categories") or []),
        tags=list(entry.get("tags") or []),
    )


def initial_form_values(
    entry: Optional[Mapping[str, Any]], category: Category
) -> Dict[str, Any]:
    """Return the values the entry form starts with.

    The category always comes from the navigation, also when editing.
    """

    values = dict(entry or {})
    if "links" in values and "custom_links" not in values:
        values["custom_links"] = values.pop("links")
    values["categories"] = [category.value]
    return values


def form_options() -> Dict[str, Any]:
    """Static choices and help links shown alongside the entry form."""

    return {
        "license_options": [
            {"value": config.DEFAULT_LICENSE, "terms_url": config.CC_LICENSE_URL}
        ],
        "opening_hours_help_url": config.OPENING_HOURS_URL,
    }
