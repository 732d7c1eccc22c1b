"""
Quote Record Model
The structured quote request produced by extraction and edited by reviewers.

``None`` is the single "unknown" value for every field. Nested groups are
always present: ``from_dict`` builds each group even when the source dict
omits it or sets it to null.
"""

import logging
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, List, Optional, Union

from .field_normalizer import parse_amount


logger = logging.getLogger(__name__)

Number = Union[int, float]

PREFERRED_METHODS = ("Email", "Phone")
DEFAULT_PREFERRED_METHOD = "Email"

_TRUE_STRINGS = {"true", "yes", "y", "1"}
_FALSE_STRINGS = {"false", "no", "n", "0"}


def _to_str(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def _to_number(value: Any) -> Optional[Number]:
    number = parse_amount(value)
    if number is None:
        return None
    return int(number) if number.is_integer() else number


def _to_int(value: Any) -> Optional[int]:
    number = parse_amount(value)
    if number is None or not number.is_integer():
        return None
    return int(number)


def _to_bool(value: Any) -> Optional[bool]:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    text = str(value).strip().lower()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    return None


def _group_source(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = data.get(key)
    return value if isinstance(value, dict) else {}


@dataclass
class InsuredLocation:
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    address_city: Optional[str] = None
    address_state: Optional[str] = None
    address_zip: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InsuredLocation":
        return cls(**{f.name: _to_str(data.get(f.name)) for f in fields(cls)})


@dataclass
class Claims:
    claims_count: Optional[int] = None
    claims_amount: Optional[Number] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Claims":
        return cls(
            claims_count=_to_int(data.get("claims_count")),
            claims_amount=_to_number(data.get("claims_amount")),
        )


@dataclass
class Website:
    has_website: Optional[bool] = None
    domainName: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Website":
        return cls(
            has_website=_to_bool(data.get("has_website")),
            domainName=_to_str(data.get("domainName")),
        )


@dataclass
class InsuredContact:
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    preferred_method: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InsuredContact":
        contact = cls(**{f.name: _to_str(data.get(f.name)) for f in fields(cls)})
        if contact.preferred_method is not None:
            # Model output is not always capitalised the way the API expects
            for method in PREFERRED_METHODS:
                if contact.preferred_method.lower() == method.lower():
                    contact.preferred_method = method
        return contact


GROUP_TYPES = {
    "insured_location": InsuredLocation,
    "claims": Claims,
    "website": Website,
    "insured_contact": InsuredContact,
}


@dataclass
class QuoteRecord:
    """A cyber insurance quote request"""
    broker_email: Optional[str] = None
    insured_name: Optional[str] = None
    insured_location: InsuredLocation = field(default_factory=InsuredLocation)
    insured_taxid: Optional[str] = None
    claims: Claims = field(default_factory=Claims)
    year_founded: Optional[int] = None
    effective_date: Optional[str] = None
    revenue: Optional[Number] = None
    naics: Optional[int] = None
    question_highrisk: Optional[bool] = None
    agg_limit: Optional[Number] = None
    retention: Optional[Number] = None
    website: Website = field(default_factory=Website)
    insured_contact: InsuredContact = field(default_factory=InsuredContact)
    parsing_notes: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "QuoteRecord":
        """
        Build a record from loosely typed JSON (model output or an edited file)

        Values that cannot be coerced to the field's type become None.
        """
        data = data or {}
        notes = data.get("parsing_notes") or []
        if not isinstance(notes, list):
            notes = [notes]

        return cls(
            broker_email=_to_str(data.get("broker_email")),
            insured_name=_to_str(data.get("insured_name")),
            insured_location=InsuredLocation.from_dict(_group_source(data, "insured_location")),
            insured_taxid=_to_str(data.get("insured_taxid")),
            claims=Claims.from_dict(_group_source(data, "claims")),
            year_founded=_to_int(data.get("year_founded")),
            effective_date=_to_str(data.get("effective_date")),
            revenue=_to_number(data.get("revenue")),
            naics=_to_int(data.get("naics")),
            question_highrisk=_to_bool(data.get("question_highrisk")),
            agg_limit=_to_number(data.get("agg_limit")),
            retention=_to_number(data.get("retention")),
            website=Website.from_dict(_group_source(data, "website")),
            insured_contact=InsuredContact.from_dict(_group_source(data, "insured_contact")),
            parsing_notes=[str(note) for note in notes if note],
        )

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready representation using the API's field names"""
        return asdict(self)

    def add_note(self, note: str) -> None:
        """Append a provenance note"""
        self.parsing_notes.append(note)
        logger.debug("Provenance note: %s", note)

    def unknown_fields(self) -> List[str]:
        """Dotted names of every field that is still unknown"""
        missing = []
        for f in fields(self):
            if f.name == "parsing_notes":
                continue
            value = getattr(self, f.name)
            if f.name in GROUP_TYPES:
                missing.extend(
                    f"{f.name}.{member.name}"
                    for member in fields(value)
                    if getattr(value, member.name) is None
                )
            elif value is None:
                missing.append(f.name)
        return missing
