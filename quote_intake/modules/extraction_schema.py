"""
Response schemas for the extraction model.

Schemas use the Gemini ``Schema`` dialect (upper-case type names, ``nullable``)
and are passed as ``response_schema``. Every field is nullable so the model can
say "not found" instead of inventing a value; only the top-level object is
required.
"""

import copy
from typing import Any, Dict


def _string(description: str = None, **extra) -> Dict[str, Any]:
    schema = {"type": "STRING", "nullable": True}
    if description:
        schema["description"] = description
    schema.update(extra)
    return schema


def _number(description: str = None) -> Dict[str, Any]:
    schema = {"type": "NUMBER", "nullable": True}
    if description:
        schema["description"] = description
    return schema


def _boolean(description: str = None) -> Dict[str, Any]:
    schema = {"type": "BOOLEAN", "nullable": True}
    if description:
        schema["description"] = description
    return schema


def _group(properties: Dict[str, Any], nullable: bool = False) -> Dict[str, Any]:
    schema = {"type": "OBJECT", "properties": properties}
    if nullable:
        schema["nullable"] = True
    return schema


def _record_properties(groups_nullable: bool) -> Dict[str, Any]:
    return {
        "broker_email": _string("Email of the broker/agent submitting the application"),
        "insured_name": _string("Name of the insured company"),
        "insured_location": _group({
            "address_line1": _string(),
            "address_line2": _string(),
            "address_city": _string(),
            "address_state": _string(),
            "address_zip": _string(),
        }, nullable=groups_nullable),
        "insured_taxid": _string("Tax ID or FEIN"),
        "claims": _group({
            "claims_count": _number(),
            "claims_amount": _number(),
        }, nullable=groups_nullable),
        "year_founded": _number(),
        "effective_date": _string("Format YYYY-MM-DD"),
        "revenue": _number(),
        "naics": _number("NAICS code if available"),
        "question_highrisk": _boolean(
            "Does the applicant engage in high risk activities "
            "(adult content, gambling, cannabis, crypto)?"
        ),
        "agg_limit": _number("Requested aggregate limit"),
        "retention": _number("Requested retention/deductible"),
        "website": _group({
            "has_website": _boolean(),
            "domainName": _string(),
        }, nullable=groups_nullable),
        "insured_contact": _group({
            "first_name": _string(),
            "last_name": _string(),
            "email": _string(),
            "phone": _string(),
            "preferred_method": _string(enum=["Email", "Phone"]),
        }, nullable=groups_nullable),
    }


def quote_record_schema() -> Dict[str, Any]:
    """Schema for the primary extraction call"""
    properties = _record_properties(groups_nullable=False)
    properties["parsing_notes"] = {
        "type": "ARRAY",
        "items": {"type": "STRING"},
        "nullable": True,
        "description": (
            "List of notes regarding data conflicts between sources, "
            "or general extraction warnings."
        ),
    }
    return {"type": "OBJECT", "properties": properties}


def email_summary_schema() -> Dict[str, Any]:
    """Schema for the long-email summarization call: a summary plus every record field"""
    properties = {
        "summary": {
            "type": "STRING",
            "description": (
                "A concise summary of the email content focusing on insurance "
                "quote information"
            ),
        },
    }
    properties.update(_record_properties(groups_nullable=True))
    return {"type": "OBJECT", "properties": properties}


QUOTE_RECORD_SCHEMA = quote_record_schema()
EMAIL_SUMMARY_SCHEMA = email_summary_schema()


def schema_copy(schema: Dict[str, Any]) -> Dict[str, Any]:
    """Deep copy so callers (or the SDK) never mutate the module-level schema"""
    return copy.deepcopy(schema)
