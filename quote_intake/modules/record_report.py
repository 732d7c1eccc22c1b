"""
Record Report
Console rendering of an extracted quote record for the human reviewer, and of
the submission outcome.
"""

import json
from dataclasses import fields
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .quote_record import GROUP_TYPES, QuoteRecord
from .submission_client import ApprovedQuote, DeclinedQuote
from ..utils.colors import Colors


LABELS = {
    "broker_email": "Broker Email",
    "insured_name": "Insured Name",
    "insured_taxid": "Tax ID",
    "year_founded": "Year Founded",
    "effective_date": "Effective Date",
    "revenue": "Revenue",
    "naics": "NAICS",
    "question_highrisk": "High-Risk Industry",
    "agg_limit": "Aggregate Limit",
    "retention": "Retention",
    "insured_location": "Location",
    "claims": "Claims",
    "website": "Website",
    "insured_contact": "Contact",
}

_MONEY_FIELDS = {"revenue", "agg_limit", "retention", "claims_amount"}


def clean_text(text: str) -> str:
    """
    Strip control characters for safe console output

    SECURITY STORY: subjects and extracted values come from untrusted email
    and PDF content. Raw escape sequences could repaint the terminal or hide
    lines from the reviewer.
    """
    if not text:
        return ""
    text = text.replace('\n', ' ').replace('\r', ' ').replace('\t', ' ')
    return ''.join(
        c for c in text
        if not ((0 <= ord(c) <= 31) or (127 <= ord(c) <= 159))
    )


def _format_value(name: str, value) -> str:
    if value is None:
        return Colors.unknown()
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if name in _MONEY_FIELDS and isinstance(value, (int, float)):
        return f"${value:,.0f}"
    return clean_text(str(value))


def format_record(record: QuoteRecord, warnings: Iterable[str] = ()) -> str:
    """Render a record, its provenance notes and any intake warnings"""
    bar = Colors.colorize("=" * 80, Colors.CYAN)
    lines: List[str] = [
        "",
        bar,
        Colors.header("QUOTE REQUEST - REVIEW BEFORE SUBMITTING"),
        bar,
    ]

    for f in fields(QuoteRecord):
        name = f.name
        if name == "parsing_notes":
            continue
        value = getattr(record, name)
        label = LABELS.get(name, name)
        if name in GROUP_TYPES:
            lines.append(f"{Colors.BOLD}{label}:{Colors.RESET}")
            for member in fields(value):
                member_value = getattr(value, member.name)
                lines.append(
                    f"    {member.name:<18} {_format_value(member.name, member_value)}"
                )
        else:
            lines.append(
                f"{Colors.BOLD}{label + ':':<22}{Colors.RESET}{_format_value(name, value)}"
            )

    unknown = record.unknown_fields()
    if unknown:
        lines.append(f"\n{Colors.BOLD}--- STILL UNKNOWN ({len(unknown)}) ---{Colors.RESET}")
        for name in unknown:
            lines.append(f"  {Colors.colorize('•', Colors.GREY)} {name}")

    if record.parsing_notes:
        lines.append(f"\n{Colors.BOLD}--- PARSING NOTES ---{Colors.RESET}")
        for note in record.parsing_notes:
            lines.append(f"  {Colors.colorize('•', Colors.CYAN)} {clean_text(note)}")

    warnings = list(warnings)
    if warnings:
        lines.append(f"\n{Colors.BOLD}--- WARNINGS ---{Colors.RESET}")
        for warning in warnings:
            lines.append(f"  {Colors.colorize('!', Colors.YELLOW)} {clean_text(warning)}")

    lines.append(bar)
    return "\n".join(lines)


def format_outcome(result: Union[ApprovedQuote, DeclinedQuote]) -> str:
    """Render the submission outcome"""
    if isinstance(result, ApprovedQuote):
        color = Colors.get_outcome_color("approved")
        lines = [
            Colors.colorize("✅ QUOTE APPROVED", color + Colors.BOLD),
            f"{Colors.BOLD}Quote ID:{Colors.RESET}  {clean_text(result.quote_id)}",
            f"{Colors.BOLD}Status:{Colors.RESET}    {clean_text(result.quote_status)}",
        ]
        if result.product_name:
            lines.append(f"{Colors.BOLD}Product:{Colors.RESET}   {clean_text(result.product_name)}")
        if result.policy_term:
            start = result.policy_term.get("start_date", "?")
            end = result.policy_term.get("end_date", "?")
            lines.append(f"{Colors.BOLD}Term:{Colors.RESET}      {start} to {end}")
        for name, value in result.coverage_limits().items():
            lines.append(f"    {name:<32} {_format_value('agg_limit', value)}")
        if result.checkout_link:
            lines.append(f"{Colors.BOLD}Checkout:{Colors.RESET}  {clean_text(result.checkout_link)}")
        return "\n".join(lines)

    color = Colors.get_outcome_color("declined")
    return "\n".join([
        Colors.colorize(f"⚠️  QUOTE {result.status.upper()}", color + Colors.BOLD),
        f"  {clean_text(result.message)}",
        Colors.colorize("Edit the record and submit again.", Colors.GREY),
    ])


def write_record(record: QuoteRecord, path: Union[str, Path],
                 warnings: Optional[Iterable[str]] = None) -> Path:
    """Write the record as editable JSON; warnings go under a separate key"""
    path = Path(path)
    data = record.to_dict()
    if warnings:
        data["_warnings"] = list(warnings)
    path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    return path


def read_record(path: Union[str, Path]) -> QuoteRecord:
    """Load a (possibly hand-edited) record file"""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"{path} does not contain a JSON object")
    data.pop("_warnings", None)
    return QuoteRecord.from_dict(data)
