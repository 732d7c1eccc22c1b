"""
Prompt text for the extraction and summarization calls.
"""

from typing import Optional

FIELD_GUIDE = """\
- broker_email: Email of the broker/agent submitting the application
- insured_name: Name of the insured company
- insured_location: Full address split into address_line1, address_line2, address_city, address_state, address_zip
- insured_taxid: Tax ID or FEIN
- claims: Claims count and total claims amount
- year_founded: Year the company was founded
- effective_date: Requested policy effective date (YYYY-MM-DD)
- revenue: Annual revenue
- naics: NAICS code
- question_highrisk: Whether the applicant engages in high risk activities (adult content, gambling, cannabis, crypto)
- agg_limit: Requested aggregate limit
- retention: Requested retention/deductible
- website: Whether they have a website and the domain name
- insured_contact: Primary contact (first_name, last_name, email, phone, preferred_method)"""

SUMMARY_PROMPT = """\
Analyze the following email content and extract key cyber insurance quote information.

Extract these fields:
{field_guide}

EMAIL CONTENT:
{email_body}

INSTRUCTIONS:
1. Extract every field that is stated in the email content.
2. Return null for any field that is not mentioned. Never guess a value.
3. Convert monetary values to plain numbers (e.g. "$1,000,000" becomes 1000000).
4. Format dates as YYYY-MM-DD.
5. Put a concise summary of the quote-related content in "summary"."""

EXTRACTION_PROMPT = """\
Analyze the provided content and extract cyber insurance quote data.

INPUT CONTEXT:
- You may receive PDF application(s), email content (clean body or summary), or both.
- If ONLY email content is provided, extract all available data from the email.
- If ONLY PDFs are provided, extract from the PDFs.
- If BOTH are provided and they conflict (for example different limits requested), the EMAIL content wins.

FIELDS:
{field_guide}

DATA EXTRACTION RULES:
1. If a field is not found in any provided source, return null. Never fabricate a value.
2. Convert all monetary values to plain numbers (e.g. 1000000).
3. Format dates as YYYY-MM-DD.
4. Parse the full insured address into its component parts.
5. broker_email: if an EMAIL METADATA section gives a sender address, use it; it is the
   person submitting the quote request. Otherwise look for the agent or producer email in
   the email body or PDFs. Never use the insured's contact email as broker_email.
6. naics: extract the code if present, otherwise null.
7. question_highrisk: look for questions about adult content, gambling, cannabis or crypto;
   return true if the applicant answers yes.
8. ALWAYS return the claims, insured_location, website and insured_contact objects, even
   when all of their properties are null.
9. Use parsing_notes to record where data was found and any conflicts between sources."""

SUMMARY_LABEL = "EMAIL SUMMARY (extracted from long email)"
BODY_LABEL = "EMAIL BODY (clean content)"


def build_summary_prompt(email_body: str) -> str:
    return SUMMARY_PROMPT.format(field_guide=FIELD_GUIDE, email_body=email_body)


def build_extraction_prompt() -> str:
    return EXTRACTION_PROMPT.format(field_guide=FIELD_GUIDE)


def build_email_context(
    email_content: str,
    is_summary: bool,
    sender_email: Optional[str] = None,
    subject: Optional[str] = None,
) -> str:
    """
    Labelled text block carrying the email content and header hints
    """
    label = SUMMARY_LABEL if is_summary else BODY_LABEL
    lines = [f'SOURCE - {label}:', f'"{email_content}"', ""]

    if sender_email or subject:
        lines.append("EMAIL METADATA (from email headers):")
        if sender_email:
            lines.append(f"- Sender Email (From header): {sender_email}")
            lines.append(
                "  NOTE: This is very likely the broker/agent email address submitting the quote."
            )
        if subject:
            lines.append(f"- Subject: {subject}")
        lines.append("")

    return "\n".join(lines) + "\n"
