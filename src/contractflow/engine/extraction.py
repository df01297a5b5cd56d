"""AI document extraction using Claude API.

Reads purchase contracts (PDF or image) and extracts parties, price, and
milestone dates. A second verification pass marks fields the model is not
sure about so the agent can review them before saving.
"""

from __future__ import annotations

import base64
import json
import logging
from datetime import date
from pathlib import Path
from typing import Any

import anthropic

from contractflow.config import Settings, get_settings
from contractflow.errors import ExtractionError
from contractflow.models import DATE_FIELDS, Contract

logger = logging.getLogger(__name__)

UNCERTAIN = "UNCERTAIN"

MEDIA_TYPES = {
    ".pdf": "application/pdf",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
}

TEXT_FIELDS = (
    "property_address",
    "buyer_name", "buyer_email", "buyer_phone",
    "seller_name", "seller_email", "seller_phone",
)
MONEY_FIELDS = ("purchase_price", "earnest_money", "down_payment", "loan_amount")
EXTRACTED_FIELDS = TEXT_FIELDS + MONEY_FIELDS + DATE_FIELDS + ("all_parties_signed", "signature_date")

EXTRACTION_PROMPT = """\
You are a real estate transaction coordinator AI. Extract the terms of this \
purchase contract.

Return a single JSON object with exactly these fields (use null for any field \
not found):

{
  "property_address": "",
  "buyer_name": "", "buyer_email": "", "buyer_phone": "",
  "seller_name": "", "seller_email": "", "seller_phone": "",
  "purchase_price": null, "earnest_money": null,
  "down_payment": null, "loan_amount": null,
  "contract_date": "YYYY-MM-DD or null",
  "closing_date": "YYYY-MM-DD or null",
  "inspection_date": "YYYY-MM-DD or null",
  "inspection_response_date": "YYYY-MM-DD or null",
  "loan_contingency_date": "YYYY-MM-DD or null",
  "appraisal_date": "YYYY-MM-DD or null",
  "final_walkthrough_date": "YYYY-MM-DD or null",
  "all_parties_signed": false,
  "signature_date": "YYYY-MM-DD or null",
  "summary": "Two-sentence plain-English summary of the deal"
}

When a deadline is written as a number of days (e.g. "10 days after \
acceptance"), compute the calendar date from the contract date.
"""

VERIFICATION_PROMPT = """\
Here are values another reviewer extracted from this contract:

{extraction}

Check each field against the document. Return a JSON object with the same \
keys. For each field, repeat the value if the document clearly supports it, \
or the string "UNCERTAIN" if it is ambiguous, illegible, or not supported.
"""


def parse_json_response(response_text: str) -> dict[str, Any]:
    """Parse a JSON object from a model reply, tolerating markdown fences."""
    text = response_text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        text = text.rsplit("```", 1)[0]
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ExtractionError(f"Model returned invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ExtractionError("Model returned JSON that is not an object")
    return data


def _document_block(path: Path) -> dict[str, Any]:
    media_type = MEDIA_TYPES.get(path.suffix.lower())
    if media_type is None:
        raise ExtractionError(f"Unsupported document type: {path.suffix}")
    data = base64.standard_b64encode(path.read_bytes()).decode("utf-8")
    block_type = "document" if media_type == "application/pdf" else "image"
    return {
        "type": block_type,
        "source": {"type": "base64", "media_type": media_type, "data": data},
    }


def _ask(document: str | Path, prompt: str, settings: Settings | None = None) -> dict[str, Any]:
    settings = settings or get_settings()
    if not settings.has_anthropic():
        raise ExtractionError("CF_ANTHROPIC_API_KEY not configured. Set it in .env")

    path = Path(document)
    if not path.exists():
        raise ExtractionError(f"Document not found: {path}")

    client = anthropic.Anthropic(api_key=settings.anthropic_api_key)
    try:
        message = client.messages.create(
            model=settings.extraction_model,
            max_tokens=4096,
            messages=[{
                "role": "user",
                "content": [_document_block(path), {"type": "text", "text": prompt}],
            }],
        )
    except anthropic.APIError as e:
        raise ExtractionError(f"Extraction request failed: {e}") from e

    return parse_json_response(message.content[0].text)


def extract_from_document(document: str | Path, settings: Settings | None = None) -> dict[str, Any]:
    """Extract contract terms from a PDF or image."""
    return _ask(document, EXTRACTION_PROMPT, settings)


def uncertain_fields(verification: dict[str, Any]) -> set[str]:
    return {k for k, v in verification.items() if isinstance(v, str) and v.strip().upper() == UNCERTAIN}


def verify_extraction(document: str | Path, extraction: dict[str, Any],
                      settings: Settings | None = None) -> set[str]:
    """Second pass over the document. Returns field names marked UNCERTAIN."""
    prompt = VERIFICATION_PROMPT.format(extraction=json.dumps(extraction, indent=2, default=str))
    return uncertain_fields(_ask(document, prompt, settings))


def _parse_date(field: str, value: Any) -> date | None:
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        logger.warning("Ignoring unparseable %s: %r", field, value)
        return None


def _parse_money(field: str, value: Any) -> float | None:
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).replace("$", "").replace(",", ""))
    except ValueError:
        logger.warning("Ignoring unparseable %s: %r", field, value)
        return None


def apply_extraction_to_contract(contract: Contract, extraction: dict[str, Any],
                                 uncertain: set[str] | None = None) -> list[str]:
    """Fill empty contract fields from extracted data. Returns list of changes made."""
    changes: list[str] = []

    def present(field: str) -> bool:
        value = extraction.get(field)
        return value not in (None, "") and value != UNCERTAIN

    for field in TEXT_FIELDS:
        if present(field) and not getattr(contract, field):
            setattr(contract, field, str(extraction[field]).strip())
            changes.append(f"{field.replace('_', ' ').capitalize()}: {getattr(contract, field)}")

    for field in MONEY_FIELDS:
        if present(field) and getattr(contract, field) is None:
            amount = _parse_money(field, extraction[field])
            if amount is not None:
                setattr(contract, field, amount)
                changes.append(f"{field.replace('_', ' ').capitalize()}: ${amount:,.2f}")

    for field in DATE_FIELDS + ("signature_date",):
        if present(field) and getattr(contract, field) is None:
            parsed = _parse_date(field, extraction[field])
            if parsed is not None:
                setattr(contract, field, parsed)
                changes.append(f"{field.replace('_', ' ').capitalize()}: {parsed}")

    if extraction.get("all_parties_signed") is True and not contract.all_parties_signed:
        contract.all_parties_signed = True
        changes.append("All parties signed: yes")

    if present("summary") and not contract.ai_summary:
        contract.ai_summary = str(extraction["summary"]).strip()

    if uncertain:
        contract.uncertain_fields = sorted(set(contract.uncertain_fields) | uncertain)
        changes.append(f"Needs review: {', '.join(sorted(uncertain))}")

    return changes
