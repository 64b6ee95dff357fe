"""Load provider JSON payloads from disk and tag them with a company type."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Mapping

from finnorm.data.models import COMPANY_TYPES, RawCompanyPayload, make_payload
from finnorm.parsers.detector import detect_sector

logger = logging.getLogger(__name__)


def resolve_company_type(data: Mapping[str, Any], declared: str | None = None) -> str:
    """Pick the company type for a payload.

    Order: the declared type, then ``company_info.company_type``, then
    the sector detector.

    Args:
        data: Provider JSON.
        declared: Caller-supplied type, if any.

    Returns:
        "non_finance" or "finance".

    Raises:
        ValueError: If the declared type is unsupported or detection
            cannot classify the payload.
    """
    if declared is not None:
        if declared not in COMPANY_TYPES:
            raise ValueError(f"Unsupported company type: {declared!r}")
        return declared

    info = data.get("company_info")
    if isinstance(info, Mapping) and info.get("company_type") in COMPANY_TYPES:
        return str(info["company_type"])

    classification = detect_sector(data)
    if classification.sector not in COMPANY_TYPES:
        reason = ", ".join(classification.errors) or "no sector signals"
        raise ValueError(f"Could not determine company type ({reason})")
    logger.debug(
        "Detected %s/%s (confidence %.2f)",
        classification.sector, classification.sub_sector, classification.confidence,
    )
    return classification.sector


def load_payload(path: Path, company_type: str | None = None) -> RawCompanyPayload:
    """Read one JSON payload; the file stem becomes the company id.

    Raises:
        ValueError: If the file is not a JSON object or has no usable type.
        OSError: If the file cannot be read.
    """
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"{path}: payload must be a JSON object")
    return make_payload(path.stem, resolve_company_type(data, company_type), data)


def load_directory(directory: Path, company_type: str | None = None) -> list[RawCompanyPayload]:
    """Load every ``*.json`` payload in a directory, sorted by file name.

    Unreadable or unclassifiable files are skipped with a warning.

    Args:
        directory: Directory of payload files.
        company_type: Type applied to every file, or None to resolve per file.

    Returns:
        Payloads in file-name order.
    """
    payloads = []
    for path in sorted(directory.glob("*.json")):
        try:
            payloads.append(load_payload(path, company_type))
        except (OSError, ValueError) as exc:
            logger.warning("%s: skipped (%s)", path.name, exc)
    logger.info("Loaded %d payloads from %s", len(payloads), directory)
    return payloads
