"""Recognize which obligations belong to the same series.

Three writers produced installment rows over time, each with its own
conventions:

- platform:   flag True,   flat index/count, info dict, "Perfume - (1/2)"
- rpc:        flag "TRUE", flat index/count,            "Perfume (1/2)"
- automation: flag "sim",  info string "1/2",            "Perfume - Parcela 1/2"

Rows carry no shared key, so the description with its installment suffix
removed (plus the installment count) is what joins them.
"""

import re
from decimal import Decimal
from typing import Any, Optional, Tuple

from obligations_gateway.domain.models import InstallmentInfo, ObligationInstance

# Most specific suffix first
_SUFFIX_PATTERNS = (
    re.compile(r"(?:^|\s+)-?\s*parcela\s*\d+/\d+\s*$", re.IGNORECASE),
    re.compile(r"\s*-?\s*\(\d+/\d+\)\s*$"),
    re.compile(r"\s+\d+/\d+\s*$"),
)

_FRACTION = re.compile(r"^(\d+)/(\d+)$")

_TRUTHY = {"true", "sim", "yes", "1"}


def canonicalize(description: str) -> str:
    """
    Description without its installment suffix ("Perfume - (1/2)" → "Perfume").

    Stacked suffixes are all removed ("Curso 1/2 - Parcela 3/4" → "Curso"),
    not just the outermost one. Stripping a single suffix would make
    canonicalize(canonicalize(x)) differ from canonicalize(x) for such
    descriptions; repeating until stable keeps the function idempotent.
    "parcela" only counts as a suffix when it starts a word.
    """
    if not description:
        return description
    current = description.strip()
    while True:
        for pattern in _SUFFIX_PATTERNS:
            stripped, replaced = pattern.subn("", current, count=1)
            if replaced:
                break
        else:
            return current
        if stripped.strip() == current:
            return current
        current = stripped.strip()


def installment_flag(value: Any) -> bool:
    """Interpret a series flag stored as bool, number or text"""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY
    return False


def parse_installment_info(value: Any) -> Optional[InstallmentInfo]:
    """Parse installment_info from a dict or an "n/m" string; None if unusable"""
    if not value:
        return None

    if isinstance(value, InstallmentInfo):
        return value

    if isinstance(value, dict):
        if "index" not in value or "count" not in value:
            return None
        try:
            original = value.get("original_amount")
            return InstallmentInfo(
                index=int(value["index"]),
                count=int(value["count"]),
                original_amount=Decimal(str(original)) if original not in (None, "") else None,
            )
        except (TypeError, ValueError):
            return None

    if isinstance(value, str):
        cleaned = value.replace('"', "").replace("'", "").strip()
        match = _FRACTION.match(cleaned)
        if match:
            index, count = int(match.group(1)), int(match.group(2))
            if 0 < index <= count:
                return InstallmentInfo(index=index, count=count)

    return None


def resolve_installment_position(
    instance: ObligationInstance,
) -> Tuple[Optional[int], Optional[int]]:
    """(index, count) from the flat fields, falling back to installment_info"""
    info = parse_installment_info(instance.installment_info)
    index = instance.installment_index or (info.index if info else None)
    count = instance.installment_count or (info.count if info else None)
    return index, count


def is_installment_series(instance: ObligationInstance) -> bool:
    """Flagged as installment and split into more than one part"""
    if not installment_flag(instance.is_installment):
        return False
    _, count = resolve_installment_position(instance)
    return count is not None and count > 1


def is_true_series(instance: ObligationInstance) -> bool:
    """
    Whether the instance is part of a multi-instance series.

    A one-shot purchase (count 1, or no count) is never a series even when an
    installment flag is set, so series-wide operations can't reach it.
    """
    return is_installment_series(instance) or installment_flag(instance.is_recurring)
