"""Tax id (CPF) normalisation."""

import re

_NON_DIGITS = re.compile(r"\D")


class InvalidTaxIdError(ValueError):
    """Raised when a tax id has no digits left after normalisation."""


def normalize_tax_id(value: str | None) -> str:
    """Strip punctuation from a tax id, keeping digits only."""
    digits = _NON_DIGITS.sub("", value or "")
    if not digits:
        raise InvalidTaxIdError(f"Invalid tax id: {value!r}")
    return digits

