"""Canonical forms for every field that feeds a fingerprint.

Two funders holding the same invoice must derive byte-identical preimages, so
every value is normalized here before hashing.  All functions are pure.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from factorguard.config import settings

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")


def normalize_tax_id(value: str | None) -> str:
    """Strip everything except ASCII letters/digits and uppercase.

    ``" de-123 456 "`` and ``"DE123456"`` both become ``"DE123456"``.
    """
    if not value:
        return ""
    return _NON_ALNUM.sub("", value).upper()


def normalize_document_id(value: str | None) -> str:
    if not value:
        return ""
    return value.strip().upper()


def normalize_code(value: str | None) -> str:
    """Country, currency, and document-type codes."""
    if not value:
        return ""
    return value.strip().upper()


def normalize_amount(value: float | None) -> str:
    """Exactly two decimals, no grouping, independent of locale."""
    if value is None:
        return ""
    return "%.2f" % value


# ---------------------------------------------------------------------------
# Legacy field aliases
# ---------------------------------------------------------------------------
# Older clients send invoice_number / issuer_*; the canonical name wins unless
# it is empty.


def _prefer(canonical: str | None, legacy: str | None) -> str:
    if canonical and canonical.strip():
        return canonical
    return legacy or ""


def resolve_document_id(document_id: str | None, invoice_number: str | None) -> str:
    return _prefer(document_id, invoice_number)


def resolve_supplier_tax_id(supplier_tax_id: str | None, issuer_tax_id: str | None) -> str:
    return _prefer(supplier_tax_id, issuer_tax_id)


def resolve_supplier_country(supplier_country: str | None, issuer_country: str | None) -> str:
    return _prefer(supplier_country, issuer_country)


@dataclass(frozen=True)
class InvoiceFields:
    """Raw invoice fields after legacy-alias resolution, before normalization."""

    supplier_tax_id: str
    supplier_country: str
    buyer_tax_id: str
    buyer_country: str
    document_type: str = ""
    document_id: str = ""
    amount: float | None = None
    currency: str = ""

    def normalized(self) -> InvoiceFields:
        return InvoiceFields(
            supplier_tax_id=normalize_tax_id(self.supplier_tax_id),
            supplier_country=normalize_code(self.supplier_country),
            buyer_tax_id=normalize_tax_id(self.buyer_tax_id),
            buyer_country=normalize_code(self.buyer_country),
            document_type=normalize_code(self.document_type) or settings.default_document_type,
            document_id=normalize_document_id(self.document_id),
            amount=self.amount,
            currency=normalize_code(self.currency),
        )

    def has_parties(self) -> bool:
        return all(
            (self.supplier_tax_id, self.supplier_country, self.buyer_tax_id, self.buyer_country)
        )
