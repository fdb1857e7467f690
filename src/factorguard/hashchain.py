"""Keyed fingerprints at progressive disclosure levels.

L0  H(tax_id|country)                               one per party
L1  H(doc_type|supplier_tax|supplier_cc|buyer_tax|buyer_cc)
L2  H(L1 preimage|document_id)
L3  H(L2 preimage|amount|currency)

H is HMAC-SHA256 under the operator's secret, rendered as 64 lowercase hex
characters.  Each level's preimage extends the previous one, so a higher
level can only exist when every lower level does.
"""

from __future__ import annotations

import hashlib
import hmac
import re
from dataclasses import dataclass

from factorguard.normalization import InvoiceFields, normalize_amount, normalize_code, normalize_tax_id

FINGERPRINT_RE = re.compile(r"^[0-9a-f]{64}$")

LEVEL_NAMES = {1: "L1", 2: "L2", 3: "L3"}


def level_for_index(index: int) -> int:
    """Disclosure level of the fingerprint at ``index`` in an ordered request.

    Out-of-range indices fall back to level 1; request validation caps the
    list at three entries so the API never hits that branch.
    """
    if 0 <= index <= 2:
        return index + 1
    return 1


@dataclass(frozen=True)
class FingerprintSet:
    l0_supplier: str | None = None
    l0_buyer: str | None = None
    l1: str | None = None
    l2: str | None = None
    l3: str | None = None

    def document_levels(self) -> list[str]:
        """Ordered L1..L3 fingerprints, stopping at the first missing level."""
        levels: list[str] = []
        for value in (self.l1, self.l2, self.l3):
            if value is None:
                break
            levels.append(value)
        return levels


class HashChain:
    """Fingerprint generator bound to one secret for its whole lifetime."""

    __slots__ = ("_key",)

    def __init__(self, key: str | bytes) -> None:
        if not key:
            raise ValueError("HashChain requires a non-empty key")
        self._key = key.encode() if isinstance(key, str) else bytes(key)

    def digest(self, preimage: str) -> str:
        return hmac.new(self._key, preimage.encode("utf-8"), hashlib.sha256).hexdigest()

    def party(self, tax_id: str | None, country: str | None) -> str | None:
        """L0 fingerprint for one party, or None if either part is empty after normalization."""
        tax_id = normalize_tax_id(tax_id)
        country = normalize_code(country)
        if not tax_id or not country:
            return None
        return self.digest(f"{tax_id}|{country}")

    def generate(self, fields: InvoiceFields) -> FingerprintSet:
        f = fields.normalized()

        l0_supplier = self.party(f.supplier_tax_id, f.supplier_country)
        l0_buyer = self.party(f.buyer_tax_id, f.buyer_country)
        if not f.has_parties():
            return FingerprintSet(l0_supplier=l0_supplier, l0_buyer=l0_buyer)

        preimage = "|".join(
            (f.document_type, f.supplier_tax_id, f.supplier_country, f.buyer_tax_id, f.buyer_country)
        )
        l1 = self.digest(preimage)

        l2 = l3 = None
        if f.document_id:
            preimage = f"{preimage}|{f.document_id}"
            l2 = self.digest(preimage)
            if f.amount is not None and f.currency:
                preimage = f"{preimage}|{normalize_amount(f.amount)}|{f.currency}"
                l3 = self.digest(preimage)

        return FingerprintSet(l0_supplier=l0_supplier, l0_buyer=l0_buyer, l1=l1, l2=l2, l3=l3)
