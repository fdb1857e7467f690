"""Tests for factorguard.hashchain — keyed fingerprints at L0..L3."""

import hashlib
import hmac

import pytest

from factorguard.hashchain import FINGERPRINT_RE, HashChain, level_for_index
from factorguard.normalization import InvoiceFields

KEY = "unit-test-key"


def _fields(**overrides) -> InvoiceFields:
    base = dict(
        supplier_tax_id="DE123456",
        supplier_country="DE",
        buyer_tax_id="FR998877",
        buyer_country="FR",
        document_type="INV",
        document_id="INV-2024-001",
        amount=1500.0,
        currency="EUR",
    )
    base.update(overrides)
    return InvoiceFields(**base)


def _h(preimage: str) -> str:
    return hmac.new(KEY.encode(), preimage.encode(), hashlib.sha256).hexdigest()


@pytest.fixture
def chain() -> HashChain:
    return HashChain(KEY)


class TestPreimages:
    """The chained preimage layout is part of the wire contract."""

    def test_levels_match_reference_digests(self, chain: HashChain) -> None:
        fp = chain.generate(_fields())
        l1 = "INV|DE123456|DE|FR998877|FR"
        assert fp.l1 == _h(l1)
        assert fp.l2 == _h(f"{l1}|INV-2024-001")
        assert fp.l3 == _h(f"{l1}|INV-2024-001|1500.00|EUR")
        assert fp.l0_supplier == _h("DE123456|DE")
        assert fp.l0_buyer == _h("FR998877|FR")

    def test_digest_format(self, chain: HashChain) -> None:
        fp = chain.generate(_fields())
        for value in (fp.l0_supplier, fp.l0_buyer, fp.l1, fp.l2, fp.l3):
            assert FINGERPRINT_RE.match(value)


class TestDeterminism:
    def test_equivalent_inputs_give_identical_fingerprints(self, chain: HashChain) -> None:
        a = chain.generate(_fields())
        b = chain.generate(
            _fields(
                supplier_tax_id=" de-123 456 ",
                supplier_country=" de",
                buyer_tax_id="fr 998.877",
                buyer_country="Fr ",
                document_type="inv",
                document_id="  inv-2024-001",
                amount=1500,
                currency="eur",
            )
        )
        assert a == b

    def test_different_keys_diverge(self) -> None:
        assert HashChain("k1").generate(_fields()).l1 != HashChain("k2").generate(_fields()).l1

    def test_document_type_defaults_to_invoice(self, chain: HashChain) -> None:
        assert chain.generate(_fields(document_type="")).l1 == chain.generate(_fields()).l1

    def test_empty_key_rejected(self) -> None:
        with pytest.raises(ValueError):
            HashChain("")


class TestMonotonicity:
    """A level exists only if every lower level does."""

    def test_no_document_id_stops_at_l1(self, chain: HashChain) -> None:
        fp = chain.generate(_fields(document_id=""))
        assert fp.l1 is not None
        assert fp.l2 is None
        assert fp.l3 is None
        assert fp.document_levels() == [fp.l1]

    def test_amount_without_currency_stops_at_l2(self, chain: HashChain) -> None:
        fp = chain.generate(_fields(currency=""))
        assert fp.l2 is not None
        assert fp.l3 is None

    def test_missing_party_yields_no_document_levels(self, chain: HashChain) -> None:
        fp = chain.generate(_fields(buyer_tax_id=""))
        assert fp.l1 is None and fp.l2 is None and fp.l3 is None
        assert fp.l0_supplier is not None
        assert fp.l0_buyer is None
        assert fp.document_levels() == []

    def test_full_chain(self, chain: HashChain) -> None:
        fp = chain.generate(_fields())
        assert fp.document_levels() == [fp.l1, fp.l2, fp.l3]


class TestParty:
    def test_party_requires_both_parts(self, chain: HashChain) -> None:
        assert chain.party("DE123", "") is None
        assert chain.party("", "DE") is None
        assert chain.party("de-123", "de") == chain.party("DE123", "DE")


class TestLevelForIndex:
    def test_in_range(self) -> None:
        assert [level_for_index(i) for i in range(3)] == [1, 2, 3]

    def test_out_of_range_falls_back_to_one(self) -> None:
        assert level_for_index(3) == 1
        assert level_for_index(-1) == 1
