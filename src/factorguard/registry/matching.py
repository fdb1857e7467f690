"""Match engine — compare a caller's fingerprints against both registries."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from factorguard.hashchain import LEVEL_NAMES, FingerprintSet, HashChain, level_for_index
from factorguard.models.base import as_utc, utcnow
from factorguard.normalization import InvoiceFields
from factorguard.registry.documents import DocumentRegistry
from factorguard.registry.parties import PartyRegistry


@dataclass
class MatchDetail:
    status: str  # checked | registered
    first_seen: datetime
    registered_at: date | datetime | None = None


@dataclass
class MatchResult:
    matched_levels: list[str] = field(default_factory=list)
    details: dict[str, MatchDetail] = field(default_factory=dict)

    @property
    def found(self) -> bool:
        return bool(self.matched_levels)

    @property
    def state(self) -> str:
        """``none``, ``party`` (only L0 hits), or ``document``."""
        if any(level in LEVEL_NAMES.values() for level in self.matched_levels):
            return "document"
        if self.matched_levels:
            return "party"
        return "none"

    def prepend(self, level: str, detail: MatchDetail) -> None:
        self.matched_levels.insert(0, level)
        self.details[level] = detail


class MatchEngine:
    def __init__(self, db: AsyncSession, hash_chain: HashChain) -> None:
        self.documents = DocumentRegistry(db)
        self.parties = PartyRegistry(db)
        self.hash_chain = hash_chain

    async def check_fingerprints(
        self,
        fingerprints: Sequence[str],
        now: datetime | None = None,
    ) -> MatchResult:
        """Probe every supplied level; every active hit is reported."""
        rows = await self.documents.find_active(fingerprints, now or utcnow())
        result = MatchResult()
        for index, fingerprint in enumerate(fingerprints):
            row = rows.get(fingerprint)
            if row is None:
                continue
            level = LEVEL_NAMES[level_for_index(index)]
            result.matched_levels.append(level)
            result.details[level] = MatchDetail(
                status="registered",
                first_seen=as_utc(row.created_at),
                registered_at=row.funded_at,
            )
        return result

    async def check_raw(
        self,
        fields: InvoiceFields,
        *,
        include_parties: bool = True,
        now: datetime | None = None,
    ) -> tuple[MatchResult, FingerprintSet]:
        fingerprints = self.hash_chain.generate(fields)
        result = await self.check_fingerprints(fingerprints.document_levels(), now)

        if include_parties:
            # Prepended in reverse so supplier ends up first.
            for level, hash_value, role in (
                ("L0_buyer", fingerprints.l0_buyer, "buyer"),
                ("L0_supplier", fingerprints.l0_supplier, "supplier"),
            ):
                if hash_value is None:
                    continue
                party = await self.parties.probe(hash_value, role)
                if party is None:
                    continue
                result.prepend(
                    level,
                    MatchDetail(
                        status="registered" if party.register_count > 0 else "checked",
                        first_seen=as_utc(party.first_checked_at),
                        registered_at=(
                            as_utc(party.first_registered_at) if party.first_registered_at else None
                        ),
                    ),
                )

        return result, fingerprints
