"""Fingerprint registries and the match engine built on them."""

from factorguard.registry.documents import DocumentRegistry, RegistrationResult
from factorguard.registry.matching import MatchDetail, MatchEngine, MatchResult
from factorguard.registry.parties import PartyRegistry

__all__ = [
    "DocumentRegistry",
    "MatchDetail",
    "MatchEngine",
    "MatchResult",
    "PartyRegistry",
    "RegistrationResult",
]
