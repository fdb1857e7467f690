"""SQLAlchemy ORM models for factorguard."""

from factorguard.models.api_key import ApiKey
from factorguard.models.base import Base
from factorguard.models.document_fingerprint import DocumentFingerprint
from factorguard.models.document_type import DocumentType
from factorguard.models.party_fingerprint import PartyFingerprint
from factorguard.models.subscription_tier import SubscriptionTier
from factorguard.models.tenant import Tenant
from factorguard.models.usage import UsageNotification, UsageRecord

__all__ = [
    "ApiKey",
    "Base",
    "DocumentFingerprint",
    "DocumentType",
    "PartyFingerprint",
    "SubscriptionTier",
    "Tenant",
    "UsageNotification",
    "UsageRecord",
]
