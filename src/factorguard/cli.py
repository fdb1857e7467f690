"""Operator CLI.

Usage::

    factorguard-admin seed
    factorguard-admin create-tenant --name "Acme Factoring" --slug acme --tier basic
    factorguard-admin purge-expired
    factorguard-admin delete-tenant-fingerprints --tenant-id <uuid>
"""

from __future__ import annotations

import argparse
import asyncio
import sys
import uuid

from sqlalchemy import select

from factorguard.config import settings
from factorguard.database import async_session_factory, dispose_engine
from factorguard.models.api_key import ApiKey
from factorguard.models.subscription_tier import SubscriptionTier
from factorguard.models.tenant import Tenant
from factorguard.registry.documents import DocumentRegistry


async def _purge_expired() -> int:
    async with async_session_factory() as db:
        removed = await DocumentRegistry(db).purge_expired()
        await db.commit()
    print(f"Purged {removed} expired fingerprint(s).")
    return 0


async def _delete_tenant_fingerprints(tenant_id: uuid.UUID) -> int:
    async with async_session_factory() as db:
        removed = await DocumentRegistry(db).delete_owned_by(tenant_id)
        await db.commit()
    print(f"Deleted {removed} fingerprint(s) attributed to {tenant_id}.")
    return 0


async def _create_tenant(name: str, slug: str, tier_name: str | None) -> int:
    async with async_session_factory() as db:
        tier_id = None
        if tier_name:
            tier = (
                await db.execute(select(SubscriptionTier).where(SubscriptionTier.name == tier_name))
            ).scalar_one_or_none()
            if tier is None:
                print(f"Unknown tier: {tier_name}", file=sys.stderr)
                return 1
            tier_id = tier.id

        tenant = Tenant(name=name, slug=slug, subscription_tier_id=tier_id)
        db.add(tenant)
        await db.flush()

        raw_key = ApiKey.generate_key()
        db.add(
            ApiKey(
                tenant_id=tenant.id,
                key_hash=ApiKey.hash_key(raw_key, settings.api_key_salt),
                name="default",
            )
        )
        await db.commit()

    print(f"Tenant {tenant.id} created ({slug}).")
    print(f"API key (shown once): {raw_key}")
    return 0


async def _run(args: argparse.Namespace) -> int:
    try:
        if args.command == "seed":
            from factorguard.scripts.seed_dev import seed

            await seed()
            return 0
        if args.command == "create-tenant":
            return await _create_tenant(args.name, args.slug, args.tier)
        if args.command == "purge-expired":
            return await _purge_expired()
        if args.command == "delete-tenant-fingerprints":
            return await _delete_tenant_fingerprints(args.tenant_id)
        return 1
    finally:
        await dispose_engine()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="factorguard-admin",
        description="factorguard operator commands",
    )
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("seed", help="Seed catalogue, dev tenant, and dev API key")

    create = subparsers.add_parser("create-tenant", help="Create a tenant and print its API key")
    create.add_argument("--name", required=True)
    create.add_argument("--slug", required=True)
    create.add_argument("--tier", default=None, help="Subscription tier name (default: free)")

    subparsers.add_parser("purge-expired", help="Delete fingerprints past their expiry")

    delete = subparsers.add_parser(
        "delete-tenant-fingerprints",
        help="Account cleanup: delete all fingerprints attributed to a tenant",
    )
    delete.add_argument("--tenant-id", required=True, type=uuid.UUID)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        sys.exit(1)
    sys.exit(asyncio.run(_run(args)))


if __name__ == "__main__":
    main()
