"""
Seed the fixed packs and their offers for one creator.

Usage:
    python -m fanledger.scripts.seed_catalog <creator-handle> [--display-name NAME]

Re-running updates prices and titles in place.
"""
import argparse
import asyncio

from sqlalchemy import select

from fanledger.core.config import settings
from fanledger.data.packs import PACKS
from fanledger.db.models import Creator, Offer, Pack
from fanledger.db.session import SessionLocal


async def seed(handle: str, display_name: str | None = None):
    async with SessionLocal() as db:
        creator = await db.scalar(select(Creator).where(Creator.handle == handle))
        if creator is None:
            creator = Creator(handle=handle, display_name=display_name or handle)
            db.add(creator)
            await db.flush()
            print(f"Created creator {handle} ({creator.id})")

        for pack in PACKS.values():
            offer = await db.scalar(
                select(Offer).where(Offer.creator_id == creator.id, Offer.code == pack.code)
            )
            if offer:
                offer.title = pack.name
                offer.price_cents = pack.price_cents
                offer.tier = pack.code
                offer.active = True
                print(f"Updated offer {pack.code}")
            else:
                db.add(Offer(
                    creator_id=creator.id,
                    code=pack.code,
                    title=pack.name,
                    tier=pack.code,
                    price_cents=pack.price_cents,
                    currency=settings.WALLET_CURRENCY,
                    active=True,
                ))
                print(f"Inserted offer {pack.code}")

            existing_pack = await db.scalar(
                select(Pack).where(Pack.creator_id == creator.id, Pack.name == pack.name)
            )
            if existing_pack:
                existing_pack.price = f"{pack.price} €"
            else:
                db.add(Pack(creator_id=creator.id, name=pack.name, price=f"{pack.price} €"))
                print(f"Inserted pack {pack.name}")

        await db.commit()
    print("Done.")


def main():
    parser = argparse.ArgumentParser(description="Seed packs and offers for a creator")
    parser.add_argument("handle")
    parser.add_argument("--display-name", default=None)
    args = parser.parse_args()
    asyncio.run(seed(args.handle, args.display_name))


if __name__ == "__main__":
    main()
