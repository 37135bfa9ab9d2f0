"""
SQLAlchemy database models.

Models are organized by domain:
- base: Base declarative class
- fan: Creator and fan (with engagement signals)
- catalog: Offers, packs, content items, PPV messages
- wallet: Wallet and append-only wallet transactions
- access: Time-boxed access grants
- purchase: Purchases and PPV purchases

Import any model from this module:
    from fanledger.db.models import Fan, Wallet, AccessGrant
"""

# Base class (must be imported first)
from .base import Base

from .fan import Creator, Fan
from .catalog import Offer, Pack, ContentItem, PpvMessage
from .wallet import Wallet, WalletTransaction
from .access import AccessGrant
from .purchase import Purchase, PpvPurchase

__all__ = [
    "Base",
    # Fan
    "Creator",
    "Fan",
    # Catalog
    "Offer",
    "Pack",
    "ContentItem",
    "PpvMessage",
    # Wallet
    "Wallet",
    "WalletTransaction",
    # Access
    "AccessGrant",
    # Purchases
    "Purchase",
    "PpvPurchase",
]
