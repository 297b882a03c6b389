"""
Shop service - spend credits on cosmetic username colours.
"""

from .shop import ShopItem, ShopService, ShopError, InsufficientCreditsError

__all__ = [
    'ShopItem',
    'ShopService',
    'ShopError',
    'InsufficientCreditsError'
]
