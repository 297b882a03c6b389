"""
Cosmetic colour shop. Purchases go through the session store's profile
update path, so they are local-first and synced in the background.
"""

from dataclasses import dataclass
from typing import Any, Dict, List

from config.app_config import get_config
from services.auth_service.models import User
from services.auth_service.session_store import SessionStore, SessionError
from utils.logging_config import get_logger, log_user_interaction


class ShopError(Exception):
    """Purchase could not be made"""


class InsufficientCreditsError(ShopError):
    """Balance is lower than the item price"""

    def __init__(self, price: int, balance: int):
        super().__init__(f"Not enough credits! This colour costs {price}, you have {balance}. Chat more to earn credits.")
        self.price = price
        self.balance = balance


@dataclass(frozen=True)
class ShopItem:
    """Purchasable username colour"""
    id: str
    name: str
    style: str  # nameColor token applied to the buyer
    price: int

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ShopItem':
        return cls(id=data["id"], name=data["name"], style=data["style"], price=int(data["price"]))


class ShopService:
    """Catalogue lookup and purchase"""

    def __init__(self, session_store: SessionStore, items: List[ShopItem] = None):
        self.logger = get_logger(__name__)
        self.session_store = session_store
        if items is None:
            items = [ShopItem.from_dict(item) for item in get_config().shop.items]
        self._items = {item.id: item for item in items}

    def list_items(self) -> List[ShopItem]:
        return list(self._items.values())

    def purchase(self, item_id: str) -> User:
        """
        Buy a colour for the current user

        Args:
            item_id: Catalogue id

        Returns:
            Updated user (new nameColor, credits reduced by the price)

        Raises:
            ShopError: Unknown item or nobody logged in
            InsufficientCreditsError: Balance below price
        """
        item = self._items.get(item_id)
        if item is None:
            raise ShopError(f"Unknown shop item: {item_id}")

        user = self.session_store.current_user
        if user is None:
            raise ShopError("Log in to use the shop")

        if user.credits < item.price:
            raise InsufficientCreditsError(item.price, user.credits)

        try:
            updated = self.session_store.update_local({
                "nameColor": item.style,
                "credits": user.credits - item.price,
            })
        except SessionError as e:
            raise ShopError(str(e)) from e

        log_user_interaction(self.logger, "purchase", item_id=item.id, price=item.price, user_id=user.id)
        return updated
