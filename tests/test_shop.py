"""
Tests for the cosmetic colour shop
"""

import pytest
from unittest.mock import Mock

from infrastructure.storage.local_storage import LocalStorage
from services.auth_service.models import User
from services.auth_service.session_store import SessionStore
from services.shop_service import InsufficientCreditsError, ShopError, ShopItem, ShopService


class TestShopService:

    @pytest.fixture(autouse=True)
    def setup_shop(self, tmp_path):
        self.client = Mock()
        self.session_store = SessionStore(storage=LocalStorage(str(tmp_path / "ls.json")), client=self.client)
        self.shop = ShopService(self.session_store)

    def login(self, credits):
        self.session_store.login(User(id="diver01", username="Diver", name_color="text-cyan-400",
                                      credits=credits, token="tok"))

    def test_catalogue_from_config(self):
        items = self.shop.list_items()

        assert len(items) == 6
        assert items[1] == ShopItem(id="gold", name="Golden Legend", style="text-yellow-400", price=10)

    @pytest.mark.asyncio
    async def test_purchase_sets_color_and_spends_credits(self):
        self.login(credits=12)

        user = self.shop.purchase("gold")

        assert user.name_color == "text-yellow-400"
        assert user.credits == 2
        await self.session_store.drain()
        assert self.client.update.call_args.args[0]["credits"] == 2

    def test_insufficient_credits(self):
        self.login(credits=9)

        with pytest.raises(InsufficientCreditsError) as exc_info:
            self.shop.purchase("gold")

        assert exc_info.value.balance == 9
        assert self.session_store.current_user.name_color == "text-cyan-400"
        self.client.update.assert_not_called()

    def test_unknown_item(self):
        self.login(credits=100)

        with pytest.raises(ShopError):
            self.shop.purchase("rainbow")

    def test_requires_login(self):
        with pytest.raises(ShopError):
            self.shop.purchase("gold")
