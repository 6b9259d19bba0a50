from abc import ABC, abstractmethod

from paysync.core.config import get_settings
from paysync.models.account import OrderUpdate, UserAccount


class UserStore(ABC):
    """Document store holding users with their embedded order history."""

    @abstractmethod
    async def get(self, user_id: str) -> UserAccount | None:
        ...

    @abstractmethod
    async def find_by_order_id(self, order_id: str) -> UserAccount | None:
        """Owner of order_id: order_ids membership first, then current_order_id equality."""
        ...

    @abstractmethod
    async def list_with_pending_orders(self) -> list[UserAccount]:
        """Users with at least one locally pending order."""
        ...

    @abstractmethod
    async def apply_order_update(self, update: OrderUpdate) -> bool:
        """
        Atomically write the order record (and plan, when given) to one user.
        Returns False without writing if the stored record is already completed.
        """
        ...


def get_user_store() -> UserStore:
    settings = get_settings()
    if settings.user_store_backend == "memory":
        from paysync.storage.memory import InMemoryUserStore
        if settings.user_store_seed_path:
            return InMemoryUserStore.from_json_file(settings.user_store_seed_path)
        return InMemoryUserStore()
    from paysync.storage.mongo import MongoUserStore
    return MongoUserStore()
