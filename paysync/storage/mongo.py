from datetime import datetime

from beanie import PydanticObjectId
from bson.errors import InvalidId

from paysync.core.audit import log_order_update
from paysync.core.logging import get_logger
from paysync.models.account import OrderUpdate, UserAccount
from paysync.models.order import COMPLETED
from paysync.models.user import User
from paysync.storage.base import UserStore

log = get_logger(__name__)


class MongoUserStore(UserStore):
    async def get(self, user_id: str) -> UserAccount | None:
        try:
            oid = PydanticObjectId(user_id)
        except (InvalidId, TypeError):
            return None
        user = await User.get(oid)
        return user.to_account() if user else None

    async def find_by_order_id(self, order_id: str) -> UserAccount | None:
        user = await User.find_one({"order_ids": order_id})
        if not user:
            user = await User.find_one(User.current_order_id == order_id)
        return user.to_account() if user else None

    async def list_with_pending_orders(self) -> list[UserAccount]:
        users = await User.find({"pending_order_ids.0": {"$exists": True}}).to_list()
        return [u.to_account() for u in users]

    async def apply_order_update(self, update: OrderUpdate) -> bool:
        record = update.order
        order_path = f"orders.{record.order_id}"
        now = datetime.utcnow()
        set_fields = {order_path: record.model_dump(), "updated_at": now}
        if update.premium_plan is not None:
            set_fields["is_premium"] = True
            set_fields["premium_plan"] = update.premium_plan.model_dump()
        if update.current_order_id:
            set_fields["current_order_id"] = update.current_order_id
        ops: dict = {
            "$set": set_fields,
            "$addToSet": {"order_ids": record.order_id},
        }
        if record.is_pending:
            ops["$addToSet"]["pending_order_ids"] = record.order_id
        else:
            ops["$pull"] = {"pending_order_ids": record.order_id}

        # The status guard in the filter makes a completed order immune to later writes
        result = await User.find_one(
            {
                "_id": PydanticObjectId(update.user_id),
                f"{order_path}.payment_status": {"$ne": COMPLETED},
            }
        ).update(ops)
        if not result or result.matched_count == 0:
            return False
        await self._audit(update)
        return True

    async def _audit(self, update: OrderUpdate) -> None:
        try:
            await log_order_update(update)
        except Exception as e:
            log.warning("audit_write_failed", order_id=update.order.order_id, error=str(e))
