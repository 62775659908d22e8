import logging
from typing import Any, Dict, Union

from pixelmorpher.actions.result import ActionContext, ActionResult
from pixelmorpher.errors import NotFoundError
from pixelmorpher.models.schemas import UserCreate, UserOut, UserUpdate
from pixelmorpher.models.user import User
from pixelmorpher.utils import to_plain_data

logger = logging.getLogger("pixelmorpher.actions")


def _serialize(user: User) -> Dict[str, Any]:
    return to_plain_data(UserOut.model_validate(user).model_dump())


async def create_user(ctx: ActionContext, user: Union[UserCreate, Dict[str, Any]],
                      credit_balance: int = None) -> ActionResult[Dict[str, Any]]:
    """Create the local record for a user signing in for the first time."""
    try:
        await ctx.database.connect()
        payload = user if isinstance(user, UserCreate) else UserCreate.model_validate(user)
        with ctx.database.session() as db:
            new_user = User(**payload.model_dump())
            if credit_balance is not None:
                new_user.credit_balance = credit_balance
            db.add(new_user)
            db.commit()
            db.refresh(new_user)
            logger.info(f"User {new_user.id} created for {new_user.email}")
            return ActionResult.success(_serialize(new_user))
    except Exception as e:
        logger.error(f"create_user failed: {e}")
        return ActionResult.failure(e)


async def get_user_by_id(ctx: ActionContext, user_id: int) -> ActionResult[Dict[str, Any]]:
    try:
        await ctx.database.connect()
        with ctx.database.session() as db:
            user = db.get(User, user_id)
            if not user:
                raise NotFoundError("User not found")
            return ActionResult.success(_serialize(user))
    except Exception as e:
        logger.error(f"get_user_by_id failed: {e}")
        return ActionResult.failure(e)


async def get_user_by_auth_id(ctx: ActionContext, auth_id: str) -> ActionResult[Dict[str, Any]]:
    try:
        await ctx.database.connect()
        with ctx.database.session() as db:
            user = db.query(User).filter(User.auth_id == auth_id).first()
            if not user:
                raise NotFoundError("User not found")
            return ActionResult.success(_serialize(user))
    except Exception as e:
        logger.error(f"get_user_by_auth_id failed: {e}")
        return ActionResult.failure(e)


async def update_user(ctx: ActionContext, user_id: int,
                      user: Union[UserUpdate, Dict[str, Any]]) -> ActionResult[Dict[str, Any]]:
    try:
        await ctx.database.connect()
        payload = user if isinstance(user, UserUpdate) else UserUpdate.model_validate(user)
        with ctx.database.session() as db:
            user_to_update = db.get(User, user_id)
            if not user_to_update:
                raise NotFoundError("User update failed")
            for field, value in payload.model_dump(exclude_unset=True).items():
                setattr(user_to_update, field, value)
            db.commit()
            db.refresh(user_to_update)
            result = _serialize(user_to_update)
        ctx.revalidate("/profile")
        return ActionResult.success(result)
    except Exception as e:
        logger.error(f"update_user failed: {e}")
        return ActionResult.failure(e)


async def update_credits(ctx: ActionContext, user_id: int, credit_fee: int) -> ActionResult[Dict[str, Any]]:
    """Add ``credit_fee`` to the user's balance; spending uses a negative fee."""
    try:
        await ctx.database.connect()
        with ctx.database.session() as db:
            updated = (
                db.query(User)
                .filter(User.id == user_id)
                .update({User.credit_balance: User.credit_balance + credit_fee}, synchronize_session=False)
            )
            if not updated:
                raise NotFoundError("User credits update failed")
            db.commit()
            user = db.get(User, user_id)
            logger.info(f"User {user_id} credit balance is now {user.credit_balance}")
            return ActionResult.success(_serialize(user))
    except Exception as e:
        logger.error(f"update_credits failed: {e}")
        return ActionResult.failure(e)
