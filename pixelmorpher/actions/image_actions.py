"""Image actions.

Each action connects, performs one database operation, marks the affected
page path stale and returns a plain-data copy of the record. Errors are
logged and returned as a failed ``ActionResult``.
"""

import logging
import math
from typing import Any, Dict, Union

from sqlalchemy import func
from sqlalchemy.orm import joinedload

from pixelmorpher.actions.result import ActionContext, ActionResult
from pixelmorpher.errors import NotFoundError, UnauthorizedError
from pixelmorpher.models.image import Image
from pixelmorpher.models.schemas import ImageCreate, ImageDetailOut, ImageOut, ImageUpdate
from pixelmorpher.models.user import User
from pixelmorpher.utils import to_plain_data

logger = logging.getLogger("pixelmorpher.actions")


def _serialize(image: Image) -> Dict[str, Any]:
    return to_plain_data(ImageOut.model_validate(image).model_dump())


async def add_image(ctx: ActionContext, image: Union[ImageCreate, Dict[str, Any]], user_id: int,
                    path: str) -> ActionResult[Dict[str, Any]]:
    try:
        await ctx.database.connect()
        payload = image if isinstance(image, ImageCreate) else ImageCreate.model_validate(image)

        with ctx.database.session() as db:
            author = db.get(User, user_id)
            if not author:
                raise NotFoundError("User not found")

            new_image = Image(**payload.model_dump(), author_id=author.id)
            db.add(new_image)
            db.commit()
            db.refresh(new_image)
            logger.info(f"Image {new_image.id} created for user {author.id}")
            result = _serialize(new_image)

        ctx.revalidate(path)
        return ActionResult.success(result)
    except Exception as e:
        logger.error(f"add_image failed: {e}")
        return ActionResult.failure(e)


async def update_image(ctx: ActionContext, image: Union[ImageUpdate, Dict[str, Any]], user_id: int,
                       path: str) -> ActionResult[Dict[str, Any]]:
    try:
        await ctx.database.connect()
        payload = image if isinstance(image, ImageUpdate) else ImageUpdate.model_validate(image)

        with ctx.database.session() as db:
            image_to_update = db.get(Image, payload.id)
            if not image_to_update or image_to_update.author_id != user_id:
                raise UnauthorizedError("Unauthorized or image not found")

            for field, value in payload.model_dump(exclude={"id"}).items():
                setattr(image_to_update, field, value)
            db.commit()
            db.refresh(image_to_update)
            logger.info(f"Image {image_to_update.id} updated by user {user_id}")
            result = _serialize(image_to_update)

        ctx.revalidate(path)
        return ActionResult.success(result)
    except Exception as e:
        logger.error(f"update_image failed: {e}")
        return ActionResult.failure(e)


async def delete_image(ctx: ActionContext, image_id: int) -> ActionResult[None]:
    """Delete an image. The home route is the redirect target either way."""
    try:
        await ctx.database.connect()
        with ctx.database.session() as db:
            db.query(Image).filter(Image.id == image_id).delete()
            db.commit()
        logger.info(f"Image {image_id} deleted")
        return ActionResult.success(redirect_to="/")
    except Exception as e:
        logger.error(f"delete_image failed: {e}")
        return ActionResult.failure(e, redirect_to="/")


async def get_image_by_id(ctx: ActionContext, image_id: int) -> ActionResult[Dict[str, Any]]:
    try:
        await ctx.database.connect()
        with ctx.database.session() as db:
            image = (
                db.query(Image)
                .options(joinedload(Image.author))
                .filter(Image.id == image_id)
                .first()
            )
            if not image:
                raise NotFoundError("Image not found")
            result = to_plain_data(ImageDetailOut.model_validate(image).model_dump())
        return ActionResult.success(result)
    except Exception as e:
        logger.error(f"get_image_by_id failed: {e}")
        return ActionResult.failure(e)


def _paginate(query, limit: int, page: int) -> Dict[str, Any]:
    total = query.count()
    images = (
        query.order_by(Image.created_at.desc(), Image.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "data": [_serialize(image) for image in images],
        "total_pages": math.ceil(total / limit),
    }


async def get_all_images(ctx: ActionContext, limit: int = 9, page: int = 1,
                         search_query: str = "") -> ActionResult[Dict[str, Any]]:
    try:
        await ctx.database.connect()
        with ctx.database.session() as db:
            query = db.query(Image)
            if search_query:
                query = query.filter(func.lower(Image.title).contains(search_query.lower()))
            result = _paginate(query, limit, page)
        return ActionResult.success(result)
    except Exception as e:
        logger.error(f"get_all_images failed: {e}")
        return ActionResult.failure(e)


async def get_user_images(ctx: ActionContext, user_id: int, limit: int = 9,
                          page: int = 1) -> ActionResult[Dict[str, Any]]:
    try:
        await ctx.database.connect()
        with ctx.database.session() as db:
            result = _paginate(db.query(Image).filter(Image.author_id == user_id), limit, page)
        return ActionResult.success(result)
    except Exception as e:
        logger.error(f"get_user_images failed: {e}")
        return ActionResult.failure(e)
