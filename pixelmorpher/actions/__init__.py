# pixelmorpher/actions/__init__.py
from .result import ActionContext, ActionResult
from .image_actions import (
    add_image,
    update_image,
    delete_image,
    get_image_by_id,
    get_all_images,
    get_user_images,
)
from .user_actions import (
    create_user,
    get_user_by_id,
    get_user_by_auth_id,
    update_user,
    update_credits,
)

__all__ = [
    'ActionContext', 'ActionResult',
    'add_image', 'update_image', 'delete_image', 'get_image_by_id', 'get_all_images', 'get_user_images',
    'create_user', 'get_user_by_id', 'get_user_by_auth_id', 'update_user', 'update_credits',
]
