"""Server-side state for the image transformation form.

A form moves between idle, editing, transforming and submitting. Prompt and
color edits are debounced into a pending transformation; "apply" folds the
pending transformation into the accumulated config and renders a preview;
"save" persists the image through the image actions.
"""

import asyncio
import logging
import time
from copy import deepcopy
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel

from pixelmorpher.actions import image_actions, user_actions
from pixelmorpher.actions.result import ActionContext, ActionResult
from pixelmorpher.billing.credits import has_sufficient_credits
from pixelmorpher.constants import (
    ASPECT_RATIO_OPTIONS,
    CREDIT_FEE,
    DEFAULT_FORM_VALUES,
    TRANSFORMATION_TYPES,
)
from pixelmorpher.errors import FormStateError
from pixelmorpher.forms.debounce import Debouncer
from pixelmorpher.utils import deep_merge_objects, to_plain_data

logger = logging.getLogger("pixelmorpher.forms")

FORM_ACTIONS = ("Add", "Update")


class TransformationFormValues(BaseModel):
    title: str
    aspect_ratio: Optional[str] = None
    color: Optional[str] = None
    prompt: Optional[str] = None
    public_id: str


class TransformationForm:
    def __init__(
        self,
        ctx: ActionContext,
        action: str,
        user_id: int,
        type: str,
        credit_balance: int,
        data: Optional[Dict[str, Any]] = None,
        config: Optional[Dict[str, Any]] = None,
        media=None,
        credit_fee: int = CREDIT_FEE,
        debounce_seconds: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if action not in FORM_ACTIONS:
            raise ValueError(f"Unknown form action: {action}")
        if type not in TRANSFORMATION_TYPES:
            raise ValueError(f"Unknown transformation type: {type}")
        if action == "Update" and not data:
            raise ValueError("Updating requires the existing image")

        self.ctx = ctx
        self.media = media or ctx.media
        self.action = action
        self.user_id = user_id
        self.type = type
        self.transformation_type = TRANSFORMATION_TYPES[type]
        self.credit_balance = credit_balance
        self.credit_fee = credit_fee

        self.data = deepcopy(data) if data else None
        self.image: Optional[Dict[str, Any]] = deepcopy(data) if data else None
        self.values = self._initial_values()
        self.new_transformation: Optional[Dict[str, Any]] = None
        self.transformation_config: Optional[Dict[str, Any]] = deepcopy(config) if config else None
        self.preview_url: Optional[str] = None

        self.is_transforming = False
        self.is_submitting = False
        self.credit_task: Optional[asyncio.Task] = None
        self.debouncer = Debouncer(debounce_seconds, clock)

        self._preset_new_transformation()

    def _initial_values(self) -> Dict[str, Any]:
        if self.data and self.action == "Update":
            return {field: self.data.get(field) for field in DEFAULT_FORM_VALUES}
        return dict(DEFAULT_FORM_VALUES)

    def _preset_new_transformation(self):
        # Restore and background removal take no parameters
        if self.image and self.type in ("restore", "removeBackground"):
            self.new_transformation = deepcopy(self.transformation_type["config"])

    # Field handlers

    def set_image(self, image: Dict[str, Any]):
        """Attach an uploaded image (public_id, secure_url, width, height)."""
        self.image = {**(self.image or {}), **image}
        self.values["public_id"] = self.image.get("public_id")
        self._preset_new_transformation()

    def set_field(self, name: str, value: str):
        if name == "title":
            self.values["title"] = value
        elif name == "aspect_ratio":
            self.on_select_field(value)
        elif name == "prompt":
            if self.type not in ("remove", "recolor"):
                raise FormStateError(f"'{self.type}' does not take a prompt")
            self.on_input_change("prompt", value, self.type)
        elif name == "color":
            if self.type != "recolor":
                raise FormStateError(f"'{self.type}' does not take a color")
            self.on_input_change("color", value, "recolor")
        else:
            raise FormStateError(f"Unknown field: {name}")

    def on_select_field(self, value: str):
        if self.type != "fill":
            raise FormStateError("Aspect ratio only applies to generative fill")
        image_size = ASPECT_RATIO_OPTIONS.get(value)
        if image_size is None:
            raise FormStateError(f"Unknown aspect ratio: {value}")

        self.image = {
            **(self.image or {}),
            "aspect_ratio": image_size["aspect_ratio"],
            "width": image_size["width"],
            "height": image_size["height"],
        }
        self.new_transformation = deepcopy(self.transformation_type["config"])
        self.values["aspect_ratio"] = value

    def on_input_change(self, field_name: str, value: str, type_key: str):
        key = "prompt" if field_name == "prompt" else "to"

        def update():
            previous = self.new_transformation or {}
            self.new_transformation = {
                **previous,
                type_key: {**(previous.get(type_key) or {}), key: value},
            }

        self.debouncer.schedule((type_key, key), update)
        self.values[field_name] = value

    def refresh(self) -> int:
        """Apply debounced edits whose delay has elapsed."""
        return self.debouncer.poll()

    # Button state

    @property
    def can_transform(self) -> bool:
        self.refresh()
        return not self.is_transforming and self.new_transformation is not None

    @property
    def can_save(self) -> bool:
        return not self.is_submitting

    @property
    def insufficient_credits(self) -> bool:
        return not has_sufficient_credits(self.credit_balance, self.credit_fee)

    # Actions

    def render_preview(self) -> Optional[str]:
        if not self.image or not self.image.get("public_id"):
            return None
        return self.media.build_transformation_url(
            self.image["public_id"],
            self.image.get("width"),
            self.image.get("height"),
            self.transformation_config,
        )

    async def apply_transformation(self) -> ActionResult[str]:
        if not self.can_transform:
            raise FormStateError("No pending transformation or a transformation is already running")

        self.is_transforming = True
        self.transformation_config = deep_merge_objects(self.new_transformation, self.transformation_config)
        self.new_transformation = None
        self.credit_task = asyncio.create_task(
            user_actions.update_credits(self.ctx, self.user_id, self.credit_fee)
        )

        try:
            self.preview_url = await asyncio.to_thread(self.render_preview)
            return ActionResult.success(self.preview_url)
        except Exception as e:
            logger.error(f"Rendering preview failed: {e}")
            return ActionResult.failure(e)
        finally:
            self.is_transforming = False

    async def wait_for_credit_update(self) -> Optional[ActionResult]:
        if self.credit_task is None:
            return None
        result = await self.credit_task
        if result.ok:
            self.credit_balance = result.value["credit_balance"]
        return result

    def _build_image_data(self, values: TransformationFormValues) -> Dict[str, Any]:
        image = self.image
        return {
            "title": values.title,
            "public_id": image["public_id"],
            "transformation_type": self.type,
            "width": image.get("width"),
            "height": image.get("height"),
            "config": self.transformation_config,
            "secure_url": image.get("secure_url"),
            "transformation_url": self.render_preview(),
            "aspect_ratio": values.aspect_ratio or None,
            "prompt": values.prompt or None,
            "color": values.color or None,
        }

    async def submit(self, values: Optional[Dict[str, Any]] = None) -> ActionResult[Dict[str, Any]]:
        if not self.can_save:
            raise FormStateError("A save is already in progress")

        self.is_submitting = True
        try:
            if values:
                self.values.update(values)
            if not self.image or not self.image.get("public_id"):
                raise FormStateError("Upload an image before saving")
            form_values = TransformationFormValues.model_validate(self.values)
            image_data = self._build_image_data(form_values)

            if self.action == "Add":
                result = await image_actions.add_image(self.ctx, image_data, self.user_id, "/")
                if result.ok:
                    self.values = dict(DEFAULT_FORM_VALUES)
                    self.image = deepcopy(self.data) if self.data else None
            else:
                image_id = self.data["id"]
                result = await image_actions.update_image(
                    self.ctx, {**image_data, "id": image_id}, self.user_id, f"/transformations/{image_id}"
                )

            if not result.ok:
                return result
            return ActionResult.success(result.value, redirect_to=f"/transformations/{result.value['id']}")
        except Exception as e:
            logger.error(f"Saving image failed: {e}")
            return ActionResult.failure(e)
        finally:
            self.is_submitting = False

    def snapshot(self) -> Dict[str, Any]:
        return to_plain_data({
            "action": self.action,
            "type": self.type,
            "title": self.transformation_type["title"],
            "subtitle": self.transformation_type["subtitle"],
            "values": self.values,
            "image": self.image,
            "new_transformation": self.new_transformation,
            "transformation_config": self.transformation_config,
            "preview_url": self.preview_url,
            "is_transforming": self.is_transforming,
            "is_submitting": self.is_submitting,
            "can_transform": self.can_transform,
            "can_save": self.can_save,
            "credit_balance": self.credit_balance,
            "insufficient_credits": self.insufficient_credits,
            "aspect_ratio_options": ASPECT_RATIO_OPTIONS if self.type == "fill" else None,
        })
