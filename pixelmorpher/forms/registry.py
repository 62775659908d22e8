from typing import Dict, Tuple
from uuid import uuid4

from pixelmorpher.errors import NotFoundError
from pixelmorpher.forms.transformation_form import TransformationForm


class FormRegistry:
    """Live transformation forms, each visible only to its owner."""

    def __init__(self):
        self._forms: Dict[str, Tuple[int, TransformationForm]] = {}

    def __len__(self) -> int:
        return len(self._forms)

    def add(self, owner_id: int, form: TransformationForm) -> str:
        form_id = uuid4().hex
        self._forms[form_id] = (owner_id, form)
        return form_id

    def get(self, form_id: str, owner_id: int) -> TransformationForm:
        entry = self._forms.get(form_id)
        if entry is None or entry[0] != owner_id:
            raise NotFoundError("Form not found")
        return entry[1]

    def discard(self, form_id: str, owner_id: int):
        self.get(form_id, owner_id)
        del self._forms[form_id]
