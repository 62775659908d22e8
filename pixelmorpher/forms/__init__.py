# pixelmorpher/forms/__init__.py
from .debounce import Debouncer
from .transformation_form import TransformationForm, TransformationFormValues
from .registry import FormRegistry

__all__ = ['Debouncer', 'TransformationForm', 'TransformationFormValues', 'FormRegistry']
