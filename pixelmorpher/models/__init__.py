# pixelmorpher/models/__init__.py
from .base import Base
from .user import User
from .image import Image

__all__ = ['Base', 'User', 'Image']
