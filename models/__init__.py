from .base import Base
from .image import Image
from .annotation import Annotation

__all__ = ['Base', 'Image', 'Annotation']
