"""Declaration-page coverage extraction."""

from .analyzer import PolicyAnalyzer, to_image_data_url
from .models import NOT_FOUND, PolicyDetails

__all__ = ["NOT_FOUND", "PolicyAnalyzer", "PolicyDetails", "to_image_data_url"]
