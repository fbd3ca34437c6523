"""
Site Images.

Resolves popup image references to Wikimedia Commons thumbnails.
"""

from .commons import CommonsThumbnailResolver, reference_to_title

__all__ = ['CommonsThumbnailResolver', 'reference_to_title']
