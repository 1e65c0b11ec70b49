"""Image lookup providers used to decorate menu items."""

from .pexels import PexelsProvider

__all__ = ["PexelsProvider"]
