"""HTTP surface of the extension host"""

from .server import create_app

__all__ = ["create_app"]
