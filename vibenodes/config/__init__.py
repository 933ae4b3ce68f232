"""Configuration for the extension host"""

from .loader import get_config_path, load_config
from .settings import ExtensionHostConfig

__all__ = ["ExtensionHostConfig", "get_config_path", "load_config"]
