"""
vibenodes - extension host core

Discovers, installs, enables/disables and dynamically loads third-party
graph components ("extensions" and "nodes").
"""

__version__ = "0.1.0"
