"""
Dependency injection container for the user directory.
"""

from .container import Container, get_container, set_container, initialize_container, cleanup_container

__all__ = [
    "Container",
    "get_container",
    "set_container",
    "initialize_container",
    "cleanup_container",
]
