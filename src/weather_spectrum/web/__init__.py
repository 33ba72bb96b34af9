"""
Public site package: page shells and the JSON API.
"""

from .app import ControllerRegistry, create_app

__all__ = ['ControllerRegistry', 'create_app']
