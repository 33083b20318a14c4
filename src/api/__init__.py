"""
API module for the local camera server
"""

from .main_api import CameraAPI

__all__ = ['CameraAPI']
