"""
BACKEND PACKAGE

Flask REST API exposing the twostep authenticator.
"""

from .app import create_app

__all__ = ['create_app']
