"""
Services package for the league bot.
"""

from .base import BaseService

__all__ = ['BaseService']
