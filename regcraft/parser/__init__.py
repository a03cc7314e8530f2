"""
Parsers for hardware description formats.
"""

from regcraft.errors import MalformedElement

from .svd import SvdDeviceParser

__all__ = ["SvdDeviceParser", "MalformedElement"]
