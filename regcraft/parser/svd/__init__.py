"""
SVD parsers for device descriptions.
"""

from .device_parser import SvdDeviceParser
from .element_tree import load_tree, parse_tree

__all__ = ["SvdDeviceParser", "load_tree", "parse_tree"]
