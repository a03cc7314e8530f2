"""
Code generators for register accessors.
"""

from .base_generator import BaseGenerator
from .naming import RustNamingScheme
from .rust import RustGenerator

__all__ = ["BaseGenerator", "RustGenerator", "RustNamingScheme"]
