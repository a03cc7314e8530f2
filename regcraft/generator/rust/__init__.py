"""
Rust accessor generation.
"""

from .rust_generator import RustGenerator

__all__ = ["RustGenerator"]
