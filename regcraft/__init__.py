"""
regcraft - register accessor compiler for SVD device descriptions.

Pipeline: SVD -> Device model -> layout validation -> access plan -> Rust source.
"""

__version__ = "0.1.0"
