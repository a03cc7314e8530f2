#!/usr/bin/env python3
"""
regcraft - register accessor compiler.

Usage:
    python scripts/regcraft.py generate device.svd --output device.rs
    python scripts/regcraft.py validate device.svd
"""
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from regcraft.cli import main

if __name__ == "__main__":
    main()
