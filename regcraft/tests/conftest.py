import os
import sys
from pathlib import Path

import pytest

# Add the project root to sys.path so that regcraft is importable
# This is needed because of the flat layout structure
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), "../.."))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from regcraft.runtime import AbstractBusInterface  # noqa: E402

DATA_DIR = Path(__file__).parent / "data"

SPI_SVD = """<?xml version="1.0" encoding="utf-8"?>
<device>
  <name>MINI</name>
  <peripherals>
    <peripheral>
      <name>SPI1</name>
      <baseAddress>0x40013000</baseAddress>
      <registers>
        <register>
          <name>CR1</name>
          <addressOffset>0x0</addressOffset>
          <fields>
            <field>
              <name>CPOL</name>
              <bitOffset>1</bitOffset>
              <bitWidth>1</bitWidth>
            </field>
            <field>
              <name>SPE</name>
              <bitOffset>6</bitOffset>
              <bitWidth>1</bitWidth>
            </field>
          </fields>
        </register>
      </registers>
    </peripheral>
  </peripherals>
</device>
"""


class MockBusInterface(AbstractBusInterface):
    """Mock bus interface recording every access."""

    def __init__(self, memory=None):
        self.memory = dict(memory or {})
        self.reads = []
        self.writes = []

    def read_word(self, address: int, width: int = 32) -> int:
        self.reads.append(address)
        return self.memory.get(address, 0)

    def write_word(self, address: int, data: int, width: int = 32) -> None:
        self.writes.append((address, data))
        self.memory[address] = data

    def clear_history(self):
        self.reads = []
        self.writes = []


@pytest.fixture
def demo_svd_path() -> Path:
    return DATA_DIR / "demo.svd"


@pytest.fixture
def spi_svd() -> str:
    return SPI_SVD


@pytest.fixture
def mock_bus() -> MockBusInterface:
    return MockBusInterface()
