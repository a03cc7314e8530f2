"""
Tests for the SVD device builder.
"""

import pytest

from regcraft.config import GeneratorConfig
from regcraft.errors import MalformedElement
from regcraft.model import AccessType
from regcraft.parser import SvdDeviceParser
from regcraft.parser.svd.dim_index import expand_dim_index


def _device_xml(registers: str, extra: str = "") -> str:
    return f"""<?xml version="1.0"?>
<device>
  <name>TEST</name>
  {extra}
  <peripherals>
    <peripheral>
      <name>UART0</name>
      <baseAddress>0x40000000</baseAddress>
      <registers>
{registers}
      </registers>
    </peripheral>
  </peripherals>
</device>
"""


def _register_xml(fields: str, name: str = "CTRL", extra: str = "") -> str:
    return f"""
        <register>
          <name>{name}</name>
          <addressOffset>0x0</addressOffset>
          {extra}
          <fields>
{fields}
          </fields>
        </register>
"""


class TestDemoDevice:
    """Parse the full demo description."""

    def setup_method(self):
        self.parser = SvdDeviceParser()

    def test_device_header(self, demo_svd_path):
        device = self.parser.parse_file(demo_svd_path)

        assert device.name == "DEMO"
        assert device.address_width == 32
        assert [p.name for p in device.peripherals] == ["SPI1", "SPI2", "GPIOA"]
        assert device.total_registers == 14

    def test_field_bit_notations(self, demo_svd_path):
        device = self.parser.parse_file(demo_svd_path)
        cr1 = device.get_peripheral("SPI1").get_register("CR1")

        assert cr1.get_field("CPOL").bit_offset == 1
        assert cr1.get_field("SPE").bit_offset == 6  # lsb/msb
        assert cr1.get_field("SPE").bit_width == 1
        br = cr1.get_field("BR")  # bitRange
        assert (br.bit_offset, br.bit_width) == (3, 3)

    def test_enumerated_values(self, demo_svd_path):
        device = self.parser.parse_file(demo_svd_path)
        br = device.get_peripheral("SPI1").get_register("CR1").get_field("BR")

        assert br.enum_name == "BaudRate"
        assert [(v.name, v.value) for v in br.enumerated_values] == [
            ("DIV2", 0),
            ("DIV4", 1),
            ("DIV256", 7),
        ]
        assert br.enumerated_values[0].description == "fPCLK/2"

    def test_inherited_register_properties(self, demo_svd_path):
        device = self.parser.parse_file(demo_svd_path)
        spi1 = device.get_peripheral("SPI1")
        gpioa = device.get_peripheral("GPIOA")

        cr1 = spi1.get_register("CR1")
        assert cr1.size == 32
        assert cr1.access == AccessType.READ_WRITE
        assert cr1.reset_value == 0

        sr = spi1.get_register("SR")
        assert sr.access == AccessType.READ_ONLY
        assert sr.reset_value == 2
        assert sr.get_field("TXE").access == AccessType.READ_ONLY

        assert gpioa.get_register("LCKR").size == 16
        assert gpioa.get_register("BSRR").access == AccessType.WRITE_ONLY

    def test_always_cleared_mask(self, demo_svd_path):
        device = self.parser.parse_file(demo_svd_path)
        spi1 = device.get_peripheral("SPI1")

        assert spi1.get_register("CR2").always_cleared_mask == 0x100
        assert spi1.get_register("CR1").always_cleared_mask == 0

    def test_derived_peripheral_copies_registers(self, demo_svd_path):
        device = self.parser.parse_file(demo_svd_path)
        spi1 = device.get_peripheral("SPI1")
        spi2 = device.get_peripheral("SPI2")

        assert spi2.derived_from == "SPI1"
        assert spi2.base_address == 0x40003800
        assert spi2.registers == spi1.registers
        assert spi2.group_name == "SPI"
        assert spi2.description == spi1.description

    def test_register_array_expansion(self, demo_svd_path):
        device = self.parser.parse_file(demo_svd_path)
        gpioa = device.get_peripheral("GPIOA")

        out0 = gpioa.get_register("OUT0")
        out1 = gpioa.get_register("OUT1")
        assert out0.address_offset == 0x18
        assert out1.address_offset == 0x1C
        assert out1.description == "Output latch 1"
        assert out1.get_field("VAL").bit_width == 8


class TestMalformedInput:
    """Missing or unparsable data is rejected with the element path."""

    def setup_method(self):
        self.parser = SvdDeviceParser()

    def test_missing_bit_width(self):
        xml = _device_xml(
            _register_xml(
                """
            <field>
              <name>EN</name>
              <bitOffset>0</bitOffset>
            </field>
"""
            )
        )
        with pytest.raises(MalformedElement) as exc_info:
            self.parser.parse_string(xml)

        assert "bitWidth" in str(exc_info.value)
        assert exc_info.value.element_path == (
            "device[TEST]/peripheral[UART0]/register[CTRL]/field[EN]"
        )
        assert exc_info.value.line is not None

    def test_missing_bit_position(self):
        xml = _device_xml(_register_xml("<field><name>EN</name></field>"))
        with pytest.raises(MalformedElement, match="Missing bit position"):
            self.parser.parse_string(xml)

    def test_msb_below_lsb(self):
        xml = _device_xml(
            _register_xml("<field><name>EN</name><lsb>4</lsb><msb>2</msb></field>")
        )
        with pytest.raises(MalformedElement, match="below"):
            self.parser.parse_string(xml)

    def test_invalid_number(self):
        xml = _device_xml(
            _register_xml(
                "<field><name>EN</name><bitOffset>zero</bitOffset><bitWidth>1</bitWidth></field>"
            )
        )
        with pytest.raises(MalformedElement, match="Invalid <bitOffset>") as exc_info:
            self.parser.parse_string(xml)
        assert exc_info.value.element_path.endswith("field[EN]/bitOffset")

    def test_missing_device_name(self):
        with pytest.raises(MalformedElement, match="<name>"):
            self.parser.parse_string("<device><peripherals/></device>")

    def test_missing_peripherals(self):
        with pytest.raises(MalformedElement, match="<peripherals>"):
            self.parser.parse_string("<device><name>X</name></device>")

    def test_wrong_root_element(self):
        with pytest.raises(MalformedElement, match="Root element must be <device>"):
            self.parser.parse_string("<peripheral><name>X</name></peripheral>")

    def test_xml_syntax_error(self):
        with pytest.raises(MalformedElement, match="XML syntax error"):
            self.parser.parse_string("<device><name>X</name>")

    def test_unknown_access(self):
        xml = _device_xml(
            _register_xml(
                "<field><name>EN</name><bitOffset>0</bitOffset><bitWidth>1</bitWidth></field>",
                extra="<access>sometimes</access>",
            )
        )
        with pytest.raises(MalformedElement, match="sometimes"):
            self.parser.parse_string(xml)

    def test_unsupported_register_size(self):
        xml = _device_xml(
            _register_xml(
                "<field><name>EN</name><bitOffset>0</bitOffset><bitWidth>1</bitWidth></field>",
                extra="<size>24</size>",
            )
        )
        with pytest.raises(MalformedElement, match="Validation failed"):
            self.parser.parse_string(xml)

    def test_cluster_rejected(self):
        xml = _device_xml("<cluster><name>CH0</name></cluster>")
        with pytest.raises(MalformedElement, match="cluster"):
            self.parser.parse_string(xml)

    def test_unknown_derived_from(self):
        xml = """<device><name>D</name><peripherals>
            <peripheral derivedFrom="NOPE"><name>P</name><baseAddress>0</baseAddress></peripheral>
        </peripherals></device>"""
        with pytest.raises(MalformedElement, match="unknown peripheral 'NOPE'"):
            self.parser.parse_string(xml)

    def test_circular_derived_from(self):
        xml = """<device><name>D</name><peripherals>
            <peripheral derivedFrom="B"><name>A</name><baseAddress>0</baseAddress></peripheral>
            <peripheral derivedFrom="A"><name>B</name><baseAddress>0x100</baseAddress></peripheral>
        </peripherals></device>"""
        with pytest.raises(MalformedElement, match="Circular derivedFrom"):
            self.parser.parse_string(xml)

    def test_register_array_name_needs_placeholder(self):
        xml = _device_xml(
            _register_xml(
                "<field><name>EN</name><bitOffset>0</bitOffset><bitWidth>1</bitWidth></field>",
                name="DATA",
                extra="<dim>2</dim><dimIncrement>4</dimIncrement>",
            )
        )
        with pytest.raises(MalformedElement, match="must contain '%s'"):
            self.parser.parse_string(xml)

    def test_dim_index_count_mismatch(self):
        xml = _device_xml(
            _register_xml(
                "<field><name>EN</name><bitOffset>0</bitOffset><bitWidth>1</bitWidth></field>",
                name="CH%s",
                extra="<dim>3</dim><dimIncrement>4</dimIncrement><dimIndex>A-B</dimIndex>",
            )
        )
        with pytest.raises(MalformedElement, match="lists 2 indices"):
            self.parser.parse_string(xml)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            self.parser.parse_file(tmp_path / "missing.svd")

    def test_file_path_in_message(self, tmp_path):
        svd = tmp_path / "broken.svd"
        svd.write_text(_device_xml(_register_xml("<field><name>EN</name></field>")))

        with pytest.raises(MalformedElement) as exc_info:
            self.parser.parse_file(svd)
        assert exc_info.value.file_path == svd
        assert "broken.svd" in str(exc_info.value)


class TestRegisterArrays:
    @pytest.mark.parametrize(
        "dim_index, names",
        [
            ("", ["CH0", "CH1", "CH2"]),
            ("<dimIndex>4-6</dimIndex>", ["CH4", "CH5", "CH6"]),
            ("<dimIndex>A-C</dimIndex>", ["CHA", "CHB", "CHC"]),
            ("<dimIndex>rx,tx,err</dimIndex>", ["CHrx", "CHtx", "CHerr"]),
        ],
    )
    def test_dim_index_forms(self, dim_index, names):
        xml = _device_xml(
            _register_xml(
                "<field><name>EN</name><bitOffset>0</bitOffset><bitWidth>1</bitWidth></field>",
                name="CH%s",
                extra=f"<dim>3</dim><dimIncrement>0x10</dimIncrement>{dim_index}",
            )
        )
        device = SvdDeviceParser().parse_string(xml)
        registers = device.peripherals[0].registers

        assert [r.name for r in registers] == names
        assert [r.address_offset for r in registers] == [0x0, 0x10, 0x20]

    @pytest.mark.parametrize("dim_index", ["0-", "A-3", "rx;tx;err", ","])
    def test_invalid_dim_index(self, dim_index):
        xml = _device_xml(
            _register_xml(
                "<field><name>EN</name><bitOffset>0</bitOffset><bitWidth>1</bitWidth></field>",
                name="CH%s",
                extra=f"<dim>3</dim><dimIncrement>4</dimIncrement><dimIndex>{dim_index}</dimIndex>",
            )
        )
        with pytest.raises(MalformedElement, match="Invalid <dimIndex>") as exc_info:
            SvdDeviceParser().parse_string(xml)
        assert exc_info.value.element_path.endswith("register[CH%s]/dimIndex")

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("0-3", ["0", "1", "2", "3"]),
            ("10 - 12", ["10", "11", "12"]),
            ("A-C", ["A", "B", "C"]),
            ("rx, tx", ["rx", "tx"]),
            ("7", ["7"]),
        ],
    )
    def test_expand_dim_index(self, text, expected):
        assert expand_dim_index(text) == expected

    def test_bracket_placeholder(self):
        xml = _device_xml(
            _register_xml(
                "<field><name>EN</name><bitOffset>0</bitOffset><bitWidth>1</bitWidth></field>",
                name="DR[%s]",
                extra="<dim>2</dim><dimIncrement>4</dimIncrement>",
            )
        )
        device = SvdDeviceParser().parse_string(xml)
        assert [r.name for r in device.peripherals[0].registers] == ["DR0", "DR1"]


def test_config_defaults_apply():
    xml = _device_xml(
        _register_xml(
            "<field><name>EN</name><bitOffset>0</bitOffset><bitWidth>1</bitWidth></field>"
        )
    )
    config = GeneratorConfig(default_register_size=16, address_width=24)
    device = SvdDeviceParser(config).parse_string(xml)

    assert device.address_width == 24
    assert device.peripherals[0].registers[0].size == 16


@pytest.mark.parametrize(
    "config, expected",
    [
        (GeneratorConfig(), 16),
        (GeneratorConfig(address_width=24), 24),
    ],
)
def test_bus_width_is_only_an_address_width_fallback(config, expected):
    xml = _device_xml(
        _register_xml(
            "<field><name>EN</name><bitOffset>0</bitOffset><bitWidth>1</bitWidth></field>"
        ),
        extra="<width>16</width>",
    )
    device = SvdDeviceParser(config).parse_string(xml)

    assert device.address_width == expected


def test_comments_are_ignored(spi_svd):
    xml = spi_svd.replace("<fields>", "<fields><!-- control bits -->")
    device = SvdDeviceParser().parse_string(xml)
    assert [f.name for f in device.peripherals[0].registers[0].fields] == ["CPOL", "SPE"]
