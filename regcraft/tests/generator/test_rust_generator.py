"""
Tests for the Rust accessor generator.
"""

import re

import pytest

from regcraft.compiler import compile_device, compile_string
from regcraft.config import GeneratorConfig
from regcraft.errors import LayoutConflict, PlannerInvariantViolation
from regcraft.generator import RustGenerator, RustNamingScheme
from regcraft.model import Device, EnumeratedValue, FieldDef, Peripheral, RegisterDef
from regcraft.planner import plan_device


@pytest.fixture
def demo_plan(demo_svd_path):
    return compile_device(demo_svd_path).plan


@pytest.fixture
def demo_source(demo_plan):
    return RustGenerator().generate_device(demo_plan)


def _item(source: str, header: str) -> str:
    """Text of the item starting with ``header`` up to its closing brace at item indent."""
    start = source.index(header)
    end = source.index("\n        }\n", start)
    return source[start:end]


class TestModuleStructure:
    def test_device_and_peripheral_modules(self, demo_source):
        assert "pub mod demo {" in demo_source
        # SPI1 and SPI2 share one register block named after their group
        assert "    pub mod spi {" in demo_source
        assert "    pub mod gpioa {" in demo_source
        assert "pub mod spi2" not in demo_source
        assert "use volatile_cell::VolatileCell;" in demo_source

    def test_header_comment(self, demo_source):
        assert demo_source.startswith("// Register accessors for device DEMO.\n")
        assert "do not edit" in demo_source.splitlines()[1]

    def test_register_block_padding(self, demo_source):
        block = _item(demo_source, "pub struct RegisterBlock {\n            pub crl")
        lines = [line.strip() for line in block.splitlines()[1:]]

        assert lines == [
            "pub crl: Crl,",
            "_pad0: [u8; 4],",
            "pub idr: Idr,",
            "_pad1: [u8; 4],",
            "pub bsrr: Bsrr,",
            "_pad2: [u8; 4],",
            "pub out0: Out0,",
            "pub out1: Out1,",
            "pub lckr: Lckr,",
        ]

    def test_register_storage_width(self, demo_source):
        assert "pub struct Lckr {\n            value: VolatileCell<u16>," in demo_source
        assert "pub struct Cr1 {\n            value: VolatileCell<u32>," in demo_source

    def test_extern_statics(self, demo_source):
        assert '#[link_name = "mmap_demo_spi1"]\n            pub static SPI1: RegisterBlock;' in (
            demo_source
        )
        assert '#[link_name = "mmap_demo_spi2"]\n            pub static SPI2: RegisterBlock;' in (
            demo_source
        )
        assert '#[link_name = "mmap_demo_gpioa"]' in demo_source
        # Base addresses are resolved at link time only
        assert "0x40013000" not in demo_source


class TestAccessTypes:
    def test_read_write_register(self, demo_source):
        assert "pub struct Cr1Get {" in demo_source
        assert "pub struct Cr1Update<'a> {" in demo_source
        impl = _item(demo_source, "impl Cr1 {")
        assert "pub fn get(&self) -> Cr1Get" in impl
        assert "pub fn update(&self) -> Cr1Update<'_>" in impl
        assert "pub fn ignoring_state(&self) -> Cr1Update<'_>" in impl

    def test_read_only_register_has_no_update(self, demo_source):
        assert "pub struct SrGet {" in demo_source
        assert "SrUpdate" not in demo_source
        impl = _item(demo_source, "impl Sr {")
        assert "pub fn ignoring_state" not in impl
        assert "pub fn set_" not in impl

    def test_write_only_register_has_no_get(self, demo_source):
        assert "BsrrGet" not in demo_source
        impl = _item(demo_source, "impl Bsrr {")
        assert "pub fn update" not in impl
        assert "pub fn ignoring_state(&self) -> BsrrUpdate<'_>" in impl
        assert "BsrrUpdate::new_ignoring_state(self)" in impl
        assert "pub fn new(reg" not in _item(demo_source, "impl<'a> BsrrUpdate<'a> {")

    def test_constants(self, demo_source):
        assert "pub const ALWAYS_CLEARED_MASK: u32 = 0x00000100;" in demo_source
        assert "pub const ALWAYS_CLEARED_MASK: u16 = 0x0000;" in demo_source
        assert "pub const RESET_VALUE: u32 = 0x00000002;" in demo_source

    def test_drop_commits(self, demo_source):
        drop = _item(demo_source, "impl<'a> Drop for Cr2Update<'a> {")
        assert "if self.write_only { 0 } else { self.reg.value.get() }" in drop
        assert "& !Cr2::ALWAYS_CLEARED_MASK" in drop


class TestFieldAccessors:
    def test_bool_getter(self, demo_source):
        snapshot = _item(demo_source, "impl Cr1Get {")
        assert "pub fn spe(&self) -> bool {" in snapshot
        assert "((self.value >> 6) & 0x1) != 0" in snapshot

    def test_uint_getter(self, demo_source):
        snapshot = _item(demo_source, "impl Out0Get {")
        assert "pub fn val(&self) -> u8 {" in snapshot
        assert "((self.value >> 0) & 0xFF) as u8" in snapshot

    def test_setter_chains(self, demo_source):
        update = _item(demo_source, "impl<'a> Cr1Update<'a> {")
        assert (
            "pub fn set_spe<'b>(&'b mut self, new_value: bool) -> &'b mut Cr1Update<'a> {"
            in update
        )
        assert "self.mask |= 0x1 << 6;" in update

    def test_field_doc_comments(self, demo_source):
        assert "/// SPI enable\n            /// Bits [6]" in demo_source

    def test_enum_type(self, demo_source):
        assert "#[repr(u8)]\n        pub enum Cr1Br {" in demo_source
        assert "Div256 = 7," in demo_source
        assert "pub fn from_bits(bits: u8) -> Option<Cr1Br>" in demo_source
        assert "7 => Some(Cr1Br::Div256)," in demo_source
        assert "pub fn br(&self) -> Option<Cr1Br> {" in demo_source
        assert "new_value: Cr1Br" in demo_source

    def test_read_only_fields_have_no_setters(self, demo_source):
        assert "set_rxne(" not in demo_source
        assert "set_bsy" not in demo_source
        assert "set_txe(" not in demo_source


class TestDeterminism:
    def test_same_plan_same_bytes(self, demo_plan):
        assert RustGenerator().generate_device(demo_plan) == RustGenerator().generate_device(
            demo_plan
        )

    def test_same_file_same_bytes(self, demo_svd_path):
        assert compile_device(demo_svd_path).source == compile_device(demo_svd_path).source

    def test_balanced_braces(self, demo_source):
        assert demo_source.count("{") == demo_source.count("}")
        assert demo_source.endswith("}\n")
        assert not re.search(r"[ \t]+\n", demo_source)


class TestLinkMap:
    def test_symbol_lines(self, demo_plan):
        link_map = RustGenerator().generate_link_map(demo_plan)
        lines = link_map.splitlines()

        assert lines[0].startswith("/*")
        assert lines[1:] == [
            "mmap_demo_spi1 = 0x40013000;",
            "mmap_demo_spi2 = 0x40003800;",
            "mmap_demo_gpioa = 0x40010800;",
        ]

    def test_custom_prefix(self, demo_plan):
        config = GeneratorConfig(link_prefix="periph_")
        source = RustGenerator(config=config).generate_device(demo_plan)
        assert '#[link_name = "periph_demo_spi1"]' in source

    def test_generate_all(self, demo_plan):
        assert list(RustGenerator().generate_all(demo_plan)) == ["demo.rs"]

        files = RustGenerator(config=GeneratorConfig(emit_link_map=True)).generate_all(demo_plan)
        assert list(files) == ["demo.rs", "demo.ld"]

    def test_write_files(self, demo_plan, tmp_path):
        generator = RustGenerator(config=GeneratorConfig(emit_link_map=True))
        written = generator.write_files(demo_plan, tmp_path / "out")

        assert set(written) == {"demo.rs", "demo.ld"}
        assert written["demo.rs"].read_text() == generator.generate_device(demo_plan)


class TestNaming:
    def setup_method(self):
        self.naming = RustNamingScheme()

    @pytest.mark.parametrize(
        "name, expected",
        [("CR1", "cr1"), ("TYPE", "type_"), ("match", "match_"), ("2X", "_2_x")],
    )
    def test_snake(self, name, expected):
        assert self.naming.snake(name) == expected

    def test_reserved_method_names(self):
        assert self.naming.getter_name("GET") == "get_field"
        assert self.naming.setter_name("RAW") == "set_raw_field"
        assert self.naming.getter_name("EN") == "en"

    def test_type_names(self):
        assert self.naming.snapshot_type("USART_CR1") == "UsartCr1Get"
        assert self.naming.transaction_type("CR1") == "Cr1Update"
        assert self.naming.enum_type("CR1", "BR") == "Cr1Br"
        assert self.naming.static_name("Spi1") == "SPI1"

    def test_link_name(self):
        assert self.naming.link_name("NRF52", "UART0") == "mmap_nrf52_uart0"
        assert RustNamingScheme("x_").link_name("D", "P") == "x_d_p"


def test_missing_template_data_is_invariant_violation(demo_plan, tmp_path):
    (tmp_path / "device.rs.j2").write_text("{{ peripherals[0].nonexistent }}\n")

    with pytest.raises(PlannerInvariantViolation, match="device.rs.j2"):
        RustGenerator(template_dir=str(tmp_path)).generate_device(demo_plan)


def _bit(name, offset=0, values=()):
    return FieldDef(
        name=name,
        bit_offset=offset,
        bit_width=1,
        enumerated_values=[EnumeratedValue(name=n, value=v) for n, v in values],
    )


def _single_peripheral_plan(*registers):
    regs = [
        RegisterDef(name=name, address_offset=4 * i, fields=list(fields))
        for i, (name, fields) in enumerate(registers)
    ]
    device = Device(
        name="TEST",
        peripherals=[Peripheral(name="UART0", base_address=0x40000000, registers=regs)],
    )
    return plan_device(device)


class TestIdentifierCollisions:
    """Distinct element names that map onto one Rust identifier are rejected."""

    @pytest.mark.parametrize(
        "registers, ident",
        [
            ([("CR", [_bit("MODE", values=[("ON", 1)])]), ("CR_MODE", [])], "CrMode"),
            ([("CR", []), ("CR_GET", [])], "CrGet"),
            ([("CR", []), ("CR_UPDATE", [])], "CrUpdate"),
            ([("VOLATILE_CELL", [])], "VolatileCell"),
            ([("REGISTER_BLOCK", [])], "RegisterBlock"),
            ([("CR", [_bit("GET"), _bit("GET_FIELD", 1)])], "get_field"),
            ([("CR", [_bit("EN"), _bit("SET_EN", 1)])], "set_en"),
            ([("CR", [_bit("MODE", values=[("0", 0), ("V0", 1)])])], "V0"),
        ],
    )
    def test_collision_rejected(self, registers, ident):
        plan = _single_peripheral_plan(*registers)

        with pytest.raises(LayoutConflict, match=f"as `{ident}`"):
            RustGenerator().generate_device(plan)

    def test_collision_names_both_elements(self):
        plan = _single_peripheral_plan(
            ("CR", [_bit("MODE", values=[("ON", 1)])]), ("CR_MODE", [])
        )

        with pytest.raises(LayoutConflict) as exc_info:
            RustGenerator().generate_link_map(plan)

        assert exc_info.value.first == "enumerated values of field UART0.CR.MODE"
        assert exc_info.value.second == "register UART0.CR_MODE"
        assert "module uart0" in exc_info.value.reason

    def test_compile_rejects_collision(self):
        svd = """<?xml version="1.0"?>
<device>
  <name>TEST</name>
  <peripherals>
    <peripheral>
      <name>UART0</name>
      <baseAddress>0x40000000</baseAddress>
      <registers>
        <register><name>CR</name><addressOffset>0x0</addressOffset></register>
        <register><name>CR_GET</name><addressOffset>0x4</addressOffset></register>
      </registers>
    </peripheral>
  </peripherals>
</device>
"""
        with pytest.raises(LayoutConflict, match="CrGet"):
            compile_string(svd)

    def test_write_only_register_frees_snapshot_name(self):
        regs = [
            RegisterDef(name="CR", address_offset=0, access="write-only"),
            RegisterDef(name="CR_GET", address_offset=4),
        ]
        device = Device(
            name="TEST",
            peripherals=[Peripheral(name="UART0", base_address=0x40000000, registers=regs)],
        )

        source = RustGenerator().generate_device(plan_device(device))
        assert "pub struct CrGet {" in source

    def test_prelude_type_names_are_escaped(self):
        source = RustGenerator().generate_device(_single_peripheral_plan(("OPTION", [])))

        assert "pub struct Option_ {" in source
        assert "pub option: Option_," in source
