"""
regcraft - register accessor compiler.

Usage:
    regcraft generate STM32F103.svd --output src/stm32f103.rs
    regcraft generate STM32F103.svd --link-map memory.ld
    regcraft validate STM32F103.svd

Subcommands:
    generate    Compile an SVD description into Rust register accessors
    validate    Build and validate an SVD description, report diagnostics
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Dict, List

from regcraft.compiler import compile_device
from regcraft.config import load_config
from regcraft.errors import ConfigError, RegCraftError
from regcraft.model.validators import LayoutValidator
from regcraft.parser.svd import SvdDeviceParser


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _fail(error: Exception, use_json: bool) -> None:
    if use_json:
        print(json.dumps({"success": False, "error": str(error)}))
    else:
        print(f"Error: {error}", file=sys.stderr)
    sys.exit(1)


def _write_outputs(outputs: Dict[Path, str]) -> List[str]:
    """Stage every output next to its target, then move all of them into place."""
    staged = []
    try:
        for path, content in outputs.items():
            path.parent.mkdir(parents=True, exist_ok=True)
            temp_path = path.with_name(f".{path.name}.tmp")
            staged.append((temp_path, path))
            temp_path.write_text(content)
    except OSError:
        for temp_path, _ in staged:
            temp_path.unlink(missing_ok=True)
        raise
    for temp_path, path in staged:
        os.replace(temp_path, path)
    return [str(path) for _, path in staged]


def cmd_generate(args):
    """Generate Rust accessors from an SVD file."""
    try:
        config = load_config(args.config)
        if args.link_map:
            config = config.model_copy(update={"emit_link_map": True})
        elif config.emit_link_map and not args.output:
            raise ConfigError("emitLinkMap needs --output or --link-map to place the link map")
        result = compile_device(args.input, config)
    except (RegCraftError, OSError) as e:
        _fail(e, args.json)

    for warn in result.warnings:
        print(f"Warning: {warn.location}: {warn.message}", file=sys.stderr)

    outputs: Dict[Path, str] = {}
    if args.output:
        outputs[Path(args.output)] = result.source
    link_map = next(
        (content for name, content in result.files.items() if name.endswith(".ld")), None
    )
    if link_map is not None:
        link_path = Path(args.link_map) if args.link_map else Path(args.output).with_suffix(".ld")
        outputs[link_path] = link_map

    try:
        written = _write_outputs(outputs)
    except OSError as e:
        _fail(e, args.json)

    if not args.output and not args.json:
        sys.stdout.write(result.source)

    if args.json:
        payload = {
            "success": True,
            "files": written,
            "warnings": [w.message for w in result.warnings],
        }
        if not args.output:
            payload["source"] = result.source
        print(json.dumps(payload))


def cmd_validate(args):
    """Build and validate an SVD file."""
    try:
        config = load_config(args.config)
        device = SvdDeviceParser(config).parse_file(args.input)
        validator = LayoutValidator(device)
        validator.validate()
    except (RegCraftError, OSError) as e:
        _fail(e, args.json)

    if args.json:
        print(
            json.dumps(
                {
                    "success": True,
                    "device": device.name,
                    "peripherals": len(device.peripherals),
                    "registers": device.total_registers,
                    "warnings": [w.message for w in validator.warnings],
                }
            )
        )
    else:
        print(
            f"Device '{device.name}': {len(device.peripherals)} peripherals, "
            f"{device.total_registers} registers"
        )
        print(validator.get_diagnostic_summary())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="regcraft", description="Register accessor compiler for SVD device descriptions"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # generate subcommand
    gen_parser = subparsers.add_parser("generate", help="Generate Rust accessors from SVD")
    gen_parser.add_argument("input", help="SVD device description")
    gen_parser.add_argument("--output", "-o", help="Output .rs file (default: stdout)")
    gen_parser.add_argument("--link-map", help="Write the peripheral link map to this file")
    gen_parser.add_argument("--config", "-c", help="Generator configuration YAML")
    gen_parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    gen_parser.add_argument("--json", action="store_true", help="JSON status output")
    gen_parser.set_defaults(func=cmd_generate)

    # validate subcommand
    val_parser = subparsers.add_parser("validate", help="Validate an SVD description")
    val_parser.add_argument("input", help="SVD device description")
    val_parser.add_argument("--config", "-c", help="Generator configuration YAML")
    val_parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    val_parser.add_argument("--json", action="store_true", help="JSON output")
    val_parser.set_defaults(func=cmd_validate)

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)
    args.func(args)


if __name__ == "__main__":
    main()
