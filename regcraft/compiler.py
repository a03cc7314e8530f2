"""
Compilation pipeline: build, validate, plan, emit.

Each stage either succeeds completely or raises; nothing is returned (and
nothing is written by callers) unless every stage succeeded.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from regcraft.config import GeneratorConfig
from regcraft.generator import RustGenerator
from regcraft.model import Device
from regcraft.model.validators import Diagnostic, validate_device
from regcraft.parser.svd import SvdDeviceParser
from regcraft.planner import DevicePlan, plan_device

logger = logging.getLogger(__name__)


@dataclass
class CompileResult:
    device: Device
    plan: DevicePlan
    warnings: List[Diagnostic] = field(default_factory=list)
    files: Dict[str, str] = field(default_factory=dict)

    @property
    def source(self) -> str:
        """The generated accessor source."""
        return next(content for name, content in self.files.items() if name.endswith(".rs"))


def _compile(
    build: Callable[[SvdDeviceParser], Device], config: GeneratorConfig
) -> CompileResult:
    device = build(SvdDeviceParser(config))
    device, warnings = validate_device(device)
    plan = plan_device(device)
    files = RustGenerator(config=config).generate_all(plan)
    logger.info("Compiled device '%s' into %d file(s)", device.name, len(files))
    return CompileResult(device=device, plan=plan, warnings=warnings, files=files)


def compile_device(
    source_path: Union[str, Path], config: Optional[GeneratorConfig] = None
) -> CompileResult:
    """
    Compile an SVD file into Rust accessor source.

    Raises:
        FileNotFoundError: If the file does not exist
        MalformedElement: If the description is malformed
        LayoutConflict: If the layout is inconsistent or two names collide
            as emitted identifiers
        PlannerInvariantViolation: On an internal defect
    """
    return _compile(lambda parser: parser.parse_file(source_path), config or GeneratorConfig())


def compile_string(
    text: Union[str, bytes], config: Optional[GeneratorConfig] = None
) -> CompileResult:
    """Compile SVD text held in memory."""
    return _compile(lambda parser: parser.parse_string(text), config or GeneratorConfig())
