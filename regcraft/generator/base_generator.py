"""
Base generator interface for register accessor code generation.

Provides the abstract interface language-specific generators implement,
ensuring a consistent API across all targets.

Current implementations:
- RustGenerator: Rust register blocks with snapshot/transaction types
  (regcraft.generator.rust.rust_generator)
"""

import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional, Union

from jinja2 import Environment, FileSystemLoader, StrictUndefined, UndefinedError

from regcraft.config import GeneratorConfig
from regcraft.errors import PlannerInvariantViolation
from regcraft.planner import DevicePlan


class BaseGenerator(ABC):
    """
    Abstract base class for accessor code generators.

    Subclasses must implement language-specific generation methods.
    Templates are loaded from a 'templates' subdirectory.
    """

    def __init__(
        self, template_dir: Optional[str] = None, config: Optional[GeneratorConfig] = None
    ):
        """
        Initialize the generator with Jinja2 environment.

        Args:
            template_dir: Optional custom template directory.
                Defaults to 'templates' subdirectory of concrete generator.
            config: Generator options (defaults when omitted)
        """
        if template_dir is None:
            template_dir = os.path.join(os.path.dirname(__file__), "templates")

        self.template_dir = template_dir
        self.config = config or GeneratorConfig()
        self.env = Environment(
            loader=FileSystemLoader(template_dir),
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            undefined=StrictUndefined,
        )
        self.env.filters["hex"] = lambda value, digits=8: f"0x{value:0{digits}X}"

    def render(self, template_name: str, context: Dict[str, Any]) -> str:
        """Render a template; undefined plan attributes are planner defects."""
        template = self.env.get_template(template_name)
        try:
            return template.render(**context)
        except UndefinedError as e:
            raise PlannerInvariantViolation(
                f"Template '{template_name}' referenced missing plan data: {e}"
            ) from e

    @abstractmethod
    def generate_device(self, plan: DevicePlan) -> str:
        """
        Generate accessor source for a whole device.

        Args:
            plan: Device access plan

        Returns:
            Source file content as string
        """
        pass

    @abstractmethod
    def generate_link_map(self, plan: DevicePlan) -> str:
        """
        Generate the symbol-to-address map consumed by the external linker.

        Args:
            plan: Device access plan

        Returns:
            Link map content as string
        """
        pass

    @abstractmethod
    def source_filename(self, plan: DevicePlan) -> str:
        pass

    def generate_all(self, plan: DevicePlan) -> Dict[str, str]:
        """
        Generate all files for the device.

        Returns:
            Dictionary mapping filename to content
        """
        files = {self.source_filename(plan): self.generate_device(plan)}
        if self.config.emit_link_map:
            files[f"{Path(self.source_filename(plan)).stem}.ld"] = self.generate_link_map(plan)
        return files

    def write_files(self, plan: DevicePlan, output_dir: Union[str, Path]) -> Dict[str, Path]:
        """
        Generate and write all files to output directory.

        Every file is rendered before the first one is written.

        Returns:
            Dictionary mapping filename to written file path
        """
        output_path = Path(output_dir)
        files = self.generate_all(plan)

        output_path.mkdir(parents=True, exist_ok=True)
        written = {}
        for filename, content in files.items():
            file_path = output_path / filename
            file_path.write_text(content)
            written[filename] = file_path

        return written
