"""
Generator configuration.

Options are read from an optional YAML file with camelCase keys::

    linkPrefix: mmap_
    defaultRegisterSize: 32
    addressWidth: 32
    volatileCell: volatile_cell::VolatileCell
    emitLinkMap: true
"""

from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import Field, ValidationError, field_validator

from regcraft.errors import ConfigError
from regcraft.model.base import StrictModel
from regcraft.model.device import SUPPORTED_REGISTER_SIZES


class GeneratorConfig(StrictModel):
    """Options shared by the device builder and the code generators."""

    link_prefix: str = Field(
        default="mmap_", description="Prefix of the link-time peripheral symbols"
    )
    default_register_size: int = Field(
        default=32, description="Register width used when the description declares none"
    )
    address_width: Optional[int] = Field(
        default=None,
        description="Address width of the device. SVD only declares the bus data width "
        "(<width>), which stands in when this is unset",
        ge=8,
        le=64,
    )
    volatile_cell: str = Field(
        default="volatile_cell::VolatileCell",
        description="Path of the hardware-synchronizing cell type in emitted code",
    )
    emit_link_map: bool = Field(default=False, description="Also emit a link map")

    @field_validator("default_register_size")
    @classmethod
    def validate_register_size(cls, v: int) -> int:
        if v not in SUPPORTED_REGISTER_SIZES:
            raise ValueError(f"must be one of {SUPPORTED_REGISTER_SIZES}, got {v}")
        return v

    @field_validator("volatile_cell")
    @classmethod
    def validate_volatile_cell(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("volatile_cell cannot be empty")
        return v


def load_config(file_path: Optional[Union[str, Path]] = None) -> GeneratorConfig:
    """
    Load generator configuration from a YAML file.

    Args:
        file_path: Path to the YAML file, or None for the defaults

    Returns:
        GeneratorConfig: Validated configuration

    Raises:
        ConfigError: If the file is missing, not valid YAML or has invalid options
    """
    if file_path is None:
        return GeneratorConfig()

    file_path = Path(file_path)
    if not file_path.exists():
        raise ConfigError(f"Config file not found: {file_path}")

    try:
        with open(file_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"YAML syntax error in {file_path}: {e}")

    if data is None:
        return GeneratorConfig()
    if not isinstance(data, dict):
        raise ConfigError(f"Root element of {file_path} must be a YAML mapping")

    try:
        return GeneratorConfig(**data)
    except ValidationError as e:
        errors = []
        for error in e.errors():
            loc = " -> ".join(str(x) for x in error["loc"])
            errors.append(f"{loc}: {error['msg']}")
        raise ConfigError(f"Invalid config {file_path}:\n  " + "\n  ".join(errors))
