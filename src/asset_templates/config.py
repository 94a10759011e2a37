"""Configuration for asset-templates.

Two layers live here:

- CodecConfig: the explicit wire conventions a PropertyCodec is built with.
  The template grammar describes field types but not the width of list counts,
  property counts or typedef discriminators, nor the byte order. Those belong to
  the concrete format being targeted, so they are always passed in explicitly.
- AssetTemplatesConfig: process settings read from the environment
  (ASSET_TEMPLATES_*), including deployment defaults for CodecConfig. The core
  never reads these itself; callers turn them into a CodecConfig.
"""

import sys
from pathlib import Path
from typing import Literal, Optional

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

Endianness = Literal["little", "big"]
DiscriminatorMode = Literal["index", "type_id"]
PooledStringLayout = Literal["index", "slice"]

# Byte widths the codec knows how to pack as unsigned integers
SUPPORTED_WIDTHS = (1, 2, 4, 8)


def _check_width(value: int) -> int:
    if value not in SUPPORTED_WIDTHS:
        raise ValueError(f"width must be one of {SUPPORTED_WIDTHS}, got {value}")
    return value


class CodecConfig(BaseModel):
    """Wire conventions for one target format.

    Attributes:
        endianness: Byte order of every scalar, count, key and discriminator
        list_count_width: Width of the element count preceding a list
        property_count_width: Width of the entry count preceding a property list
        property_length_width: Width of the per-entry byte length in a property
            list, or None when entries are not length-prefixed
        typedef_discriminator_width: Width of the token preceding a typedef value
        typedef_discriminator: How the typedef token selects a candidate
        enum_width: Width of an enum value token
        id_width: Width of an opaque asset id
        string_index_width: Width of a pooled string index, or of each half of
            a pooled string slice
        typedef_length_width: Width of the byte length between a typedef token
            and its payload, or None when typedef payloads are not length-prefixed
        pooled_string_layout: "index" for a single pool index; "slice" for an
            (offset, length) pair whose all-ones offset marks inline UTF-8 text
        max_depth: Deepest nesting of lists, structs, property lists and
            typedefs the codec will follow
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    endianness: Endianness
    list_count_width: int
    property_count_width: int
    typedef_discriminator_width: int
    property_length_width: Optional[int] = None
    typedef_discriminator: DiscriminatorMode = "index"
    enum_width: int = 4
    id_width: int = Field(default=16, gt=0)
    string_index_width: int = 4
    typedef_length_width: Optional[int] = None
    pooled_string_layout: PooledStringLayout = "index"
    max_depth: int = Field(default=128, gt=0)

    @field_validator(
        "list_count_width",
        "property_count_width",
        "typedef_discriminator_width",
        "enum_width",
        "string_index_width",
    )
    @classmethod
    def validate_width(cls, value: int) -> int:
        return _check_width(value)

    @field_validator("property_length_width", "typedef_length_width")
    @classmethod
    def validate_length_width(cls, value: Optional[int]) -> Optional[int]:
        if value is None:
            return value
        return _check_width(value)

    @property
    def byte_order(self) -> str:
        """struct module prefix for the configured endianness."""
        return "<" if self.endianness == "little" else ">"


class AssetTemplatesConfig(BaseSettings):
    """Process-level settings, overridable with ASSET_TEMPLATES_* variables."""

    template_dir: Optional[Path] = Field(
        default=None,
        description="Directory holding root.json and the template sub-directories",
    )
    log_level: str = Field(default="INFO", description="Minimum loguru level for the stderr sink")
    log_file: Optional[Path] = Field(default=None, description="Optional rotating log file")

    # --- Codec defaults ---
    # These describe the usual target format: u32 list counts, u16 property
    # counts and entry sizes, u32 type ids framed by a u16 payload size, and
    # (offset, length) pooled strings. Override per format via env or constructor.
    endianness: Endianness = "little"
    list_count_width: int = 4
    property_count_width: int = 2
    property_length_width: Optional[int] = 2
    typedef_discriminator_width: int = 4
    typedef_discriminator: DiscriminatorMode = "type_id"
    enum_width: int = 4
    id_width: int = 16
    string_index_width: int = 4
    typedef_length_width: Optional[int] = 2
    pooled_string_layout: PooledStringLayout = "slice"
    max_depth: int = 128

    model_config = SettingsConfigDict(
        env_prefix="ASSET_TEMPLATES_",
        extra="ignore",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    def codec_config(self) -> CodecConfig:
        """Build the explicit CodecConfig these settings describe."""
        return CodecConfig(
            endianness=self.endianness,
            list_count_width=self.list_count_width,
            property_count_width=self.property_count_width,
            property_length_width=self.property_length_width,
            typedef_discriminator_width=self.typedef_discriminator_width,
            typedef_discriminator=self.typedef_discriminator,
            enum_width=self.enum_width,
            id_width=self.id_width,
            string_index_width=self.string_index_width,
            typedef_length_width=self.typedef_length_width,
            pooled_string_layout=self.pooled_string_layout,
            max_depth=self.max_depth,
        )


def init_logging(level: str = "INFO", log_file: Optional[Path] = None) -> None:
    """Replace loguru's default sink with the configured ones."""
    logger.remove()
    logger.add(sys.stderr, level=level, colorize=True)
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(log_file, level=level, rotation="10 MB", retention=5, enqueue=True)
    logger.debug(f"Logging initialized at level {level}")


__all__ = [
    "AssetTemplatesConfig",
    "CodecConfig",
    "DiscriminatorMode",
    "Endianness",
    "PooledStringLayout",
    "SUPPORTED_WIDTHS",
    "init_logging",
]
