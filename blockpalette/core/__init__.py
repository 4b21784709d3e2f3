"""Core package - Configuration, logging, exceptions.

This package provides foundational infrastructure used by all other layers.

Modules:
    - config: Environment and configuration management
    - logging: Structured JSON logging
    - exceptions: Custom exception hierarchy
"""

from blockpalette.core.exceptions import (
    BlockPaletteError,
    CandidateError,
    ConfigurationError,
    DuplicateCandidateError,
    HostError,
    HostUnavailableError,
    ResolutionError,
    TemplateParseError,
)

__all__ = [
    "BlockPaletteError",
    "ConfigurationError",
    "HostError",
    "HostUnavailableError",
    "ResolutionError",
    "TemplateParseError",
    "CandidateError",
    "DuplicateCandidateError",
]
