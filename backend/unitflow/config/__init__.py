"""
Conversion configuration objects.
"""
from unitflow.config.conversion_config import (
    BranchLayoutConfig,
    ConversionConfig,
    LayeredLayoutConfig,
    RoundTripOptions,
)

__all__ = [
    "BranchLayoutConfig",
    "ConversionConfig",
    "LayeredLayoutConfig",
    "RoundTripOptions",
]
