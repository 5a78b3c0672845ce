"""Configuration management for Plate Sync."""

from .settings import (
    PipelineConfig,
    VisionConfig,
    DriveConfig,
    SyncSettings,
    get_pipeline_config,
    get_secret,
    is_placeholder,
)

__all__ = [
    "PipelineConfig",
    "VisionConfig",
    "DriveConfig",
    "SyncSettings",
    "get_pipeline_config",
    "get_secret",
    "is_placeholder",
]
