"""Configuration module -- exports Settings, profile loading, and config resolution."""

from corpuschat.config.loader import load_profiles, profile_for_kind, resolve_pipeline_config
from corpuschat.config.pipeline_config import CorpusProfile, PipelineConfig
from corpuschat.config.settings import Settings

__all__ = [
    "CorpusProfile",
    "PipelineConfig",
    "Settings",
    "load_profiles",
    "profile_for_kind",
    "resolve_pipeline_config",
]
