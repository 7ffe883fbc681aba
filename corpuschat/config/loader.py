"""YAML corpus-profile loader and pipeline configuration resolver.

Configuration is resolved in layers (later layers override earlier):

  1. ``Settings`` field defaults
  2. the selected corpus profile from ``profiles.yaml``
  3. values set explicitly through environment variables or ``.env``
  4. command-line flags

The profile file ships inside the package; a different file can be passed
with ``path`` (the CLI exposes it as ``--profiles``).
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import yaml

from corpuschat.config.pipeline_config import CorpusProfile, PipelineConfig
from corpuschat.config.settings import Settings
from corpuschat.utils.errors import ConfigurationError

DEFAULT_PROFILES_PATH = Path(__file__).with_name("profiles.yaml")

_COLLECTION_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{1,61}[A-Za-z0-9]$")

# Source kind -> profile used when none is given explicitly.
_KIND_PROFILES: dict[str, str] = {
    "sitemap": "website",
    "page": "website",
    "pdf": "pdf",
    "youtube": "youtube",
}

# PipelineConfig fields that Settings also carries.
_SETTINGS_FIELDS = (
    "collection_name",
    "chunk_size",
    "chunk_overlap",
    "retriever_k",
    "min_similarity",
    "model_temperature",
    "max_answer_tokens",
    "max_context_chars",
    "rephrase_enabled",
    "rephrase_temperature",
    "dont_know_answer",
)


def load_profiles(path: str | Path | None = None) -> dict[str, CorpusProfile]:
    """Load every corpus profile from a YAML file.

    Args:
        path: YAML file to read. Defaults to the packaged ``profiles.yaml``.

    Returns:
        Mapping of profile name to :class:`CorpusProfile`.

    Raises:
        ConfigurationError: If the file is missing, unparsable, or a profile
            contains unknown keys.
    """
    profiles_path = Path(path) if path is not None else DEFAULT_PROFILES_PATH
    if not profiles_path.exists():
        raise ConfigurationError(message=f"Profiles file not found: {profiles_path}")

    try:
        with open(profiles_path, encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(message=f"Invalid profiles file {profiles_path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigurationError(message=f"Profiles file {profiles_path} must map names to profiles")

    profiles: dict[str, CorpusProfile] = {}
    for name, values in raw.items():
        try:
            profiles[name] = CorpusProfile(name=name, **(values or {}))
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(message=f"Invalid profile '{name}': {exc}") from exc
    return profiles


def profile_for_kind(kind: str) -> str:
    """Return the default profile name for a source kind."""
    try:
        return _KIND_PROFILES[kind]
    except KeyError as exc:
        known = ", ".join(sorted(_KIND_PROFILES))
        raise ConfigurationError(message=f"Unknown source kind '{kind}' (expected one of: {known})") from exc


def resolve_pipeline_config(
    settings: Settings,
    profile: CorpusProfile | None = None,
    overrides: dict[str, Any] | None = None,
) -> PipelineConfig:
    """Merge settings, a corpus profile, and CLI overrides into a PipelineConfig.

    Args:
        settings: Loaded application settings.
        profile: Optional corpus profile.
        overrides: CLI values; ``None`` entries are ignored.

    Returns:
        The effective, validated pipeline configuration.

    Raises:
        ConfigurationError: If the merged chunking or retrieval parameters
            or the collection name are invalid.
    """
    values: dict[str, Any] = {name: getattr(settings, name) for name in _SETTINGS_FIELDS}

    if profile is not None:
        explicitly_set = settings.model_fields_set
        for key, value in profile.model_dump(exclude={"name"}, exclude_none=True).items():
            if key in _SETTINGS_FIELDS and key in explicitly_set:
                continue
            values[key] = value

    values.update({k: v for k, v in (overrides or {}).items() if v is not None})

    validate_chunking(values["chunk_size"], values["chunk_overlap"])
    if values["retriever_k"] < 1:
        raise ConfigurationError(message=f"retriever_k must be >= 1 (got {values['retriever_k']})")

    try:
        config = PipelineConfig(**values)
    except ValueError as exc:
        raise ConfigurationError(message=f"Invalid pipeline configuration: {exc}") from exc
    validate_collection_name(config.collection_name)
    return config


def validate_chunking(chunk_size: int, chunk_overlap: int) -> None:
    """Raise ConfigurationError unless ``0 <= chunk_overlap < chunk_size``."""
    if chunk_size <= 0:
        raise ConfigurationError(message=f"chunk_size must be positive (got {chunk_size})")
    if chunk_overlap < 0:
        raise ConfigurationError(message=f"chunk_overlap must not be negative (got {chunk_overlap})")
    if chunk_overlap >= chunk_size:
        raise ConfigurationError(
            message=f"chunk_overlap ({chunk_overlap}) must be smaller than chunk_size ({chunk_size})"
        )


def validate_collection_name(name: str) -> None:
    """Raise ConfigurationError unless *name* is usable as a ChromaDB collection.

    Names are 3-63 characters of letters, digits, ``.``, ``_`` and ``-``,
    start and end with a letter or digit, and contain no ``..``.
    """
    if not _COLLECTION_NAME_RE.match(name) or ".." in name:
        raise ConfigurationError(
            message=(
                f"Invalid collection name {name!r}: use 3-63 letters, digits, '.', '_' or '-', "
                "starting and ending with a letter or digit"
            )
        )
