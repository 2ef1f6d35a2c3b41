"""Configuration module for secpipe.

Provides pipeline definition loading, parsing, and validation with support for:
- Project-level config (.secpipe.yml) or an explicit path
- Environment variable expansion
- A default security pipeline for ``secpipe init``
"""

from secpipe.config.models import (
    CredentialsConfig,
    OutputConfig,
    PostConfig,
    SecPipeConfig,
)
from secpipe.config.loader import load_config, find_project_config
from secpipe.config.validation import validate_config, ConfigValidationWarning
from secpipe.config.defaults import render_default_pipeline, write_default_pipeline

__all__ = [
    "CredentialsConfig",
    "OutputConfig",
    "PostConfig",
    "SecPipeConfig",
    "load_config",
    "find_project_config",
    "validate_config",
    "ConfigValidationWarning",
    "render_default_pipeline",
    "write_default_pipeline",
]
