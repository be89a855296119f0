"""
Configuration module: parameter management and run configuration.

Provides YAML/JSON configuration loading and validation for fluid-SPH runs.
"""

from fluid_sph.config.loaders import (
    FIELD_MAPPINGS,
    load_config,
    save_config,
    config_from_dict,
    flatten_config,
)

__all__ = [
    'FIELD_MAPPINGS',
    'load_config',
    'save_config',
    'config_from_dict',
    'flatten_config',
]
