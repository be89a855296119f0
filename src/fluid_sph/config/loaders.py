"""
Configuration loaders for YAML and JSON files.

This module provides functions to load and validate solver parameters
from YAML/JSON files with support for nested sections and keyword
overrides.
"""

from typing import Dict, Any, Union
from pathlib import Path
import yaml
import json

from fluid_sph.core.solver import SimulationParameters


# Field mapping for nested sections
FIELD_MAPPINGS = {
    'simulation': {
        'particle_count': 'particle_count',
        'particles': 'particle_count',
        'time_step': 'time_step',
        'dt': 'time_step',
        'damping': 'damping',
        'max_velocity': 'max_velocity',
        'lattice_spacing': 'lattice_spacing',
        'random_seed': 'random_seed',
        'seed': 'random_seed',
        'verbose': 'verbose',
    },
    'kernel': {
        'smoothing_radius': 'smoothing_radius',
        'h': 'smoothing_radius',
    },
    'fluid': {
        'rest_density': 'rest_density',
        'stiffness': 'stiffness',
        'viscosity': 'viscosity',
        'surface_tension': 'surface_tension',
    },
    'thermal': {
        'enabled': 'enable_temperature',
        'enable_temperature': 'enable_temperature',
        'diffusivity': 'thermal_diffusivity',
        'thermal_diffusivity': 'thermal_diffusivity',
    },
    'boundary': {
        'stiffness': 'boundary_stiffness',
        'boundary_stiffness': 'boundary_stiffness',
    },
    'external': {
        'gravity': 'gravity',
    },
}


def load_config(filename: Union[str, Path], **overrides) -> SimulationParameters:
    """
    Load solver parameters from a YAML or JSON file.

    Supports nested sections and flattens them to match SimulationParameters
    fields. Also supports command-line style overrides.

    Parameters
    ----------
    filename : str or Path
        Path to configuration file (.yaml, .yml, or .json)
    **overrides : keyword arguments
        Override specific values (e.g., particle_count=2000, viscosity=0.1)

    Returns
    -------
    params : SimulationParameters
        Validated solver parameters

    Raises
    ------
    FileNotFoundError
        If configuration file does not exist
    ValueError
        If file format is unsupported or the parameters are invalid

    Examples
    --------
    >>> params = load_config("dam_break.yaml")
    >>> params = load_config("dam_break.yaml", viscosity=0.1, verbose=True)
    """
    filepath = Path(filename)

    if not filepath.exists():
        raise FileNotFoundError(f"Configuration file not found: {filepath}")

    suffix = filepath.suffix.lower()
    if suffix in ['.yaml', '.yml']:
        config_dict = load_yaml(filepath)
    elif suffix == '.json':
        config_dict = load_json(filepath)
    else:
        raise ValueError(
            f"Unsupported config file format: {suffix}. "
            "Use .yaml, .yml, or .json"
        )

    if not isinstance(config_dict, dict):
        raise ValueError(
            f"Configuration file {filepath} must contain a mapping, "
            f"got {type(config_dict).__name__}"
        )

    flat_config = flatten_config(config_dict)
    flat_config.update(overrides)

    try:
        params = SimulationParameters(**flat_config)
    except ValueError as e:
        raise ValueError(
            f"Configuration validation failed for {filepath}: {e}"
        ) from e

    return params


def load_yaml(filepath: Path) -> Dict[str, Any]:
    """
    Load YAML configuration file.

    Parameters
    ----------
    filepath : Path
        Path to YAML file

    Returns
    -------
    config_dict : Dict[str, Any]
        Configuration dictionary (empty for an empty file)
    """
    with open(filepath, 'r') as f:
        try:
            config_dict = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {filepath}: {e}") from e

    if config_dict is None:
        config_dict = {}

    return config_dict


def load_json(filepath: Path) -> Dict[str, Any]:
    """
    Load JSON configuration file.

    Parameters
    ----------
    filepath : Path
        Path to JSON file

    Returns
    -------
    config_dict : Dict[str, Any]
        Configuration dictionary
    """
    with open(filepath, 'r') as f:
        try:
            config_dict = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {filepath}: {e}") from e

    return config_dict


def flatten_config(config_dict: Dict[str, Any], parent_key: str = '') -> Dict[str, Any]:
    """
    Flatten nested configuration dictionary.

    Converts nested structures like:
        {'fluid': {'viscosity': 0.5}, 'kernel': {'h': 0.3}}
    to:
        {'viscosity': 0.5, 'smoothing_radius': 0.3}

    Also resolves the short aliases listed in FIELD_MAPPINGS.

    Parameters
    ----------
    config_dict : Dict[str, Any]
        Nested configuration dictionary
    parent_key : str
        Parent key for recursion

    Returns
    -------
    flat_dict : Dict[str, Any]
        Flattened configuration dictionary
    """
    flat = {}

    for key, value in config_dict.items():
        if key in FIELD_MAPPINGS and isinstance(value, dict):
            for subkey, subvalue in value.items():
                if subkey in FIELD_MAPPINGS[key]:
                    flat[FIELD_MAPPINGS[key][subkey]] = subvalue
                else:
                    # Pass through unmapped keys
                    flat[subkey] = subvalue
        elif isinstance(value, dict):
            flat.update(flatten_config(value, parent_key=key))
        else:
            flat[key] = value

    return flat


def save_config(params: SimulationParameters, filename: Union[str, Path]) -> None:
    """
    Save SimulationParameters to a YAML or JSON file.

    ``boundary_stiffness`` is only written when it was set explicitly, so
    reloading does not raise the unused-parameter warning.

    Parameters
    ----------
    params : SimulationParameters
        Parameters to save
    filename : str or Path
        Output file path (.yaml, .yml or .json)
    """
    filepath = Path(filename)
    config_dict = params.model_dump()

    organized = {
        'simulation': {
            'particle_count': config_dict['particle_count'],
            'time_step': config_dict['time_step'],
            'damping': config_dict['damping'],
            'max_velocity': config_dict['max_velocity'],
            'lattice_spacing': config_dict['lattice_spacing'],
            'random_seed': config_dict['random_seed'],
            'verbose': config_dict['verbose'],
        },
        'kernel': {
            'smoothing_radius': config_dict['smoothing_radius'],
        },
        'fluid': {
            'rest_density': config_dict['rest_density'],
            'stiffness': config_dict['stiffness'],
            'viscosity': config_dict['viscosity'],
            'surface_tension': config_dict['surface_tension'],
        },
        'thermal': {
            'enable_temperature': config_dict['enable_temperature'],
            'thermal_diffusivity': config_dict['thermal_diffusivity'],
        },
        'external': {
            'gravity': [float(g) for g in config_dict['gravity']],
        },
    }
    if 'boundary_stiffness' in params.model_fields_set:
        organized['boundary'] = {
            'boundary_stiffness': config_dict['boundary_stiffness'],
        }

    suffix = filepath.suffix.lower()
    if suffix in ['.yaml', '.yml']:
        with open(filepath, 'w') as f:
            yaml.safe_dump(organized, f, default_flow_style=False, sort_keys=False)
    elif suffix == '.json':
        with open(filepath, 'w') as f:
            json.dump(organized, f, indent=2)
    else:
        raise ValueError(f"Unsupported output format: {suffix}. Use .yaml or .json")


def config_from_dict(config_dict: Dict[str, Any]) -> SimulationParameters:
    """
    Create SimulationParameters from a (possibly nested) dictionary.

    Parameters
    ----------
    config_dict : Dict[str, Any]
        Configuration dictionary

    Returns
    -------
    params : SimulationParameters
        Validated parameters
    """
    flat = flatten_config(config_dict)
    return SimulationParameters(**flat)
