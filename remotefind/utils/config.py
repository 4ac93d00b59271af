import inspect
from typing import Any, Optional

import yaml


class ConfigError(ValueError):
    pass


def load_config(path: Optional[str], target: type, **overrides: Any) -> dict[str, Any]:
    """Read connector arguments from a YAML file.

    Parameters
    ----------
    path : Optional[str]
        Path to configuration file, only ``overrides`` are used if None.
    target : type
        Connector class the arguments are meant for.
    **overrides : Any
        Arguments taking precedence over the file, None values are ignored.

    Returns
    -------
    dict[str, Any]
        Keyword arguments for ``target``.

    Raises
    ------
    ConfigError
        If the file is not a mapping or holds unknown keys.
    """
    config: dict[str, Any] = {}
    if path is not None:
        with open(path) as f:
            config = yaml.safe_load(f) or {}
        if not isinstance(config, dict):
            raise ConfigError(f"configuration file '{path}' must contain a mapping")
    config.update({key: value for key, value in overrides.items() if value is not None})
    accepted = inspect.signature(target).parameters
    unknown = sorted(set(config) - set(accepted))
    if unknown:
        raise ConfigError(f"unknown configuration keys for {target.__name__}: {', '.join(unknown)}")
    return config
