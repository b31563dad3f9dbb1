"""
Layered YAML configuration.

Every configuration file ships with the package under config/. A file of
the same name in /etc/codeverdict, then in $XDG_CONFIG_HOME/codeverdict,
then in $CODEVERDICT_CONFIG_DIR is merged over it mapping by mapping, so a
deployment only spells out the keys it changes.
"""
import functools
import os
from collections.abc import Mapping
from pathlib import Path

import yaml

from . import logger

log = logger.get('config')

FALSE_VALUES = ('0', 'false', 'no', 'off')


class ConfigError(Exception):
    pass


def _read_layer(path: Path) -> dict | None:
    """Contents of one configuration file, or None if there is no such file."""
    if not path.is_file():
        return None
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as err:
        raise ConfigError(f'Config file {path}: failed to parse: {err}') from err
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ConfigError(f'Config file {path}: expected a mapping, got {type(data).__name__}')
    return dict(data)


def load_config(configuration_file: str, priority_dirs=()) -> dict:
    """Load a configuration file merged over all configuration directories.

    Args:
        configuration_file: name relative to a configuration directory,
            e.g. "grading.yaml".
        priority_dirs: extra directories taking precedence over all others,
            in increasing order of priority.

    Raises:
        ConfigError: if the bundled file is missing, or some layer cannot
            be parsed or does not hold a mapping.
    """
    _, *overrides = [Path(dirname) for dirname in [*__config_file_paths(), *priority_dirs]]
    result = load_bundled(configuration_file)
    for dirname in overrides:
        layer = _read_layer(dirname / configuration_file)
        if layer:
            __update_dict(result, layer)
    return result


def load_bundled(configuration_file: str) -> dict:
    """The configuration file shipped with the package, without any overrides."""
    base = Path(__config_file_paths()[0])
    result = _read_layer(base / configuration_file)
    if result is None:
        raise ConfigError(f'Base configuration file {configuration_file} not found in {base}')
    return result


def load_with_fallback(configuration_file: str) -> dict:
    """Like load_config, but a broken override layer is reported and skipped.

    The bundled file alone is used in that case, so the engine keeps running
    on its defaults.
    """
    try:
        return load_config(configuration_file)
    except ConfigError as err:
        log.warning('%s; using the bundled %s', err, configuration_file)
        return load_bundled(configuration_file)


@functools.cache
def grading_config() -> dict:
    """grading.yaml as the library sees it, read once per process.

    Call grading_config.cache_clear() to pick up changed files.
    """
    return load_with_fallback('grading.yaml')


def __config_file_paths() -> list[Path]:
    """Configuration directories, lowest priority first."""
    paths = [
        Path(__file__).parent / 'config',
        Path('/etc/codeverdict'),
        Path(os.environ.get('XDG_CONFIG_HOME', Path.home() / '.config')) / 'codeverdict',
    ]
    override = os.environ.get('CODEVERDICT_CONFIG_DIR')
    if override:
        paths.append(Path(override))
    return paths


def __update_dict(orig: dict, update: Mapping) -> None:
    """Merge update into orig.

    Where both sides hold a mapping under the same key the two are merged
    recursively; any other value from update replaces the one in orig.
    """
    for key, value in update.items():
        current = orig.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            __update_dict(current, value)
        else:
            orig[key] = value


def env_flag(name: str) -> bool | None:
    """Value of a boolean environment switch, or None when it is not set."""
    value = os.environ.get(name)
    if value is None:
        return None
    return value.strip().lower() not in FALSE_VALUES


def ast_enabled(grading: dict | None = None) -> bool:
    """Whether AST-based feature extraction may be used.

    The CODEVERDICT_AST_ENABLED environment variable takes precedence over
    the ast_enabled key of grading.yaml.
    """
    switch = env_flag('CODEVERDICT_AST_ENABLED')
    if switch is not None:
        return switch
    if grading is None:
        grading = grading_config()
    return bool(grading.get('ast_enabled', True))
