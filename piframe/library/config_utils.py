# ---
# jupyter:
#   jupytext:
#     text_representation:
#       extension: .py
#       format_name: light
#       format_version: '1.5'
#       jupytext_version: 1.16.4
#   kernelspec:
#     display_name: Python (piframe-venv)
#     language: python
#     name: piframe-venv
# ---

import yaml
from pathlib import Path
import logging
import shutil
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

# type names allowed in schema files
SCHEMA_TYPES = {
    'str': str,
    'int': int,
    'float': float,
    'bool': bool,
    'dict': dict,
    'list': list,
}


def _schema_type(key: str, rules: dict) -> type:
    type_name = rules.get('type', 'str')
    try:
        return SCHEMA_TYPES[type_name]
    except KeyError:
        logger.warning(f"Unknown type '{type_name}' in schema for '{key}'. Using 'str'.")
        return str


def check_value(key: str, value, rules: dict) -> Optional[str]:
    """
    Check one configuration value against its schema rules.

    Returns:
        str: what is wrong with `value`, or None if it is acceptable.
    """
    expected_type = _schema_type(key, rules)
    # bool is a subclass of int, but "true" is never a sensible port number
    if not isinstance(value, expected_type) or (isinstance(value, bool) and expected_type is not bool):
        return f"'{key}' must be of type {expected_type.__name__}, got {type(value).__name__}."

    allowed = rules.get('allowed')
    if allowed and value not in allowed:
        return f"'{key}' must be one of {allowed}, got {value}."

    value_range = rules.get('range')
    if value_range and isinstance(value, (int, float)):
        low, high = value_range
        if not low <= value <= high:
            return f"'{key}' must be within the range {value_range}, got {value}."

    return None


def validate_config(config: dict, schema: dict) -> Tuple[dict, list]:
    """
    Check `config` against a dict-based schema.

    Every key in the schema ends up in the result: missing keys and keys with
    a bad value get the schema default. Keys the schema does not describe are
    dropped.

    Args:
        config (dict): The configuration section to be validated.
        schema (dict): key -> rules (`type`, `default`, `allowed`, `range`,
            `required`, `fatal`, `description`).

    Returns:
        tuple: (config with defaults applied, list of error dicts with
            `key`, `error` and `fatal`)

    Raises:
        ValueError: if any problem is with a key marked `fatal`.
    """
    validated_config = {}
    errors = []

    logger.debug('Checking config against schema...')
    for key, rules in schema.items():
        default_val = rules.get('default')

        if key in config:
            logger.debug(f'{key}: {config[key]}')
            problem = check_value(key, config[key], rules)
        elif rules.get('required', False):
            description = rules.get('description', 'No description provided')
            problem = (f"'{key}' configuration key is required, but missing. "
                       f"Reasonable value: {default_val}. Description: {description}")
        else:
            validated_config[key] = default_val
            continue

        if problem is None:
            validated_config[key] = config[key]
        else:
            errors.append({'key': key, 'error': problem, 'fatal': rules.get('fatal', False)})
            validated_config[key] = default_val

    for extra_key in set(config) - set(schema):
        logger.warning(f"Extra key '{extra_key}' is not defined in schema and will be removed.")

    fatal_keys = [e['key'] for e in errors if e['fatal']]
    for e in errors:
        logger.warning(e['error'])
        if not e['fatal']:
            logger.warning(f'A reasonable value for {e["key"]} was substituted.')

    if fatal_keys:
        logger.error(f'Fatal configuration error in {", ".join(fatal_keys)}')
        raise ValueError(f"Configuration validation failed: {errors}")

    logger.info(f"Configuration checked, {len(errors)} problem(s) corrected.")
    return validated_config, errors


def load_yaml_file(filepath) -> dict:
    """
    Load a YAML document whose top level is a mapping.

    Raises:
        FileNotFoundError: the file does not exist.
        ValueError: the file can not be parsed, is empty or is not a mapping.
    """
    path = Path(filepath).expanduser().resolve()
    logger.info(f"Reading yaml file at {path}")

    if not path.is_file():
        raise FileNotFoundError(f"YAML file not found: {path}")

    try:
        data = yaml.safe_load(path.read_text(encoding='utf-8'))
    except yaml.YAMLError as e:
        raise ValueError(f"Failed to parse YAML file '{path}': {e}")

    if data is None:
        raise ValueError(f"YAML file '{path}' is empty.")
    if not isinstance(data, dict):
        raise ValueError(f"YAML file '{path}' holds a {type(data).__name__}, expected a mapping.")

    return data


def backup_path(filepath: Path, generation: int) -> Path:
    """`settings.yaml` -> `settings.yaml.<generation>`"""
    return filepath.with_name(f'{filepath.name}.{generation}')


def rotate_backups(filepath: Path, keep: int) -> None:
    """
    Shift `file.1` -> `file.2` ... (dropping the oldest) and copy `filepath` to `file.1`.

    Nothing happens if `filepath` does not exist yet.
    """
    if keep < 1 or not filepath.exists():
        return

    for generation in range(keep - 1, 0, -1):
        older = backup_path(filepath, generation)
        if older.exists():
            older.replace(backup_path(filepath, generation + 1))

    shutil.copy2(filepath, backup_path(filepath, 1))
    logger.debug(f'Previous version of {filepath} kept as {backup_path(filepath, 1)}')


def write_yaml_file(filepath, data: dict, backup: bool = False, keep: int = 2) -> bool:
    """
    Write `data` as YAML, replacing `filepath` in one step.

    The document is written to a temporary file next to the target and then
    moved over it, so a failed write never leaves a truncated file behind.

    Args:
        filepath (str | Path): destination.
        data (dict): mapping to serialize.
        backup (bool): keep the current file as `filepath.1` first (older
            copies move to `.2`, ...).
        keep (int): number of backups to retain.

    Returns:
        bool: True if the file was written.

    Raises:
        FileNotFoundError: the parent directory does not exist.
    """
    filepath = Path(filepath).expanduser().resolve()
    if not filepath.parent.is_dir():
        raise FileNotFoundError(f"Directory does not exist: {filepath.parent}")

    temp_file = filepath.with_name(f'.{filepath.name}.tmp')
    try:
        if backup:
            rotate_backups(filepath, keep)
        with open(temp_file, 'w', encoding='utf-8') as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
        temp_file.replace(filepath)
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Failed to write YAML file {filepath}: {e}")
        if temp_file.exists():
            temp_file.unlink()
        return False

    logger.info(f"YAML file successfully written to {filepath}")
    return True
