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

import datetime
import logging
import tempfile
import unittest
from pathlib import Path

import yaml

from piframe.constants import KEY_FRAME_CONFIG
from piframe.library.config_utils import load_yaml_file, validate_config, write_yaml_file
from piframe.library.exceptions import ConfigurationError
from piframe.library.frame_config import (
    FrameConfig,
    load_frame_config,
    load_frame_schema,
    save_frame_config,
    time_from_dict,
)

logging.getLogger("piframe").setLevel(logging.ERROR)


# -------------------------------------------------------------------
# 1) FrameConfig VALUE OBJECT
# -------------------------------------------------------------------
class TestFrameConfig(unittest.TestCase):

    def test_defaults_are_valid(self):
        config = FrameConfig()
        self.assertEqual(config.problems(), {})
        config.validate()

    def test_times_keep_only_hour_and_minute(self):
        config = FrameConfig(awake_time=datetime.datetime(2024, 1, 2, 7, 30, 45))
        self.assertEqual(config.awake_time, datetime.time(7, 30))
        config.sleep_time = datetime.time(22, 15, 59, 100)
        self.assertEqual(config.sleep_time, datetime.time(22, 15))

    def test_time_of_wrong_type_rejected(self):
        with self.assertRaises(TypeError):
            FrameConfig(awake_time='07:30')

    def test_problems_reported_per_field(self):
        config = FrameConfig(
            photo_directory='   ',
            photo_change_interval=0,
            photo_refresh_interval=-1,
            http_port=70000,
            brightness=101,
        )
        problems = config.problems()
        self.assertEqual(
            set(problems),
            {'photo_directory', 'photo_change_interval', 'photo_refresh_interval', 'http_port', 'brightness'},
        )

    def test_validate_raises_with_problems(self):
        config = FrameConfig(brightness=-5)
        with self.assertRaises(ConfigurationError) as ctx:
            config.validate()
        self.assertIn('brightness', ctx.exception.problems)
        self.assertIn('brightness', str(ctx.exception))

    def test_unknown_renderer_rejected(self):
        self.assertIn('renderer', FrameConfig(renderer='vlc').problems())
        self.assertIn('brightness_mapping', FrameConfig(brightness_mapping='log').problems())

    def test_copy_is_deep(self):
        config = FrameConfig(awake_time=datetime.time(7, 0))
        duplicate = config.copy()
        self.assertEqual(config, duplicate)
        self.assertIsNot(config, duplicate)
        duplicate.brightness = 10
        self.assertEqual(config.brightness, 75)

    def test_dict_round_trip(self):
        config = FrameConfig(awake_time=datetime.time(6, 45), sleep_time=None, http_port=8080)
        data = config.to_dict()
        self.assertEqual(data['sleep_time'], {'hour': -1, 'minute': -1})
        self.assertEqual(FrameConfig.from_dict(data), config)

    def test_from_dict_ignores_unknown_keys(self):
        config = FrameConfig.from_dict({'brightness': 40, 'colour': 'blue'})
        self.assertEqual(config.brightness, 40)
        self.assertFalse(hasattr(config, 'colour'))

    def test_time_from_dict(self):
        self.assertIsNone(time_from_dict('awake_time', {'hour': -1, 'minute': 0}))
        self.assertIsNone(time_from_dict('awake_time', None))
        self.assertEqual(time_from_dict('awake_time', {'hour': 8, 'minute': 5}), datetime.time(8, 5))
        with self.assertRaises(ConfigurationError):
            time_from_dict('awake_time', {'hour': 25, 'minute': 0})
        with self.assertRaises(ConfigurationError):
            time_from_dict('awake_time', {'hour': 'eight', 'minute': 0})


# -------------------------------------------------------------------
# 2) SCHEMA VALIDATION
# -------------------------------------------------------------------
class TestValidateConfig(unittest.TestCase):

    def setUp(self):
        self.schema = {
            'brightness': {'type': 'int', 'default': 75, 'range': [0, 100]},
            'renderer': {'type': 'str', 'default': 'pqiv', 'allowed': ['pqiv', 'headless']},
            'http_port': {'type': 'int', 'default': 80, 'fatal': True},
            'photo_directory': {'type': 'str', 'default': '/photos', 'required': True},
        }

    def test_valid_config_passes_through(self):
        config = {'brightness': 50, 'renderer': 'headless', 'http_port': 8080, 'photo_directory': '/p'}
        validated, errors = validate_config(config, self.schema)
        self.assertEqual(validated, config)
        self.assertEqual(errors, [])

    def test_bad_values_replaced_with_defaults(self):
        config = {'brightness': 500, 'renderer': 'vlc', 'http_port': 8080}
        validated, errors = validate_config(config, self.schema)
        self.assertEqual(validated['brightness'], 75)
        self.assertEqual(validated['renderer'], 'pqiv')
        self.assertEqual(validated['photo_directory'], '/photos')
        self.assertEqual({e['key'] for e in errors}, {'brightness', 'renderer', 'photo_directory'})

    def test_bool_is_not_an_int(self):
        validated, errors = validate_config({'brightness': True, 'http_port': 80}, self.schema)
        self.assertEqual(validated['brightness'], 75)
        self.assertEqual(errors[0]['key'], 'brightness')

    def test_fatal_error_raises(self):
        with self.assertRaises(ValueError):
            validate_config({'http_port': 'eighty'}, self.schema)

    def test_extra_keys_dropped(self):
        validated, errors = validate_config({'http_port': 80, 'photo_directory': '/p', 'extra': 1}, self.schema)
        self.assertNotIn('extra', validated)
        self.assertEqual(errors, [])


# -------------------------------------------------------------------
# 3) LOADING AND SAVING
# -------------------------------------------------------------------
class TestLoadFrameConfig(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = Path(self.tmp.name)

    def tearDown(self):
        self.tmp.cleanup()

    def write_config(self, section):
        config_file = self.path / 'piframe_config.yaml'
        with open(config_file, 'w', encoding='utf-8') as f:
            yaml.safe_dump({KEY_FRAME_CONFIG: section}, f)
        return config_file

    def test_shipped_schema_matches_defaults(self):
        schema = load_frame_schema()
        defaults = FrameConfig().to_dict()
        for key, value in defaults.items():
            self.assertIn(key, schema)
            self.assertEqual(schema[key]['default'], value, key)

    def test_missing_file_is_created_with_defaults(self):
        config_file = self.path / 'new' / 'piframe_config.yaml'
        config = load_frame_config(config_file)
        self.assertEqual(config, FrameConfig())
        self.assertTrue(config_file.is_file())
        self.assertIn(KEY_FRAME_CONFIG, load_yaml_file(config_file))

    def test_values_are_loaded(self):
        config_file = self.write_config({
            'photo_directory': '/srv/photos',
            'brightness': 30,
            'awake_time': {'hour': 7, 'minute': 0},
            'renderer': 'headless',
        })
        config = load_frame_config(config_file)
        self.assertEqual(config.photo_directory, '/srv/photos')
        self.assertEqual(config.brightness, 30)
        self.assertEqual(config.awake_time, datetime.time(7, 0))
        self.assertIsNone(config.sleep_time)
        self.assertEqual(config.renderer, 'headless')

    def test_bad_value_replaced_by_default(self):
        config_file = self.write_config({'photo_directory': '/p', 'brightness': 'bright'})
        self.assertEqual(load_frame_config(config_file).brightness, 75)

    def test_bad_port_is_fatal(self):
        config_file = self.write_config({'photo_directory': '/p', 'http_port': 99999})
        with self.assertRaises(ValueError):
            load_frame_config(config_file)

    def test_missing_root_key(self):
        config_file = self.path / 'other.yaml'
        write_yaml_file(config_file, {'something_else': {}})
        with self.assertRaises(ValueError):
            load_frame_config(config_file)

    def test_save_and_reload(self):
        config = FrameConfig(photo_directory='/x', sleep_time=datetime.time(23, 5), photo_change_interval=300)
        config_file = self.path / 'saved.yaml'
        self.assertTrue(save_frame_config(config, config_file))
        self.assertEqual(load_frame_config(config_file), config)

    def test_write_yaml_requires_parent(self):
        with self.assertRaises(FileNotFoundError):
            write_yaml_file(self.path / 'missing' / 'x.yaml', {'a': 1})

    def test_write_yaml_backup_rotation(self):
        target = self.path / 'rotate.yaml'
        for i in range(3):
            write_yaml_file(target, {'n': i}, backup=True, keep=2)
        self.assertEqual(load_yaml_file(target), {'n': 2})
        self.assertEqual(load_yaml_file(target.with_suffix('.yaml.1')), {'n': 1})
        self.assertEqual(load_yaml_file(target.with_suffix('.yaml.2')), {'n': 0})
        self.assertFalse((self.path / '.rotate.yaml.tmp').exists())

    def test_save_keeps_previous_config(self):
        config_file = self.path / 'piframe_config.yaml'
        save_frame_config(FrameConfig(brightness=10), config_file)
        save_frame_config(FrameConfig(brightness=20), config_file, backup=True)
        save_frame_config(FrameConfig(brightness=30), config_file, backup=True)

        self.assertEqual(load_frame_config(config_file).brightness, 30)
        self.assertEqual(load_frame_config(self.path / 'piframe_config.yaml.1').brightness, 20)
        self.assertEqual(load_frame_config(self.path / 'piframe_config.yaml.2').brightness, 10)

    def test_empty_yaml_rejected(self):
        empty = self.path / 'empty.yaml'
        empty.write_text('', encoding='utf-8')
        with self.assertRaises(ValueError):
            load_yaml_file(empty)


if __name__ == '__main__':
    unittest.main()
