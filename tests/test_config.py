#!/usr/bin/env python3
"""
Unit tests for configuration module.

This module tests configuration loading from YAML, environment variable and
command-line overrides, validation and defaults.
"""

import os
import sys
import tempfile
import yaml
import unittest
from unittest.mock import patch
from typing import Any

# Add the project directory to the path so we can import our modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from scim_user_sync.config import ConfigLoader, ConfigurationError, load_config

# Environment variables the loader reads
CONFIG_ENV_VARS = ('CONFIG_PATH', 'SCIM_ENDPOINT', 'endpoint', 'SCIM_TOKEN', 'token',
                   'LOG_LEVEL', 'log', 'SCIM_SYNC_FILE', 'SCIM_SYNC_BUCKET')


class TestConfigLoader(unittest.TestCase):
    """Test cases for ConfigLoader class."""

    def setUp(self):
        """Set up test fixtures."""
        self.valid_config = {
            'directory': {
                'endpoint': 'https://scim.example.com/scim/v2/',
                'token': 'file-token',
                'timeout': 10,
            },
            'source': {
                'file': 'users.csv'
            },
            'sync': {
                'max_concurrency': 5
            },
            'logging': {
                'level': 'debug'
            }
        }
        self.temp_files = []

        clean_env = {k: v for k, v in os.environ.items() if k not in CONFIG_ENV_VARS}
        self.env_patcher = patch.dict(os.environ, clean_env, clear=True)
        self.env_patcher.start()

    def tearDown(self):
        """Clean up test fixtures."""
        self.env_patcher.stop()
        for path in self.temp_files:
            if os.path.exists(path):
                os.unlink(path)

    def create_test_config(self, config_data: Any) -> str:
        """Create a temporary config file with the given data."""
        with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
            yaml.safe_dump(config_data, f)
            self.temp_files.append(f.name)
            return f.name

    def test_valid_config(self):
        """Test loading a valid configuration with defaults applied."""
        config = ConfigLoader(self.create_test_config(self.valid_config)).load()

        self.assertEqual(config['directory']['endpoint'], 'https://scim.example.com/scim/v2')
        self.assertEqual(config['directory']['token'], 'file-token')
        self.assertEqual(config['directory']['timeout'], 10)
        self.assertTrue(config['directory']['verify_ssl'])
        self.assertEqual(config['sync']['max_concurrency'], 5)
        self.assertEqual(config['source']['file'], 'users.csv')
        self.assertEqual(config['logging']['level'], 'DEBUG')
        self.assertIsNone(config['logging']['log_dir'])

    def test_missing_explicit_file(self):
        """Test error when an explicitly named file is missing."""
        with self.assertRaises(ConfigurationError) as ctx:
            ConfigLoader('/nonexistent/config.yaml').load()

        self.assertIn("not found", str(ctx.exception))

    def test_no_file_uses_environment(self):
        """Without any config file, environment variables are enough."""
        os.environ['endpoint'] = 'https://env.example.com/scim'
        os.environ['token'] = 'env-token'
        os.environ['log'] = 'warn'

        with tempfile.TemporaryDirectory() as tmp:
            with patch('scim_user_sync.config.DEFAULT_CONFIG_PATH', os.path.join(tmp, 'config.yaml')):
                config = load_config()

        self.assertEqual(config['directory']['endpoint'], 'https://env.example.com/scim')
        self.assertEqual(config['directory']['token'], 'env-token')
        self.assertEqual(config['logging']['level'], 'WARNING')
        self.assertIsNone(config['sync']['max_concurrency'])

    def test_prefixed_env_vars_win(self):
        os.environ['SCIM_TOKEN'] = 'prefixed-token'
        os.environ['token'] = 'plain-token'

        config = ConfigLoader(self.create_test_config(self.valid_config)).load()

        self.assertEqual(config['directory']['token'], 'prefixed-token')

    def test_overrides_win_over_environment(self):
        os.environ['SCIM_ENDPOINT'] = 'https://env.example.com/scim'

        config = load_config(self.create_test_config(self.valid_config), {
            'directory.endpoint': 'https://cli.example.com/scim',
            'directory.token': None,
        })

        self.assertEqual(config['directory']['endpoint'], 'https://cli.example.com/scim')
        self.assertEqual(config['directory']['token'], 'file-token')

    def test_config_path_env_var(self):
        os.environ['CONFIG_PATH'] = self.create_test_config(self.valid_config)

        config = load_config()

        self.assertEqual(config['directory']['token'], 'file-token')

    def test_missing_required_fields(self):
        """All validation problems are reported together."""
        with self.assertRaises(ConfigurationError) as ctx:
            ConfigLoader(self.create_test_config({'logging': {'level': 'LOUD'}})).load()

        message = str(ctx.exception)
        self.assertIn("endpoint", message)
        self.assertIn("token", message)
        self.assertIn("logging.level", message)

    def test_invalid_endpoint(self):
        self.valid_config['directory']['endpoint'] = 'ftp://scim.example.com'

        with self.assertRaises(ConfigurationError) as ctx:
            ConfigLoader(self.create_test_config(self.valid_config)).load()

        self.assertIn("http(s) URL", str(ctx.exception))

    def test_invalid_max_concurrency(self):
        self.valid_config['sync']['max_concurrency'] = 0

        with self.assertRaises(ConfigurationError) as ctx:
            ConfigLoader(self.create_test_config(self.valid_config)).load()

        self.assertIn("max_concurrency", str(ctx.exception))

    def test_invalid_yaml(self):
        with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
            f.write("directory: [unclosed\n")
            self.temp_files.append(f.name)

        with self.assertRaises(ConfigurationError) as ctx:
            ConfigLoader(f.name).load()

        self.assertIn("Invalid YAML", str(ctx.exception))

    def test_non_mapping_yaml(self):
        with self.assertRaises(ConfigurationError):
            ConfigLoader(self.create_test_config(['not', 'a', 'mapping'])).load()


if __name__ == '__main__':
    unittest.main()
