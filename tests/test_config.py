"""
Unit tests for websync.config module
"""
import unittest
import tempfile
import os
import shutil
import json
from pathlib import Path
from unittest.mock import patch

import toml
import yaml

from websync.config import (
    SyncConfig,
    apply_env_overrides,
    get_config_path,
    get_default_config,
    load_config,
    merge_configs,
    save_config,
)
from websync.domain.repository import RepoGroup
from websync.exit_codes import ConfigError


def clean_environ(home):
    """Environment without WEBSYNC_ variables and with HOME pointed at home."""
    env = {k: v for k, v in os.environ.items() if not k.startswith('WEBSYNC_')}
    env['HOME'] = home
    return env


class TestConfigManagement(unittest.TestCase):
    """Test configuration discovery, loading and saving"""

    def setUp(self):
        """Set up test environment"""
        self.temp_dir = tempfile.mkdtemp()
        self.env = patch.dict(os.environ, clean_environ(self.temp_dir), clear=True)
        self.env.start()
        self.config_dir = Path(self.temp_dir) / '.websync'

    def tearDown(self):
        """Clean up test environment"""
        self.env.stop()
        shutil.rmtree(self.temp_dir)

    def write(self, filename, text):
        self.config_dir.mkdir(exist_ok=True)
        path = self.config_dir / filename
        path.write_text(text)
        return path

    def test_get_default_config(self):
        """Test default configuration structure"""
        config = get_default_config()

        self.assertEqual(config['root']['name'], 'webroot')
        self.assertEqual(config['root']['branch'], 'main')
        self.assertIn('localsite', config['repos']['submodules'])
        self.assertEqual(len(config['repos']['submodules']), 10)
        self.assertEqual(config['repos']['trade_repos'], ['exiobase', 'profile', 'useeio.js', 'io'])
        self.assertEqual(config['repos']['branch_overrides'], {'useeio.js': 'dev'})
        self.assertEqual(config['parents']['capital_repos'], ['localsite', 'home', 'webroot'])
        self.assertEqual(config['commands']['git_timeout'], 120)
        self.assertEqual(config['commands']['gh_timeout'], 60)

    def test_default_path_when_no_file(self):
        """Without any file the save path is ~/.websync/config.json"""
        self.assertEqual(get_config_path(), self.config_dir / 'config.json')

    def test_load_config_no_file(self):
        """Test loading config when no file exists"""
        self.assertEqual(load_config(), get_default_config())

    def test_load_json(self):
        self.write('config.json', json.dumps({'root': {'expected_origin': 'mysite'}}))

        config = load_config()

        self.assertEqual(config['root']['expected_origin'], 'mysite')
        self.assertEqual(config['root']['name'], 'webroot')

    def test_load_yaml(self):
        self.write('config.yaml', yaml.safe_dump({'repos': {'submodules': ['localsite', 'home']}}))

        config = load_config()

        self.assertEqual(config['repos']['submodules'], ['localsite', 'home'])
        self.assertEqual(config['repos']['trade_repos'], ['exiobase', 'profile', 'useeio.js', 'io'])

    def test_load_toml(self):
        self.write('config.toml', toml.dumps({'commands': {'git_timeout': 30}}))

        config = load_config()

        self.assertEqual(config['commands']['git_timeout'], 30)
        self.assertEqual(config['commands']['gh_timeout'], 60)

    def test_config_env_var_wins(self):
        custom = Path(self.temp_dir) / 'custom.yml'
        custom.write_text(yaml.safe_dump({'root': {'name': 'site'}}))
        self.write('config.json', json.dumps({'root': {'name': 'ignored'}}))

        with patch.dict(os.environ, {'WEBSYNC_CONFIG': str(custom)}):
            self.assertEqual(get_config_path(), custom)
            self.assertEqual(load_config()['root']['name'], 'site')

    def test_invalid_file_falls_back_to_defaults(self):
        self.write('config.json', '{"root": {"name": ')

        with self.assertLogs('websync', level='ERROR'):
            config = load_config()

        self.assertEqual(config, get_default_config())

    def test_save_config_roundtrip_formats(self):
        """Each supported format can be written and read back"""
        for fmt in ('json', 'yaml', 'toml'):
            with self.subTest(fmt=fmt):
                path = save_config(get_default_config(), self.config_dir / f'config.{fmt}')
                self.assertTrue(path.exists())
                with patch.dict(os.environ, {'WEBSYNC_CONFIG': str(path)}):
                    self.assertEqual(load_config(), get_default_config())


class TestEnvOverrides(unittest.TestCase):
    """Test WEBSYNC_SECTION_KEY overrides"""

    def test_nested_key_with_underscores(self):
        with patch.dict(os.environ, {'WEBSYNC_ROOT_EXPECTED_ORIGIN': 'mysite'}):
            config = apply_env_overrides(get_default_config())
        self.assertEqual(config['root']['expected_origin'], 'mysite')

    def test_digits_become_int(self):
        with patch.dict(os.environ, {'WEBSYNC_COMMANDS_GIT_TIMEOUT': '45'}):
            config = apply_env_overrides(get_default_config())
        self.assertEqual(config['commands']['git_timeout'], 45)

    def test_lists_are_comma_separated(self):
        with patch.dict(os.environ, {'WEBSYNC_REPOS_SUBMODULES': 'localsite, home'}):
            config = apply_env_overrides(get_default_config())
        self.assertEqual(config['repos']['submodules'], ['localsite', 'home'])

    def test_unknown_keys_ignored(self):
        with patch.dict(os.environ, {'WEBSYNC_NOPE_VALUE': 'x'}):
            config = apply_env_overrides(get_default_config())
        self.assertNotIn('nope', config)

    def test_config_path_variable_is_not_a_setting(self):
        with patch.dict(os.environ, {'WEBSYNC_CONFIG': '/tmp/x.json'}):
            config = apply_env_overrides(get_default_config())
        self.assertEqual(config, get_default_config())

    def test_merge_configs_is_deep(self):
        merged = merge_configs({'a': {'b': 1, 'c': 2}}, {'a': {'c': 3}, 'd': 4})
        self.assertEqual(merged, {'a': {'b': 1, 'c': 3}, 'd': 4})


class TestSyncConfig(unittest.TestCase):
    """Test the immutable view used by the services"""

    def setUp(self):
        self.config = SyncConfig.from_dict({})
        self.root = Path('/srv/webroot')

    def test_from_partial_dict(self):
        config = SyncConfig.from_dict({'repos': {'submodules': ['cloud']}})
        self.assertEqual(config.submodules, ('cloud',))
        self.assertEqual(config.trade_repos, ('exiobase', 'profile', 'useeio.js', 'io'))

    def test_malformed_config_raises(self):
        with self.assertRaises(ConfigError):
            SyncConfig.from_dict({'repos': 'cloud'})
        with self.assertRaises(ConfigError):
            SyncConfig.from_dict({'commands': {'git_timeout': 'soon'}})

    def test_target_branch(self):
        self.assertEqual(self.config.target_branch('useeio.js'), 'dev')
        self.assertEqual(self.config.target_branch('localsite'), 'main')

    def test_fallback_parent_casing(self):
        self.assertEqual(self.config.fallback_parent('localsite'), 'ModelEarth')
        self.assertEqual(self.config.fallback_parent('home'), 'ModelEarth')
        self.assertEqual(self.config.fallback_parent('webroot'), 'ModelEarth')
        self.assertEqual(self.config.fallback_parent('cloud'), 'modelearth')

    def test_merge_candidates(self):
        self.assertEqual(self.config.merge_candidates('cloud'), ['main', 'master'])
        self.assertEqual(self.config.merge_candidates('useeio.js'), ['main', 'master', 'dev'])

    def test_repo_url(self):
        self.assertEqual(self.config.repo_url('alice', 'localsite'),
                         'https://github.com/alice/localsite.git')

    def test_descriptors(self):
        root = self.config.root_repo(self.root)
        self.assertEqual(root.path, self.root)
        self.assertTrue(root.is_root)
        self.assertFalse(root.is_submodule)

        cloud = self.config.find('cloud', self.root)
        self.assertEqual(cloud.path, self.root / 'cloud')
        self.assertEqual(cloud.group, RepoGroup.SUBMODULE)
        self.assertTrue(cloud.is_submodule)

        useeio = self.config.find('useeio.js', self.root)
        self.assertEqual(useeio.group, RepoGroup.TRADE)
        self.assertEqual(useeio.target_branch, 'dev')
        self.assertFalse(useeio.is_submodule)

        self.assertIsNone(self.config.find('nothere', self.root))

    def test_all_repos_order(self):
        names = [r.name for r in self.config.all_repos(self.root)]
        self.assertEqual(names[0], 'webroot')
        self.assertEqual(names[1:11], list(self.config.submodules))
        self.assertEqual(names[11:], list(self.config.trade_repos))


if __name__ == '__main__':
    unittest.main()
