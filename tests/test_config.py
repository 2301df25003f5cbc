from __future__ import annotations

import io
import os
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path

import yaml

from hubspot_cli.config import (
    AccountConfig,
    CLIConfig,
    ConfigError,
    find_config_path,
    load_config_dict,
    migrate_config,
    write_account_override,
)

DEPRECATED_YAML = """\
defaultPortal: dev
portals:
  - name: dev
    portalId: 111
    authType: personalaccesskey
    personalAccessKey: pak-dev
  - name: prod
    portalId: 222
    authType: apikey
    apiKey: key-prod
"""


class _TempHome(unittest.TestCase):
    def setUp(self) -> None:
        self._td = tempfile.TemporaryDirectory()
        self.td = Path(self._td.name)
        self._old_home = os.environ.get("HOME")
        self._old_cwd = os.getcwd()
        os.environ["HOME"] = str(self.td / "home")
        (self.td / "home").mkdir()
        (self.td / "project").mkdir()
        os.chdir(self.td / "project")

    def tearDown(self) -> None:
        os.chdir(self._old_cwd)
        if self._old_home is None:
            os.environ.pop("HOME", None)
        else:
            os.environ["HOME"] = self._old_home
        self._td.cleanup()


class TestFindConfigPath(_TempHome):
    def test_prefers_project_local_over_global(self) -> None:
        global_cfg = self.td / "home" / ".hscli" / "config.yml"
        global_cfg.parent.mkdir(parents=True)
        global_cfg.write_text("accounts: []\n", encoding="utf-8")
        self.assertEqual(find_config_path(None), global_cfg.resolve())

        local = self.td / "hubspot.config.yml"
        local.write_text("portals: []\n", encoding="utf-8")
        self.assertEqual(find_config_path(None), local.resolve())

    def test_explicit_missing_path_raises(self) -> None:
        with self.assertRaises(ConfigError):
            find_config_path(str(self.td / "nope.yml"))

    def test_returns_none_without_any_config(self) -> None:
        self.assertIsNone(find_config_path(None))


class TestLoadSave(_TempHome):
    def test_load_deprecated_format(self) -> None:
        p = self.td / "project" / "hubspot.config.yml"
        p.write_text(DEPRECATED_YAML, encoding="utf-8")
        cfg = CLIConfig.load(p)
        self.assertTrue(cfg.deprecated)
        self.assertEqual(len(cfg.accounts), 2)
        self.assertEqual(cfg.get_default_account().account_id, 111)
        self.assertEqual(cfg.get_account("222").name, "prod")
        self.assertEqual(cfg.get_account(222).api_key, "key-prod")
        self.assertIsNone(cfg.get_account("missing"))

    def test_empty_file_loads_as_empty_mapping(self) -> None:
        p = self.td / "empty.yml"
        p.write_text("", encoding="utf-8")
        self.assertEqual(load_config_dict(p), {})

    def test_non_mapping_root_is_rejected(self) -> None:
        p = self.td / "list.yml"
        p.write_text("- a\n- b\n", encoding="utf-8")
        with self.assertRaises(ConfigError):
            load_config_dict(p)

    def test_duplicate_ids_are_rejected(self) -> None:
        raw = {"portals": [{"name": "a", "portalId": 1}, {"name": "b", "portalId": 1}]}
        with self.assertRaises(ConfigError):
            CLIConfig.from_dict(raw, path=None, deprecated=True)

    def test_names_with_spaces_are_rejected(self) -> None:
        raw = {"portals": [{"name": "has space", "portalId": 1}]}
        with self.assertRaises(ConfigError):
            CLIConfig.from_dict(raw, path=None, deprecated=True)

    def test_save_round_trips_unknown_keys(self) -> None:
        p = self.td / "project" / "hubspot.config.yml"
        p.write_text("customKey: keep-me\n" + DEPRECATED_YAML, encoding="utf-8")
        cfg = CLIConfig.load(p)
        cfg.update_default_account("prod")
        raw = yaml.safe_load(p.read_text(encoding="utf-8"))
        self.assertEqual(raw["customKey"], "keep-me")
        self.assertEqual(raw["defaultPortal"], "prod")

    def test_global_format_references_default_by_id(self) -> None:
        p = self.td / "home" / ".hscli" / "config.yml"
        cfg = CLIConfig.create_empty(p, deprecated=False)
        cfg.accounts.append(AccountConfig(account_id=42, name="acct", auth_type="apikey", api_key="k"))
        cfg.update_default_account("acct")
        raw = yaml.safe_load(p.read_text(encoding="utf-8"))
        self.assertEqual(raw["defaultAccount"], 42)
        self.assertEqual(raw["accounts"][0]["accountId"], 42)

    def test_create_empty_refuses_existing_file(self) -> None:
        p = self.td / "exists.yml"
        p.write_text("portals: []\n", encoding="utf-8")
        with self.assertRaises(ConfigError):
            CLIConfig.create_empty(p)

    def test_http_timeout_has_a_floor(self) -> None:
        p = self.td / "project" / "hubspot.config.yml"
        cfg = CLIConfig.create_empty(p)
        with self.assertRaises(ConfigError):
            cfg.update_http_timeout(1)
        cfg.update_http_timeout("30000")
        self.assertEqual(cfg.http_timeout_ms, 30000)


class TestFromEnvironment(unittest.TestCase):
    def test_personal_access_key(self) -> None:
        cfg = CLIConfig.from_environment(
            {"HUBSPOT_PORTAL_ID": "123", "HUBSPOT_PERSONAL_ACCESS_KEY": "pak", "HUBSPOT_ENVIRONMENT": "QA"}
        )
        acct = cfg.require_account()
        self.assertEqual(acct.account_id, 123)
        self.assertEqual(acct.auth_type, "personalaccesskey")
        self.assertEqual(acct.env, "qa")
        self.assertTrue(cfg.from_env)

    def test_oauth_needs_all_three_values(self) -> None:
        cfg = CLIConfig.from_environment(
            {
                "HUBSPOT_PORTAL_ID": "123",
                "HUBSPOT_CLIENT_ID": "cid",
                "HUBSPOT_CLIENT_SECRET": "secret",
                "HUBSPOT_REFRESH_TOKEN": "refresh",
            }
        )
        acct = cfg.require_account()
        self.assertEqual(acct.auth_type, "oauth2")
        self.assertEqual(acct.auth["tokenInfo"]["refreshToken"], "refresh")

    def test_missing_portal_id_raises(self) -> None:
        with self.assertRaises(ConfigError):
            CLIConfig.from_environment({"HUBSPOT_PERSONAL_ACCESS_KEY": "pak"})

    def test_missing_credentials_raise(self) -> None:
        with self.assertRaises(ConfigError):
            CLIConfig.from_environment({"HUBSPOT_PORTAL_ID": "123"})

    def test_environment_config_is_never_written(self) -> None:
        cfg = CLIConfig.from_environment({"HUBSPOT_PORTAL_ID": "123", "HUBSPOT_API_KEY": "k"})
        cfg.update_default_cms_publish_mode("draft")
        self.assertIsNone(cfg.path)


class TestMigrate(_TempHome):
    def test_merges_accounts_and_keeps_global_settings(self) -> None:
        global_path = self.td / "home" / ".hscli" / "config.yml"
        global_path.parent.mkdir(parents=True)
        global_path.write_text(
            "defaultCmsPublishMode: draft\naccounts:\n  - name: prod\n    accountId: 222\n"
            "    authType: apikey\n    apiKey: other\n",
            encoding="utf-8",
        )
        old = self.td / "project" / "hubspot.config.yml"
        old.write_text("defaultMode: publish\n" + DEPRECATED_YAML, encoding="utf-8")

        result = migrate_config(CLIConfig.load(old), target=global_path)
        self.assertEqual(result.added, [111])
        self.assertEqual(result.skipped, [222])
        self.assertIn(("defaultCmsPublishMode", "draft", "publish"), result.conflicts)

        raw = yaml.safe_load(global_path.read_text(encoding="utf-8"))
        self.assertEqual(raw["defaultCmsPublishMode"], "draft")
        self.assertEqual(sorted(a["accountId"] for a in raw["accounts"]), [111, 222])
        self.assertEqual(raw["defaultAccount"], 111)
        self.assertTrue(old.exists())

    def test_override_requires_global_config(self) -> None:
        old = self.td / "project" / "hubspot.config.yml"
        old.write_text(DEPRECATED_YAML, encoding="utf-8")
        with self.assertRaises(ConfigError):
            write_account_override(CLIConfig.load(old), "dev")

    def test_override_file_wins_over_default(self) -> None:
        global_path = self.td / "home" / ".hscli" / "config.yml"
        cfg = CLIConfig.create_empty(global_path, deprecated=False)
        cfg.accounts.extend(
            [
                AccountConfig(account_id=1, name="one", auth_type="apikey", api_key="a"),
                AccountConfig(account_id=2, name="two", auth_type="apikey", api_key="b"),
            ]
        )
        cfg.update_default_account("one")
        write_account_override(cfg, "two")
        reloaded = CLIConfig.load(global_path)
        self.assertEqual(reloaded.require_account().account_id, 2)


class TestConfigSetCommand(_TempHome):
    def test_setting_the_same_mode_twice_is_stable(self) -> None:
        from hubspot_cli import typer_app

        p = self.td / "project" / "hubspot.config.yml"
        p.write_text(DEPRECATED_YAML, encoding="utf-8")
        out = io.StringIO()
        err = io.StringIO()
        with redirect_stdout(out), redirect_stderr(err):
            rc1 = typer_app.run(["config", "set", "--default-cms-publish-mode=draft"])
            first = p.read_text(encoding="utf-8")
            rc2 = typer_app.run(["config", "set", "--default-cms-publish-mode=draft"])
        self.assertEqual(rc1, 0)
        self.assertEqual(rc2, 0)
        self.assertEqual(first, p.read_text(encoding="utf-8"))
        self.assertEqual(yaml.safe_load(first)["defaultMode"], "draft")

    def test_invalid_mode_fails(self) -> None:
        from hubspot_cli import typer_app

        p = self.td / "project" / "hubspot.config.yml"
        p.write_text(DEPRECATED_YAML, encoding="utf-8")
        out = io.StringIO()
        err = io.StringIO()
        with redirect_stdout(out), redirect_stderr(err):
            rc = typer_app.run(["config", "set", "--default-cms-publish-mode=sometimes"])
        self.assertEqual(rc, 1)
        self.assertIn("Invalid mode", err.getvalue())


if __name__ == "__main__":
    unittest.main()
