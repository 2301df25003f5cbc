from __future__ import annotations

import io
import os
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path
from unittest import mock

import yaml

from hubspot_cli import typer_app
from hubspot_cli.auth import AccessToken


def _token(portal_id: int = 123456, hub_name: str = "My Test Hub") -> AccessToken:
    return AccessToken(
        portal_id=portal_id,
        access_token="access-token",
        expires_at="2099-01-01T00:00:00+00:00",
        scope_groups=["content"],
        hub_name=hub_name,
        encoded_oauth_refresh_token="pak-value",
    )


class TestInitAndAccounts(unittest.TestCase):
    def setUp(self) -> None:
        self._td = tempfile.TemporaryDirectory()
        self.td = Path(self._td.name)
        self._old_home = os.environ.get("HOME")
        self._old_cwd = os.getcwd()
        os.environ["HOME"] = str(self.td / "home")
        os.chdir(self.td)

    def tearDown(self) -> None:
        os.chdir(self._old_cwd)
        if self._old_home is None:
            os.environ.pop("HOME", None)
        else:
            os.environ["HOME"] = self._old_home
        self._td.cleanup()

    def _run(self, argv: list[str]) -> tuple[int, str, str]:
        out = io.StringIO()
        err = io.StringIO()
        with redirect_stdout(out), redirect_stderr(err):
            rc = typer_app.run(argv)
        return rc, out.getvalue(), err.getvalue()

    def _init(self, name: str = "my-account", token: AccessToken | None = None) -> int:
        with mock.patch("hubspot_cli.prompts.personal_access_key_prompt", return_value="pak-value"), mock.patch(
            "hubspot_cli.accounts.fetch_access_token", return_value=token or _token()
        ):
            rc, _out, _err = self._run(["init", "--account", name])
        return rc

    def test_init_writes_deprecated_config_with_default_account(self) -> None:
        self.assertEqual(self._init(), 0)
        cfg_path = self.td / "hubspot.config.yml"
        self.assertTrue(cfg_path.exists())
        raw = yaml.safe_load(cfg_path.read_text(encoding="utf-8"))
        self.assertEqual(raw["defaultPortal"], "my-account")
        self.assertEqual(len(raw["portals"]), 1)
        portal = raw["portals"][0]
        self.assertEqual(portal["name"], "my-account")
        self.assertEqual(portal["portalId"], 123456)
        self.assertEqual(portal["authType"], "personalaccesskey")
        self.assertEqual(portal["personalAccessKey"], "pak-value")
        self.assertEqual(portal["auth"]["tokenInfo"]["accessToken"], "access-token")

    def test_init_refuses_existing_config(self) -> None:
        (self.td / "hubspot.config.yml").write_text("portals: []\n", encoding="utf-8")
        with mock.patch("hubspot_cli.prompts.personal_access_key_prompt") as prompt:
            rc, _out, err = self._run(["init"])
        self.assertEqual(rc, 1)
        self.assertIn("already exists", err)
        prompt.assert_not_called()

    def test_failed_init_leaves_no_config_behind(self) -> None:
        from hubspot_cli.errors import HubSpotAuthError

        with mock.patch("hubspot_cli.prompts.personal_access_key_prompt", return_value="bad"), mock.patch(
            "hubspot_cli.accounts.fetch_access_token",
            side_effect=HubSpotAuthError("Your personal access key is invalid", status=401),
        ):
            rc, _out, _err = self._run(["init", "--account", "nope"])
        self.assertEqual(rc, 1)
        self.assertFalse((self.td / "hubspot.config.yml").exists())

    def test_remove_account_by_option(self) -> None:
        self.assertEqual(self._init(), 0)
        rc, out, _err = self._run(["accounts", "remove", "--account=my-account"])
        self.assertEqual(rc, 0)
        self.assertIn("removed", out)
        raw = yaml.safe_load((self.td / "hubspot.config.yml").read_text(encoding="utf-8"))
        self.assertEqual(raw["portals"], [])
        self.assertNotIn("defaultPortal", raw)

    def test_remove_account_from_root_option_does_not_prompt(self) -> None:
        self.assertEqual(self._init(), 0)
        with mock.patch("hubspot_cli.prompts.account_choice_prompt") as choose:
            rc, _out, _err = self._run(["--account", "my-account", "accounts", "remove"])
        self.assertEqual(rc, 0)
        choose.assert_not_called()
        raw = yaml.safe_load((self.td / "hubspot.config.yml").read_text(encoding="utf-8"))
        self.assertEqual(raw["portals"], [])

    def test_auth_adds_second_account_and_use_switches_default(self) -> None:
        self.assertEqual(self._init(), 0)
        with mock.patch("hubspot_cli.prompts.personal_access_key_prompt", return_value="pak-2"), mock.patch(
            "hubspot_cli.accounts.fetch_access_token", return_value=_token(654321, "Other Hub")
        ), mock.patch("hubspot_cli.prompts.confirm", return_value=False):
            rc, _out, _err = self._run(["auth", "--account", "other"])
        self.assertEqual(rc, 0)

        rc, out, _err = self._run(["accounts", "list"])
        self.assertEqual(rc, 0)
        self.assertIn("my-account [default]", out)
        self.assertIn("654321", out)

        rc, _out, _err = self._run(["accounts", "use", "other"])
        self.assertEqual(rc, 0)
        raw = yaml.safe_load((self.td / "hubspot.config.yml").read_text(encoding="utf-8"))
        self.assertEqual(raw["defaultPortal"], "other")

    def test_rename_account(self) -> None:
        self.assertEqual(self._init(), 0)
        rc, _out, _err = self._run(["accounts", "rename", "my-account", "renamed"])
        self.assertEqual(rc, 0)
        raw = yaml.safe_load((self.td / "hubspot.config.yml").read_text(encoding="utf-8"))
        self.assertEqual(raw["portals"][0]["name"], "renamed")
        self.assertEqual(raw["defaultPortal"], "renamed")

    def test_unknown_account_is_reported(self) -> None:
        self.assertEqual(self._init(), 0)
        rc, _out, err = self._run(["accounts", "use", "missing"])
        self.assertEqual(rc, 1)
        self.assertIn("missing", err)


if __name__ == "__main__":
    unittest.main()
