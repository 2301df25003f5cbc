from __future__ import annotations

import logging
import unittest

import httpx

from hubspot_cli.config import AccountConfig, CLIConfig
from hubspot_cli.http import HubSpotClient
from hubspot_cli.logging_utils import QUIET_LOGGERS, configure_logging, redact


class _Collect(logging.Handler):
    def __init__(self) -> None:
        super().__init__(level=logging.DEBUG)
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


class TestConfigureLogging(unittest.TestCase):
    def setUp(self) -> None:
        root = logging.getLogger()
        self._root_level = root.level
        self._handlers = [(h, h.level, h.formatter) for h in root.handlers]
        self._quiet = {name: logging.getLogger(name).level for name in QUIET_LOGGERS}
        self.collect = _Collect()
        root.addHandler(self.collect)

    def tearDown(self) -> None:
        root = logging.getLogger()
        root.removeHandler(self.collect)
        root.setLevel(self._root_level)
        for h, level, formatter in self._handlers:
            h.setLevel(level)
            h.setFormatter(formatter)
        for name, level in self._quiet.items():
            logging.getLogger(name).setLevel(level)

    def _request_with_api_key(self) -> None:
        acct = AccountConfig(account_id=1, auth_type="apikey", api_key="SECRETKEY")
        cfg = CLIConfig(path=None, accounts=[acct], default_account=1, deprecated=False)
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"objects": []}))
        with HubSpotClient(cfg, acct, transport=transport) as client:
            client.get("cms/v3/functions/routes")

    def _messages(self) -> str:
        return "\n".join(r.getMessage() for r in self.collect.records)

    def test_default_verbosity_does_not_print_api_keys(self) -> None:
        configure_logging(0)
        self._request_with_api_key()
        self.assertNotIn("SECRETKEY", self._messages())
        self.assertFalse(logging.getLogger("httpx").isEnabledFor(logging.INFO))

    def test_debug_verbosity_does_not_print_api_keys(self) -> None:
        configure_logging(1)
        self._request_with_api_key()
        out = self._messages()
        self.assertIn("GET /cms/v3/functions/routes", out)
        self.assertNotIn("SECRETKEY", out)

    def test_redact_masks_known_secrets(self) -> None:
        self.assertEqual(redact("GET /x?hapikey=abc&a=1"), "GET /x?hapikey=***REDACTED***&a=1")
        self.assertEqual(redact("Authorization: Bearer tok.en-1"), "Authorization: Bearer ***REDACTED***")


if __name__ == "__main__":
    unittest.main()
