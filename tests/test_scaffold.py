from __future__ import annotations

import io
import json
import os
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path

from hubspot_cli.errors import ValidationError
from hubspot_cli.scaffold import CreateArgs, build_registry
from hubspot_cli.serverless.manifest import load_manifest


def _function_args(dest: Path, **overrides: str) -> CreateArgs:
    options = {
        "functions_folder": "myFunctions",
        "filename": "hello",
        "endpoint_path": "hello",
        "endpoint_method": "get",
    }
    options.update(overrides)
    return CreateArgs("function", dest=dest, options=options)


class TestCreateFunction(unittest.TestCase):
    def test_creates_handler_and_manifest(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            written = build_registry().create(_function_args(Path(td)))
            folder = Path(td).resolve() / "myFunctions.functions"
            self.assertEqual(written, [folder / "hello.py", folder / "serverless.json"])
            manifest = json.loads((folder / "serverless.json").read_text(encoding="utf-8"))
            self.assertEqual(manifest["runtime"], "python3.12")
            self.assertEqual(manifest["endpoints"], {"hello": {"method": "GET", "file": "hello.py"}})
            self.assertIn("def main(context, send_response):", (folder / "hello.py").read_text(encoding="utf-8"))
            # The generated folder is servable as-is.
            self.assertIn("hello", load_manifest(folder).routes)

    def test_second_endpoint_is_merged(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            reg = build_registry()
            reg.create(_function_args(Path(td)))
            reg.create(_function_args(Path(td), filename="bye.js", endpoint_path="/bye", endpoint_method="POST"))
            manifest = json.loads(
                (Path(td) / "myFunctions.functions" / "serverless.json").read_text(encoding="utf-8")
            )
            self.assertEqual(sorted(manifest["endpoints"]), ["bye", "hello"])
            self.assertEqual(manifest["endpoints"]["bye"], {"method": "POST", "file": "bye.py"})

    def test_duplicate_endpoint_is_refused(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            reg = build_registry()
            reg.create(_function_args(Path(td)))
            with self.assertRaises(ValidationError):
                reg.create(_function_args(Path(td), filename="other"))
            self.assertFalse((Path(td) / "myFunctions.functions" / "other.py").exists())

    def test_nesting_inside_functions_folder_is_refused(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            inner = Path(td) / "outer.functions"
            inner.mkdir()
            with self.assertRaises(ValidationError):
                build_registry().create(_function_args(inner))

    def test_invalid_method_is_refused(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            with self.assertRaises(ValidationError):
                build_registry().create(_function_args(Path(td), endpoint_method="TRACE"))


class TestCreateAssets(unittest.TestCase):
    def test_module(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            written = build_registry().create(
                CreateArgs("module", name="hero", dest=Path(td), options={"content_types": ["PAGE", "BLOG_POST"]})
            )
            folder = Path(td).resolve() / "hero.module"
            self.assertIn(folder / "meta.json", written)
            meta = json.loads((folder / "meta.json").read_text(encoding="utf-8"))
            self.assertEqual(meta["host_template_types"], ["PAGE", "BLOG_POST"])
            self.assertFalse(meta["global"])

    def test_template_type_is_checked(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            reg = build_registry()
            with self.assertRaises(ValidationError):
                reg.create(CreateArgs("template", name="t", dest=Path(td), options={"template_type": "nope"}))
            [out] = reg.create(CreateArgs("template", name="t", dest=Path(td), options={"template_type": "partial"}))
            self.assertTrue(out.read_text(encoding="utf-8").startswith("<!--\n  templateType: partial"))

    def test_unknown_asset_type(self) -> None:
        with self.assertRaises(ValidationError):
            build_registry().create(CreateArgs("spaceship", name="x"))


class TestCreateCommand(unittest.TestCase):
    def test_create_function_from_flags(self) -> None:
        from hubspot_cli import typer_app

        with tempfile.TemporaryDirectory() as td:
            old_cwd = os.getcwd()
            os.chdir(td)
            try:
                out = io.StringIO()
                err = io.StringIO()
                with redirect_stdout(out), redirect_stderr(err):
                    rc = typer_app.run(
                        [
                            "create",
                            "function",
                            ".",
                            "--functions-folder",
                            "api",
                            "--filename",
                            "ping",
                            "--endpoint-path",
                            "ping",
                            "--endpoint-method",
                            "GET",
                        ]
                    )
                self.assertEqual(rc, 0, err.getvalue())
                self.assertTrue((Path(td) / "api.functions" / "ping.py").is_file())
            finally:
                os.chdir(old_cwd)


if __name__ == "__main__":
    unittest.main()
