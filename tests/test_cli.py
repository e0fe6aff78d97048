import io
import os
import shutil
import stat
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path
from unittest.mock import patch

from scripter.cli import main, parse_env_pairs

ECHO = "/bin/echo" if os.path.exists("/bin/echo") else shutil.which("echo")


class CliTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.config_dir = Path(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()

    def _main(self, *argv):
        out, err = io.StringIO(), io.StringIO()
        with redirect_stdout(out), redirect_stderr(err):
            code = main(["--config-dir", str(self.config_dir), *argv])
        return code, out.getvalue(), err.getvalue()


class TestEnvPairs(unittest.TestCase):
    def test_parse_env_pairs(self):
        self.assertIsNone(parse_env_pairs(None))
        self.assertEqual(parse_env_pairs(["A=1", "B=x=y", "C="]), {"A": "1", "B": "x=y", "C": ""})

    def test_malformed_pairs(self):
        for raw in ("NOVALUE", "=1"):
            with self.assertRaises(ValueError):
                parse_env_pairs([raw])


class TestMain(CliTestCase):
    def test_no_command_prints_help(self):
        code, out, _ = self._main()
        self.assertEqual(code, 2)
        self.assertIn("usage", out)

    def test_print_config(self):
        (self.config_dir / ".env").write_text("SCRIPTER_STREAM_QUEUE_SIZE=33\n", encoding="utf-8")
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop("SCRIPTER_STREAM_QUEUE_SIZE", None)
            code, out, _ = self._main("--print-config")
        self.assertEqual(code, 0)
        self.assertIn("Stream queue size: 33", out)

    @unittest.skipUnless(ECHO, "echo not available")
    def test_run_prints_output(self):
        code, out, _ = self._main("run", ECHO, "hi", "there")
        self.assertEqual(code, 0)
        self.assertEqual(out.strip(), "hi there")

    @unittest.skipUnless(ECHO, "echo not available")
    def test_run_suppressed_output_prints_nothing(self):
        code, out, _ = self._main("run", "--suppress-output", ECHO, "hi")
        self.assertEqual(code, 0)
        self.assertEqual(out, "")

    def test_run_missing_path_fails(self):
        missing = str(self.config_dir / "missing")
        code, _, err = self._main("run", missing)
        self.assertEqual(code, 1)
        self.assertIn("does not exist or is a directory", err)

    def test_script_uses_configured_interpreter(self):
        stub = self.config_dir / "osascript"
        stub.write_text('#!/bin/sh\necho "ran: $2"\n', encoding="utf-8")
        stub.chmod(stub.stat().st_mode | stat.S_IXUSR)
        with patch.dict(os.environ, {"SCRIPTER_OSASCRIPT_PATH": str(stub)}):
            code, out, _ = self._main("script", "/usr/bin/which", "git")
        self.assertEqual(code, 0)
        self.assertEqual(out.strip(), 'ran: do shell script "/usr/bin/which git"')


if __name__ == "__main__":
    unittest.main()
