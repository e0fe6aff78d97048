import unittest

from scripter.observability.structured_log import log_json
from scripter.util import is_secret_name, redact, redact_environment, utf8_chunk_decoder


class TestCommandLineRedaction(unittest.TestCase):
    def test_secret_flag_values_are_masked(self):
        out = redact("/usr/local/bin/pod trunk push --token hunter2 --db-password=s3cret --verbose")
        self.assertEqual(out, "/usr/local/bin/pod trunk push --token REDACTED --db-password=REDACTED --verbose")

    def test_secret_assignments_are_masked(self):
        out = redact("/usr/bin/env GITHUB_TOKEN=abc123 API_KEY=xyz LANG=en_US.UTF-8 /usr/bin/git push")
        self.assertIn("GITHUB_TOKEN=REDACTED", out)
        self.assertIn("API_KEY=REDACTED", out)
        self.assertIn("LANG=en_US.UTF-8", out)
        self.assertNotIn("abc123", out)

    def test_plain_command_line_is_untouched(self):
        self.assertEqual(redact("/usr/bin/git -C /tmp/repo status"), "/usr/bin/git -C /tmp/repo status")
        self.assertEqual(redact(""), "")


class TestEnvironmentRedaction(unittest.TestCase):
    def test_secret_variables_are_masked(self):
        env = {"DEVELOPER_DIR": "/Applications/Xcode.app", "NPM_TOKEN": "t0k", "db_password": "pw"}
        self.assertEqual(
            redact_environment(env),
            {"DEVELOPER_DIR": "/Applications/Xcode.app", "NPM_TOKEN": "REDACTED", "db_password": "REDACTED"},
        )
        self.assertEqual(env["NPM_TOKEN"], "t0k")

    def test_inherited_environment_stays_none(self):
        self.assertIsNone(redact_environment(None))

    def test_secret_names(self):
        self.assertTrue(is_secret_name("SLACK_BOT_TOKEN"))
        self.assertTrue(is_secret_name("apikey"))
        self.assertFalse(is_secret_name("PATH"))
        self.assertFalse(is_secret_name(""))


class TestChunkDecoder(unittest.TestCase):
    def test_multibyte_character_split_across_reads(self):
        decode = utf8_chunk_decoder()
        raw = "héllo".encode("utf-8")
        first, second = raw[:2], raw[2:]
        self.assertEqual(decode(first, False), "h")
        self.assertEqual(decode(second, False), "éllo")
        self.assertEqual(decode(b"", True), "")

    def test_invalid_bytes_are_replaced(self):
        decode = utf8_chunk_decoder()
        self.assertEqual(decode(b"ok\xff", True), "ok\ufffd")


class TestStructuredLog(unittest.TestCase):
    def test_log_json_emits_event_payload(self):
        import logging

        logger = logging.getLogger("scripter.tests.structured")
        with self.assertLogs(logger, level="INFO") as captured:
            log_json(logger, "process_spawned", pid=42, cmd="/bin/echo hi")
        self.assertEqual(len(captured.records), 1)
        message = captured.records[0].getMessage()
        self.assertIn('"event": "process_spawned"', message)
        self.assertIn('"pid": 42', message)

    def test_log_json_respects_level(self):
        import logging

        logger = logging.getLogger("scripter.tests.structured.level")
        with self.assertLogs(logger, level="WARNING") as captured:
            log_json(logger, "quiet_event")
            log_json(logger, "loud_event", level=logging.WARNING)
        self.assertEqual(len(captured.records), 1)
        self.assertIn("loud_event", captured.records[0].getMessage())


if __name__ == "__main__":
    unittest.main()
