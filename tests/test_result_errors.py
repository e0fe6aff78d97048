import unittest

import pytest

from scripter.domain.descriptor import ProcessMode, UnknownMode
from scripter.domain.errors import (
    ExecuteFailed,
    ExecutionError,
    InvalidCommand,
    PathEmpty,
    PathNotExistOrIsDirectory,
    PathPermissionDenied,
    SerializationFailed,
    UnsupportedMode,
    interpreter_failure_reason,
    process_failure_reason,
)
from scripter.domain.result import Failure, Success, result_of


class TestResult(unittest.TestCase):
    def test_success_without_value_is_not_failure(self):
        result = Success()
        self.assertTrue(result.is_success)
        self.assertFalse(result.is_failure)
        self.assertIsNone(result.value)
        self.assertIsNone(result.error)
        self.assertIsNone(result.unwrap())

    def test_string_only_for_text_values(self):
        self.assertEqual(Success("hello").string, "hello")
        self.assertIsNone(Success(3).string)
        self.assertIsNone(Failure(ExecuteFailed("/bin/false ", "boom")).string)

    def test_failure_unwrap_raises_error(self):
        error = InvalidCommand(PathEmpty())
        result = Failure(error)
        self.assertTrue(result.is_failure)
        self.assertIs(result.error, error)
        with pytest.raises(InvalidCommand, match="path is empty"):
            result.unwrap()

    def test_map(self):
        self.assertEqual(Success("a").map(str.upper), Success("A"))
        failure = Failure(UnsupportedMode(UnknownMode()))
        self.assertIs(failure.map(str.upper), failure)

    def test_result_of(self):
        self.assertEqual(result_of("x", None), Success("x"))
        error = ExecuteFailed("cmd", "bad")
        self.assertEqual(result_of("x", error), Failure(error))


class TestErrors(unittest.TestCase):
    def test_all_errors_share_base_class(self):
        for error in (
            UnsupportedMode(UnknownMode()),
            InvalidCommand(PathEmpty()),
            ExecuteFailed("cmd", "reason"),
            SerializationFailed(ValueError("bad json")),
        ):
            self.assertIsInstance(error, ExecutionError)

    def test_messages(self):
        self.assertEqual(str(UnsupportedMode(UnknownMode())), "unsupported execution mode: unknown")
        self.assertEqual(str(UnsupportedMode(ProcessMode())), "unsupported execution mode: process")
        self.assertEqual(str(InvalidCommand(PathEmpty())), "invalid command: path is empty")
        self.assertIn("/nope does not exist", str(InvalidCommand(PathNotExistOrIsDirectory("/nope"))))
        self.assertIn("permission denied", str(InvalidCommand(PathPermissionDenied("/etc/hosts"))))
        self.assertEqual(str(ExecuteFailed("/bin/ls ", "oops")), "/bin/ls  failed: oops")

    def test_invalid_reasons_compare_by_value(self):
        self.assertEqual(InvalidCommand(PathEmpty()).reason, PathEmpty())
        self.assertEqual(PathPermissionDenied("/a"), PathPermissionDenied("/a"))

    def test_serialization_failed_wraps_upstream_error(self):
        upstream = ExecuteFailed("/usr/bin/plutil ", "no such key")
        error = SerializationFailed(upstream)
        self.assertIs(error.reason, upstream)
        self.assertIn("no such key", str(error))
        self.assertEqual(str(SerializationFailed(None)), "unknown error")

    def test_process_failure_reason(self):
        self.assertEqual(process_failure_reason("boom", 2), "boom [code: 2] [reason: exit]")
        self.assertEqual(process_failure_reason(None, 1), "unknown error [code: 1] [reason: exit]")
        self.assertEqual(process_failure_reason("", -9), "unknown error [code: 9] [reason: uncaught-signal]")

    def test_interpreter_failure_reason(self):
        self.assertEqual(interpreter_failure_reason("Syntax error", -2740), "Syntax error [code: -2740]")
        self.assertEqual(interpreter_failure_reason(None, None), "unknown error")


if __name__ == "__main__":
    unittest.main()
