import unittest
import logging

from ..streams.dummy import DummyStream
from .errors import InvalidStatusMessageError, OversizedMessageError
from .framer import read_message
from .status import parse_status, read_status


class TestParseStatus(unittest.TestCase):

    def test_init(self):
        self.assertEqual(parse_status("STATE: init"), "init")

    def test_key_is_case_insensitive(self):
        for line in ("state: init", "State: init", "sTaTe: init"):
            with self.subTest(line=line):
                self.assertEqual(parse_status(line), "init")

    def test_value_is_trimmed_and_lowercased(self):
        cases = {
            "STATE: RUNNING": "running",
            "STATE: Error\r": "error",
            "STATE: \tinit\t": "init",
            "STATE: Init\r\n": "init",
        }
        for line, expected in cases.items():
            with self.subTest(line=line):
                self.assertEqual(parse_status(line), expected)

    def test_wrong_token_count(self):
        for line in ("", "STATE:", "STATE:init", "STATE:  init", "STATE: init now", " STATE: init"):
            with self.subTest(line=line):
                with self.assertRaises(InvalidStatusMessageError) as ctx:
                    parse_status(line)
                self.assertEqual(ctx.exception.reason, "unexpected number of tokens")

    def test_wrong_key(self):
        for line in ("STATUS: init", "STATE init", "GCODE_ACK now", "STATE:: init"):
            with self.subTest(line=line):
                with self.assertRaises(InvalidStatusMessageError) as ctx:
                    parse_status(line)
                self.assertEqual(ctx.exception.reason, "unexpected message key")
                self.assertEqual(ctx.exception.message, line)

    def test_error_is_logged_with_message(self):
        with self.assertLogs("carbide_send.status", level=logging.ERROR) as logs:
            with self.assertRaises(InvalidStatusMessageError):
                parse_status("STATUS: init")
        self.assertEqual(logs.records[0].fields, {"message": "STATUS: init", "key": "STATUS:"})


class TestReadStatus(unittest.TestCase):

    def test_reads_one_frame(self):
        stream = DummyStream([b"STATE: Running\n"])
        self.assertEqual(read_status(lambda: read_message(stream)), "running")

    def test_framer_errors_propagate(self):
        stream = DummyStream([b"STATE: " + b"x" * 200])
        with self.assertRaises(OversizedMessageError):
            read_status(lambda: read_message(stream))


if __name__ == '__main__':
    unittest.main()
