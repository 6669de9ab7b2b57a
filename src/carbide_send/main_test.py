import os
import socket
import tempfile
import unittest
from unittest.mock import patch

from .config import DEFAULT_PORT, SendConfig
from .main import build_parser, main
from .streams.dummy import DummyServer


class TestSendConfig(unittest.TestCase):

    def parse(self, *argv):
        return SendConfig.from_args(build_parser().parse_args(list(argv)))

    def test_defaults(self):
        config = self.parse("--file", "part.nc")
        self.assertEqual(config.host, "127.0.0.1")
        self.assertEqual(config.port, DEFAULT_PORT)
        self.assertIsNone(config.timeout)
        self.assertFalse(config.buffered_framing)
        self.assertEqual(config.address, "127.0.0.1:6280")

    def test_port_in_address_wins(self):
        config = self.parse("--file", "part.nc", "--address", "shapeoko.local:7000", "--port", "9000")
        self.assertEqual(config.host, "shapeoko.local")
        self.assertEqual(config.port, 7000)

    def test_port_flag(self):
        config = self.parse("--file", "part.nc", "-a", "10.0.0.5", "-p", "9000")
        self.assertEqual(config.address, "10.0.0.5:9000")

    def test_bad_port_suffix(self):
        with self.assertRaises(ValueError):
            self.parse("--file", "part.nc", "--address", "10.0.0.5:abc")

    def test_port_out_of_range(self):
        for argv in (("--address", "127.0.0.1:70000"), ("--port", "70000"), ("--address", "127.0.0.1:0")):
            with self.subTest(argv=argv):
                with self.assertRaises(ValueError):
                    self.parse("--file", "part.nc", *argv)

    def test_verbose_and_quiet_are_exclusive(self):
        with patch("sys.stderr"), self.assertRaises(SystemExit):
            self.parse("--file", "part.nc", "-v", "-q")


class TestMain(unittest.TestCase):

    def setUp(self):
        handle, self.path = tempfile.mkstemp(suffix=".nc")
        with os.fdopen(handle, "wb") as f:
            f.write(b"G0 X10 Y2\n")

    def tearDown(self):
        os.unlink(self.path)

    def run_main(self, server: DummyServer, *extra):
        return main(["--file", self.path, "--address", f"127.0.0.1:{server.port}",
                     "--timeout", "5", "-q", *extra])

    def test_success(self):
        with DummyServer() as server:
            self.assertEqual(self.run_main(server), 0)
        self.assertEqual(bytes(server.received),
                         f"GCODE: {self.path}:10\n".encode() + b"G0 X10 Y2\n\n")

    def test_success_with_buffered_framing(self):
        with DummyServer() as server:
            self.assertEqual(self.run_main(server, "--buffered-framing"), 0)

    def test_progress_is_printed(self):
        with DummyServer() as server, patch("sys.stdout") as stdout:
            code = main(["--file", self.path, "--address", f"127.0.0.1:{server.port}"])
        self.assertEqual(code, 0)
        written = "".join(call.args[0] for call in stdout.write.call_args_list)
        self.assertIn("Progress: 100.0% (10/10 bytes)", written)

    def test_machine_busy(self):
        with DummyServer(status=b"STATE: running\n") as server:
            self.assertEqual(self.run_main(server), 1)
        self.assertEqual(bytes(server.received), b"")

    def test_wrong_ack(self):
        with DummyServer(reply=b"DONE\n") as server:
            self.assertEqual(self.run_main(server), 1)

    def test_missing_file(self):
        with patch("sys.stderr"):
            code = main(["--file", self.path + ".missing", "-q"])
        self.assertEqual(code, 2)

    def test_port_out_of_range_is_bad_input(self):
        with patch("sys.stderr"):
            code = main(["--file", self.path, "--address", "127.0.0.1:70000", "-q"])
        self.assertEqual(code, 2)

    def test_unresolvable_address(self):
        with patch("socket.getaddrinfo", side_effect=socket.gaierror("Name or service not known")), \
                patch("sys.stderr"):
            code = main(["--file", self.path, "--address", "no-such-machine.invalid", "-q"])
        self.assertEqual(code, 2)

    def test_connection_refused(self):
        # Grab a free port, then release it so nothing is listening there
        probe = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        probe.bind(("127.0.0.1", 0))
        port = probe.getsockname()[1]
        probe.close()
        code = main(["--file", self.path, "--address", f"127.0.0.1:{port}", "-q"])
        self.assertEqual(code, 1)


if __name__ == '__main__':
    unittest.main()
