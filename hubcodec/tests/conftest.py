"""Unit tests configuration file."""

import pytest

from hubcodec.proto.framing import write_frame


def pytest_configure(config):
    """Disable verbose output when running tests."""
    terminal = config.pluginmanager.getplugin("terminal")
    if terminal:
        terminal.TerminalReporter.showfspath = False


@pytest.fixture
def frame():
    """Build a framed payload from hex-encoded message bodies."""

    def build(*bodies: str) -> bytes:
        return b"".join(write_frame(bytes.fromhex(body)) for body in bodies)

    return build
