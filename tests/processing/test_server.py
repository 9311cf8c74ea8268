# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Tests for the server entry point's signal handling.
"""

import asyncio
import signal
from unittest.mock import Mock, patch

from fmlastheard.capture.config import Config
from fmlastheard.processing import server as server_module


class FakeServer:
    """Stands in for TalkerServer; start() blocks until stop() is called."""

    handlers = {}

    def __init__(self, config, with_bridge=True):
        self.config = config
        self.stop_calls = 0
        self.stopped = asyncio.Event()
        FakeServer.instance = self

    async def start(self):
        self.handlers[signal.SIGTERM]()
        await asyncio.wait_for(self.stopped.wait(), timeout=5)

    async def stop(self):
        self.stop_calls += 1
        self.stopped.set()


class TestMain:
    def test_signal_triggers_shutdown(self, tmp_path):
        FakeServer.handlers = {}
        loop = Mock()
        loop.add_signal_handler.side_effect = lambda sig, callback: FakeServer.handlers.__setitem__(sig, callback)

        with patch.object(server_module, "TalkerServer", FakeServer), \
                patch.object(server_module, "setup_logging"), \
                patch.object(server_module.asyncio, "get_running_loop", return_value=loop):
            asyncio.run(server_module.main(Config(config_path=tmp_path / "missing.yaml")))

        assert set(FakeServer.handlers) == {signal.SIGINT, signal.SIGTERM}
        # once from the signal handler, once from the final cleanup
        assert FakeServer.instance.stop_calls == 2
