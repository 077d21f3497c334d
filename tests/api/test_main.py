"""Tests for the command-line entry point"""

import logging
import os
from logging.handlers import RotatingFileHandler
from unittest.mock import AsyncMock, patch

import pytest

from src.api.main import cli_overrides, main, parse_args, setup_logging
from src.config import Config, LoggingConfig


class TestCommandLine:

    def test_defaults(self):
        args = parse_args([])

        assert args.config == "config.yaml"
        assert args.port is None
        assert args.ws_port is None
        assert cli_overrides(args) == {}

    def test_port_flags_become_overrides(self):
        args = parse_args(["--port", "4000", "--ws-port", "4001"])

        assert cli_overrides(args) == {"api": {"port": 4000}, "websocket": {"port": 4001}}

    def test_main_runs_server_with_flags(self):
        with patch("src.api.main.load_dotenv"), \
                patch("src.api.main.setup_logging"), \
                patch("src.api.main.serve", new=AsyncMock()) as serve:
            main(["--config", "/nonexistent.yaml", "--port", "4000"])

        config = serve.await_args.args[0]
        assert isinstance(config, Config)
        assert config.api.port == 4000

    def test_main_reraises_startup_failure(self):
        with patch("src.api.main.load_dotenv"), \
                patch("src.api.main.load_config", side_effect=ValueError("bad config")):
            with pytest.raises(ValueError):
                main([])


class TestSetupLogging:

    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        for handler in root.handlers:
            if handler not in handlers:
                handler.close()
        root.handlers, root.level = handlers, level

    def test_level_from_config(self):
        setup_logging(LoggingConfig(level="warning"))
        assert logging.getLogger().level == logging.WARNING

    def test_file_handler(self, tmp_path):
        path = tmp_path / "logs" / "dashboard.log"
        setup_logging(LoggingConfig(file_enabled=True, file_path=str(path)))

        handlers = [h for h in logging.getLogger().handlers if isinstance(h, RotatingFileHandler)]
        assert len(handlers) == 1
        assert os.path.isdir(path.parent)
