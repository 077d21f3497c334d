"""Main Application Entry Point

This module runs the performance dashboard: the FastAPI ingestion/query
server, the WebSocket push channel and the periodic tasks, all on a single
event loop.
"""

import argparse
import asyncio
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, List, Optional

import uvicorn
from dotenv import load_dotenv

from .endpoints import create_app
from ..config.config_manager import Config, LoggingConfig, load_config
from ..service import TelemetryService

logger = logging.getLogger(__name__)


def setup_logging(log_config: LoggingConfig) -> None:
    """Configure the root logger from configuration"""
    logging.basicConfig(
        level=getattr(logging, log_config.level.upper(), logging.INFO),
        format=log_config.format,
        force=True
    )

    if log_config.file_enabled:
        log_dir = os.path.dirname(log_config.file_path)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_config.file_path,
            maxBytes=log_config.max_file_size,
            backupCount=log_config.backup_count
        )
        file_handler.setFormatter(logging.Formatter(log_config.format))
        logging.getLogger().addHandler(file_handler)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Performance monitoring dashboard",
        epilog="Example: perf-dashboard --port 4000 --ws-port 4001"
    )
    parser.add_argument("--config", help="Configuration file path", default="config.yaml")
    parser.add_argument("--port", type=int, help="Dashboard/API port (default: 3001)")
    parser.add_argument("--ws-port", type=int, help="WebSocket port (default: 3002)")
    return parser.parse_args(argv)


def cli_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if args.port:
        overrides.setdefault("api", {})["port"] = args.port
    if args.ws_port:
        overrides.setdefault("websocket", {})["port"] = args.ws_port
    return overrides


async def serve(config: Config) -> None:
    """Run the HTTP server and push channel until interrupted"""
    service = TelemetryService(config)
    app = create_app(service)

    server = uvicorn.Server(uvicorn.Config(
        app,
        host=config.api.host,
        port=config.api.port,
        log_level=config.api.log_level.lower()
    ))

    logger.info("Performance Dashboard starting:")
    logger.info(f"   Dashboard: http://{config.api.host}:{config.api.port}")
    logger.info(f"   WebSocket: ws://{config.websocket.host}:{config.websocket.port}")
    logger.info("   POST /api/metrics - Submit performance metrics")
    logger.info("   POST /api/alerts - Submit performance alerts")
    logger.info("   GET  /api/dashboard/metrics - Get dashboard data")
    logger.info("   GET  /api/health - Health check")

    await server.serve()


def main(argv: Optional[List[str]] = None):
    """Main function to run the dashboard"""
    load_dotenv()
    args = parse_args(argv)

    try:
        config = load_config(args.config, cli_overrides(args))
        setup_logging(config.logging)

        logger.info(f"Environment: {config.environment}")
        logger.info(f"Debug mode: {config.debug}")

        asyncio.run(serve(config))

    except KeyboardInterrupt:
        logger.info("Shutting down dashboard...")
    except Exception as e:
        logger.error(f"Dashboard startup failed: {e}")
        raise


if __name__ == "__main__":
    main()
