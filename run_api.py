#!/usr/bin/env python3
"""
Performance Dashboard Runner

Simple script to start the performance dashboard (HTTP API + push channel).
Usage:
    python run_api.py [--port 3001] [--ws-port 3002] [--config config.yaml]

Environment Variables:
    API_HOST: Host to bind the HTTP API to (default: 0.0.0.0)
    API_PORT: HTTP API port (default: 3001)
    WS_HOST: Host to bind the WebSocket push channel to (default: 0.0.0.0)
    WS_PORT: WebSocket push channel port (default: 3002)
    METRICS_RETENTION_DAYS: In-memory retention window (default: 7)
"""

import sys
import os

# Add project root to Python path
project_root = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, project_root)

from src.api.main import main

if __name__ == "__main__":
    main()
