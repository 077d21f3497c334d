"""Performance Dashboard telemetry core"""

__version__ = "0.1.0"
