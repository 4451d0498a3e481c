"""
Turf CLI - Command-line interface for the tracking service.

Sends MQTT commands to a running turf-tracker without hand-writing JSON,
and replays recorded tracks through an offline engine.

Usage:
    turf-cli start run
    turf-cli steps 12
    turf-cli pause
    turf-cli stop
    turf-cli replay track.csv --mode walk --json
"""

__version__ = "0.1.0"
