"""
Turf CLI - Main entry point.

Provides command-line interface for sending MQTT commands to a tracking
service, and an offline replay of recorded tracks.
"""

import argparse
import itertools
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from turf_engine.session import SessionController
from turf_engine.territory import OwnershipArbiter, Territory, TerritoryCache
from turf_engine.tracking import ActivityMode, LoopDetector, PathFilter
from turf_service.config import EngineConfig, TrackerConfig

from .mqtt_client import MQTTCommandClient
from .track_io import iter_samples


def send_command(
    command: Dict[str, Any],
    device_id: str = "phone_01",
    broker: str = "localhost",
    port: int = 1883,
    prefix: str = "turf",
) -> None:
    """
    Send command to a tracking service via MQTT.

    Args:
        command: Command dictionary
        device_id: Target device ID
        broker: MQTT broker host
        port: MQTT broker port
        prefix: Topic prefix
    """
    topic = f"{prefix}/control/{device_id}/commands"

    client = MQTTCommandClient(broker=broker, port=port)
    client.send_command(topic, command, qos=1)


def replay(
    csv_path: str,
    mode: ActivityMode,
    owner_id: str = "replay",
    engine: Optional[EngineConfig] = None,
) -> List[Territory]:
    """
    Run a recorded track through an offline engine.

    The session clock follows the sample timestamps, so territories carry
    the time they were captured on the original walk.

    Returns:
        Territories in the cache after the replay, newest first
    """
    engine = engine or EngineConfig()
    samples = iter(iter_samples(csv_path))
    first = next(samples, None)
    if first is None:
        return []

    current = [first.timestamp]
    counter = itertools.count(1)
    session = SessionController(
        owner_id=owner_id,
        cache=TerritoryCache(),
        arbiter=OwnershipArbiter(uniform_clamp=engine.uniform_clamp, max_strength=engine.max_strength),
        path_filter=PathFilter(max_accuracy_m=engine.max_accuracy_m, max_jump_m=engine.max_jump_m),
        detector=LoopDetector(
            close_threshold_m=engine.loop_close_threshold_m,
            min_loop_distance_m=engine.min_loop_distance_m,
            min_area_m2=engine.min_territory_area_m2,
        ),
        smoothing_window=engine.smoothing_window,
        clock=lambda: current[0],
        id_factory=lambda: f"{owner_id}-{next(counter)}",
    )
    session.start(mode)

    for sample in itertools.chain([first], samples):
        current[0] = sample.timestamp
        session.ingest(sample)

    record = session.stop()
    print(
        f"Replayed {len(record.path)} points left on path, distance={record.distance_m}m, "
        f"territories={len(session.cache)}",
        file=sys.stderr,
    )
    return list(session.cache.snapshot())


def _print_territories(territories: List[Territory], as_json: bool) -> None:
    if as_json:
        print(json.dumps([t.to_dict() for t in territories], indent=2))
        return

    if not territories:
        print("No territories captured")
        return

    for t in territories:
        owners = ", ".join(f"{o.owner_id}={o.strength:.2f}" for o in t.owners) or "-"
        print(f"{t.id}  {t.mode.value:<5}  {t.area_m2:>10.0f} m²  {len(t.polygon):>4} pts  [{owners}]")


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Turf CLI - Control a tracking service, replay recorded tracks",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Session control
  turf-cli start run
  turf-cli start walk --step-counter
  turf-cli pause
  turf-cli resume
  turf-cli stop

  # Steps from a pedometer
  turf-cli steps 24

  # Flush pending uploads / query status
  turf-cli foreground
  turf-cli status

  # Offline replay of a recorded CSV
  turf-cli replay data/track.csv --mode walk
  turf-cli replay data/track.csv --mode run --owner alice --json
"""
    )

    # Global arguments
    parser.add_argument(
        "--device-id",
        default="phone_01",
        help="Target device ID (default: phone_01)"
    )
    parser.add_argument(
        "--broker",
        default="localhost",
        help="MQTT broker host (default: localhost)"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=1883,
        help="MQTT broker port (default: 1883)"
    )
    parser.add_argument(
        "--prefix",
        default="turf",
        help="MQTT topic prefix (default: turf)"
    )

    # Subcommands
    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    start = subparsers.add_parser('start', help='Start a session')
    start.add_argument('mode', choices=[m.value for m in ActivityMode], help='Activity mode')
    start.add_argument('--step-counter', action='store_true', help='Device has a step counter')

    steps = subparsers.add_parser('steps', help='Send a step-count delta')
    steps.add_argument('delta', type=int, help='Steps since last update')

    replay_parser = subparsers.add_parser('replay', help='Replay a CSV track offline')
    replay_parser.add_argument('csv', help='CSV with latitude,longitude,accuracy,timestamp')
    replay_parser.add_argument('--mode', choices=[m.value for m in ActivityMode], default='walk')
    replay_parser.add_argument('--owner', default='replay', help='Owner id for captured territories')
    replay_parser.add_argument('--config', help='Tracker YAML config (engine thresholds)')
    replay_parser.add_argument('--json', action='store_true', help='Print territories as JSON')

    # Simple commands (no arguments)
    subparsers.add_parser('pause', help='Pause the session')
    subparsers.add_parser('resume', help='Resume the session')
    subparsers.add_parser('stop', help='Stop and save the session')
    subparsers.add_parser('status', help='Query service status')
    subparsers.add_parser('foreground', help='Flush pending uploads')

    # Parse arguments
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    # Execute command
    try:
        if args.command == 'replay':
            engine = TrackerConfig.from_yaml(Path(args.config)).engine if args.config else None
            territories = replay(args.csv, ActivityMode(args.mode), owner_id=args.owner, engine=engine)
            _print_territories(territories, args.json)
            return

        if args.command == 'start':
            command = {
                'command': 'start',
                'mode': args.mode,
                'step_counter': args.step_counter,
            }
        elif args.command == 'steps':
            command = {
                'command': 'steps',
                'delta': args.delta,
            }
        else:
            command = {'command': args.command}

        send_command(command, args.device_id, args.broker, args.port, args.prefix)

    except (ConnectionError, RuntimeError, ValueError, KeyError, OSError) as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
