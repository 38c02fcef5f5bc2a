"""
Household Grid Simulator - Command Line Interface

Simulates a small household energy grid:
- Solar generation
- Battery charging and discharging
- Appliance load
- Grid settlement and the running bill

Usage:
    # Run in real time (one simulated hour per second) until interrupted
    python run_simulator.py --realtime

    # Run in real time for 30 seconds
    python run_simulator.py --realtime --duration 30

    # Fast-forward one simulated day (24000 ticks at 1000 Hz)
    python run_simulator.py --simulate 24000

    # Use custom config file and write observations as JSON lines
    python run_simulator.py --config config.json --simulate 24000 --output run.jsonl

    # Write the default configuration
    python run_simulator.py --generate-config --config config.json
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load INFLUXDB_* variables from a .env file before any config is built
load_dotenv()

from household_grid.clock import SimulatedClock  # noqa: E402
from household_grid.config import DEFAULT_CONFIG, SimulationConfig  # noqa: E402
from household_grid.grid import HouseholdGrid  # noqa: E402
from household_grid.models import GridSummary  # noqa: E402
from household_grid.runtime import SystemHalted  # noqa: E402
from household_grid.storage import InfluxDBStorage  # noqa: E402

# Simulation output goes to stdout, so logs go to stderr
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stderr)],
)
logger = logging.getLogger(__name__)


def create_storage(config: SimulationConfig) -> Optional[InfluxDBStorage]:
    """Create InfluxDB storage when enabled in the configuration."""
    if not config.influxdb.enabled:
        return None
    storage = InfluxDBStorage(config.influxdb)
    if not storage.setup_retention_policy():
        logger.warning("Could not set up InfluxDB retention for bucket %s", config.influxdb.bucket)
    return storage


async def _run_realtime(config: SimulationConfig, duration: Optional[float]) -> GridSummary:
    storage = create_storage(config)
    try:
        grid = HouseholdGrid(config=config, storage=storage)
        try:
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(sig, grid.stop)

            duration_ticks = None
            if duration is not None:
                duration_ticks = int(duration * config.clock.tick_rate_hz)
            return await grid.run(duration_ticks=duration_ticks)
        finally:
            grid.close()
    finally:
        if storage is not None:
            storage.close()


async def _run_simulated(config: SimulationConfig, ticks: int) -> GridSummary:
    storage = create_storage(config)
    try:
        grid = HouseholdGrid(
            config=config,
            clock=SimulatedClock(config.clock.tick_rate_hz),
            storage=storage,
        )
        try:
            return await grid.run_simulated(ticks)
        finally:
            grid.close()
    finally:
        if storage is not None:
            storage.close()


def run_realtime(config: SimulationConfig, duration: Optional[float] = None) -> GridSummary:
    """Run the simulation on the wall clock."""
    return asyncio.run(_run_realtime(config, duration))


def run_simulated(config: SimulationConfig, ticks: int) -> GridSummary:
    """Run ``ticks`` of simulated time as fast as possible."""
    return asyncio.run(_run_simulated(config, ticks))


def generate_sample_config(output_path: Path) -> None:
    """Generate a sample configuration file."""
    DEFAULT_CONFIG.to_file(output_path)
    logger.info("Sample config written to %s", output_path)


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Household Grid Simulator - solar, battery, appliances and grid settlement",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    # Mode selection
    mode_group = parser.add_mutually_exclusive_group(required=True)
    mode_group.add_argument(
        "--realtime",
        action="store_true",
        help="Run on the wall clock until interrupted or --duration elapses",
    )
    mode_group.add_argument(
        "--simulate",
        type=int,
        metavar="TICKS",
        help="Fast-forward the given number of ticks on a simulated clock",
    )
    mode_group.add_argument(
        "--generate-config",
        action="store_true",
        help="Generate a sample configuration file",
    )

    # Configuration options
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to configuration JSON file",
    )
    parser.add_argument(
        "--duration",
        type=float,
        help="Duration in seconds for realtime mode (default: run forever)",
    )
    parser.add_argument(
        "--output",
        type=Path,
        help="Observation output file path (JSON lines format)",
    )
    parser.add_argument(
        "--device-id",
        type=str,
        default=None,
        help="Device ID attached to stored telemetry (default: household-grid-001)",
    )

    # Verbosity
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress log output",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args(argv)

    if args.quiet:
        logging.getLogger().setLevel(logging.WARNING)
    elif args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    if args.duration is not None and not args.realtime:
        parser.error("--duration only applies to --realtime")

    if args.generate_config:
        generate_sample_config(args.config or Path("config.json"))
        return 0

    # Load or create configuration
    if args.config:
        if not args.config.exists():
            parser.error(f"Configuration file not found: {args.config}")
        config = SimulationConfig.from_file(args.config)
        logger.info("Loaded config from %s", args.config)
    else:
        config = SimulationConfig()

    # Apply command line overrides (only if explicitly provided)
    if args.output is not None:
        config.output_file = str(args.output)
    if args.device_id is not None:
        config.device_id = args.device_id

    try:
        config.validate()
    except ValueError as exc:
        parser.error(str(exc))

    try:
        if args.realtime:
            summary = run_realtime(config, args.duration)
        else:
            if args.simulate < 0:
                parser.error("--simulate requires a non-negative number of ticks")
            summary = run_simulated(config, args.simulate)
    except SystemHalted as exc:
        logger.error("Simulation halted: %s", exc.reason)
        return 1

    logger.info("Run summary: %s", summary.to_json(indent=None))
    return 0


if __name__ == "__main__":
    sys.exit(main())
