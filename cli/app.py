"""
Main command-line application for the RF Sweep Measurement System.

Subcommands:
- sweep: frequency/power sweep over the tags of interest
- capture: continuous capture of every tag read for a time budget
- export: write a measurement table to CSV

Exit code 1 on any configuration, device or database error, 0 on a
clean stop (key press, grid exhausted or time budget elapsed).
"""

import argparse
from typing import List, Optional

from config.settings import Settings
from core.reader_device import get_reader_device, DeviceConfigError
from core.record_store import RecordStore, StoreError
from core.tag_manager import TagManager
from protocols.base import RunResult
from protocols.capture import ContinuousCaptureProtocol
from protocols.sweep import FrequencySweepProtocol
from utils.csv_exporter import CSVExporter
from utils.keyboard import KeyboardCancelSignal
from utils.logging import get_logger


EPILOG = (
    "reader-uri: e.g. 'tmr:///dev/ttyS0', 'tmr://readerIP' or 'llrp://readerIP'. "
    "Example: rfsweep sweep tmr:///dev/ttyUSB0 --ant 1,2 --minpow 2000 --maxpow 3000"
)


def parse_antenna_list(text: str) -> List[int]:
    """Parse '1,2' into [1, 2]."""
    try:
        antennas = [int(token) for token in text.split(",") if token.strip()]
    except ValueError:
        raise argparse.ArgumentTypeError(f"Can't parse '{text}' as an antenna list")
    if not antennas or any(not 0 < a < 256 for a in antennas):
        raise argparse.ArgumentTypeError(f"Antennas must be 1-255, got '{text}'")
    return antennas


def parse_region(text: str) -> Optional[int]:
    """Region index into the reader's supported-regions list, or 'none' to keep it."""
    if text.lower() == "none":
        return None
    try:
        return int(text, 0)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Can't parse region: {text}")


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--settings", default="settings.json",
                        help="settings JSON file (default: settings.json)")
    common.add_argument("--verbose", "-v", action="store_true", help="debug logging")

    reader = argparse.ArgumentParser(add_help=False)
    reader.add_argument("uri", help="reader URI")
    reader.add_argument("--ant", type=parse_antenna_list, help="antenna list, e.g. '1,2'")
    reader.add_argument("--file", help="database file, e.g. 'database.db'")
    reader.add_argument("--reg", type=parse_region, default=argparse.SUPPRESS,
                        help="region index into the reader's supported regions, or 'none'")
    reader.add_argument("--dwell", type=int, help="read dwell in ms")

    parser = argparse.ArgumentParser(
        prog="rfsweep",
        description="RFID frequency/power sweep and continuous capture",
        epilog=EPILOG,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sweep = sub.add_parser("sweep", parents=[common, reader],
                           help="sweep frequency and power for the tags of interest")
    sweep.add_argument("--epc", action="append", help="tag of interest (repeatable)")
    sweep.add_argument("--epc1", help="replace the first tag of interest")
    sweep.add_argument("--epc2", help="replace the second tag of interest")
    sweep.add_argument("--tags-file", help="JSON file listing the tags of interest")
    sweep.add_argument("--freqstep", type=float, help="frequency step in MHz, e.g. 5")
    sweep.add_argument("--powstep", type=int, help="power step in cdBm, e.g. 100")
    sweep.add_argument("--minfreq", type=int, help="first frequency in kHz, e.g. 840000")
    sweep.add_argument("--maxfreq", type=int, help="last frequency in kHz, e.g. 928000")
    sweep.add_argument("--minpow", type=int, help="first read power in cdBm")
    sweep.add_argument("--maxpow", type=int, help="last read power in cdBm")
    sweep.add_argument("--settle", type=int, help="settle time between power steps in ms")
    sweep.add_argument("--repeat", type=int,
                       help="number of sweeps, 0 to repeat until a key is pressed")
    sweep.add_argument("--return-loss", action="store_true",
                       help="log antenna return loss at each frequency")

    capture = sub.add_parser("capture", parents=[common, reader],
                             help="record every tag read at fixed power")
    capture.add_argument("--pow", type=int, help="read power in cdBm, e.g. 3150")
    capture.add_argument("--time", type=float, help="reading time in seconds")

    export = sub.add_parser("export", parents=[common],
                            help="export a measurement database to CSV")
    export.add_argument("database", help="database file")
    export.add_argument("--out", default=None, help="output directory")
    export.add_argument("--pivot", action="store_true",
                        help="also write the frequency x tag RSSI grid (sweep tables)")
    export.add_argument("--summary", action="store_true",
                        help="also write the per-tag sweep summary (sweep tables)")

    return parser


def apply_arguments(settings: Settings, args: argparse.Namespace) -> Settings:
    """Override file settings with command-line flags."""
    if getattr(args, "uri", None):
        settings.reader.uri = args.uri
    if getattr(args, "ant", None):
        settings.reader.antennas = args.ant
    if getattr(args, "file", None):
        settings.store.database = args.file
    if args.verbose:
        settings.log_level = "DEBUG"

    if args.command == "sweep":
        sweep = settings.sweep
        for attr, value in (
            ("freq_step", args.freqstep),
            ("pow_step", args.powstep),
            ("min_freq", args.minfreq),
            ("max_freq", args.maxfreq),
            ("min_pow", args.minpow),
            ("max_pow", args.maxpow),
            ("dwell_ms", args.dwell),
            ("settle_ms", args.settle),
            ("repeats", args.repeat),
            ("tags_file", args.tags_file),
        ):
            if value is not None:
                setattr(sweep, attr, value)
        if hasattr(args, "reg"):
            sweep.region_index = args.reg
        if args.return_loss:
            sweep.log_return_loss = True

        if args.epc:
            sweep.tags = list(args.epc)
        for position, epc in ((0, args.epc1), (1, args.epc2)):
            if epc:
                tags = list(sweep.tags)
                if position < len(tags):
                    tags[position] = epc
                else:
                    tags.append(epc)
                sweep.tags = tags

    elif args.command == "capture":
        capture = settings.capture
        for attr, value in (
            ("read_power", args.pow),
            ("duration_s", args.time),
            ("dwell_ms", args.dwell),
        ):
            if value is not None:
                setattr(capture, attr, value)
        if hasattr(args, "reg"):
            capture.region_index = args.reg

    return settings


def build_tag_manager(settings: Settings) -> TagManager:
    if settings.sweep.tags_file:
        manager = TagManager(config_file=settings.sweep.tags_file)
        if manager.count == 0:
            raise ValueError(f"No tags of interest in {settings.sweep.tags_file}")
        return manager
    return TagManager.from_epcs(settings.sweep.tags)


def run_export(args: argparse.Namespace, settings: Settings) -> int:
    logger = get_logger()
    exporter = CSVExporter(args.out or settings.store.export_dir)
    try:
        exporter.export_measurements(args.database)
        if args.pivot:
            exporter.export_pivot(args.database)
        if args.summary:
            exporter.export_summary(args.database)
    except StoreError as e:
        logger.error(str(e))
        return 1
    except KeyError as e:
        logger.error(f"Not a sweep table, missing column {e}")
        return 1
    return 0


def run_measurement(args: argparse.Namespace, settings: Settings) -> int:
    logger = get_logger()

    if args.command == "sweep":
        tag_manager = build_tag_manager(settings)
        config = settings.sweep_config(tags=tag_manager.epcs)
        protocol_cls = FrequencySweepProtocol
    else:
        tag_manager = TagManager()
        config = settings.capture_config()
        protocol_cls = ContinuousCaptureProtocol
    config.validate()

    reader = get_reader_device(settings.reader.uri, settings.reader)
    store = RecordStore(settings.store.database)

    with KeyboardCancelSignal() as cancel:
        protocol = protocol_cls(
            reader, store, config,
            tag_manager=tag_manager,
            cancel_signal=cancel,
            logger=logger,
        )
        if cancel.active:
            logger.info("Press any key to stop")
        result = protocol.run()

    log_result(result)
    return 0


def log_result(result: RunResult):
    logger = get_logger()
    status = "cancelled" if result.cancelled else "completed"
    logger.info(
        f"{result.mode} {status}: {result.cells_visited} reads issued, "
        f"{result.reads_drained} tag reads, {result.reads_skipped} skipped, "
        f"{result.rows_written} rows written"
    )


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        return 0 if e.code in (0, None) else 1

    logger = get_logger()
    try:
        settings = apply_arguments(Settings.load_from_file(args.settings), args)
        logger.set_level(settings.log_level)

        if args.command == "export":
            return run_export(args, settings)
        return run_measurement(args, settings)

    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        return 1
    except (DeviceConfigError, StoreError) as e:
        logger.error(f"Error {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
