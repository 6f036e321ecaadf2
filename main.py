import argparse
import logging
import sys

import boto3
from botocore.exceptions import BotoCoreError

from vpc_nuke_modules.config import DEFAULT_MAX_WORKERS, NukeConfig
from vpc_nuke_modules.errors import NukeError
from vpc_nuke_modules.events import CollectingEventSink, LoggingEventSink, Outcome, fan_out
from vpc_nuke_modules.network_scanner import NetworkScanner, ScanResult, get_regions

logger = logging.getLogger(__name__)


def prompt_confirmation(result: ScanResult, input_func=None) -> bool:
    """Ask until the answer is 'yes' (proceed) or 'n'/'no' (abort)"""
    input_func = input_func or input
    print("")
    while True:
        try:
            answer = input_func("Type [yes] to delete default VPCs: ").strip().lower()
        except EOFError:
            return False
        if answer in ("n", "no"):
            return False
        if answer == "yes":
            return True


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Delete the default VPC in every region where it is unused")
    parser.add_argument("-r", "--region", action="append",
                        help="AWS region to scan, may be repeated (default: all regions)")
    parser.add_argument("--profile", help="AWS CLI profile (default: AWS_PROFILE)")
    parser.add_argument("--debug", action="store_true", help="Turn on debug output")
    parser.add_argument("-d", "--dry-run", action="store_true",
                        help="Perform a dry run without actually deleting resources")
    parser.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation")
    parser.add_argument("--max-workers", type=int, default=DEFAULT_MAX_WORKERS,
                        help=f"Concurrent deletions per stage (default: {DEFAULT_MAX_WORKERS})")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.debug else logging.INFO)
    if not args.debug:
        logging.getLogger("botocore").setLevel(logging.WARNING)

    try:
        config = NukeConfig.from_args(args)
        session = boto3.Session(profile_name=config.profile)
        regions = config.regions or get_regions(session, config)

        if config.dry_run:
            logger.info("=== DRY RUN MODE - No resources will be deleted ===")

        events = CollectingEventSink()
        scanner = NetworkScanner(regions, config=config, sink=fan_out(LoggingEventSink(), events), session=session)
        gate = (lambda result: True) if config.assume_yes else prompt_confirmation
        report = scanner.run(gate)
    except KeyboardInterrupt:
        sys.stdout.write("^C\n")
        return 130
    except (NukeError, BotoCoreError) as e:
        logger.error(f"Error during default VPC cleanup: {e}")
        return 1

    for region in report.scan.failed:
        logger.error(f"{region}: scan failed: {report.scan.scopes[region].error}")
    for teardown in report.teardowns:
        if teardown.completed:
            logger.info(teardown.describe())
        else:
            logger.error(teardown.describe())

    if report.teardowns:
        applied = sum(1 for event in events.events if event.outcome is Outcome.DONE)
        logger.info(f"{applied} change(s) applied across {len(report.teardowns)} region(s)")

    return 0 if report.succeeded else 1


if __name__ == "__main__":
    sys.exit(main())
