import enum
import logging
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from vpc_nuke_modules.aws_resource import NetworkInterface
from vpc_nuke_modules.config import REGION_DISCOVERY_REGION, NukeConfig
from vpc_nuke_modules.errors import NukeError, TransportError
from vpc_nuke_modules.events import EventSink, LoggingEventSink
from vpc_nuke_modules.vpc_cleaner import TeardownReport, VPCCleaner

logger = logging.getLogger(__name__)


class Classification(enum.Enum):
    BLANK = "blank"
    IN_USE = "in_use"
    DELETABLE = "deletable"
    FAILED = "failed"


@dataclass
class ScopeResult:
    region: str
    classification: Classification
    vpc_id: Optional[str] = None
    interfaces: List[NetworkInterface] = field(default_factory=list)
    error: Optional[BaseException] = None
    cleaner: Optional[VPCCleaner] = None


@dataclass
class ScanResult:
    scopes: Dict[str, ScopeResult] = field(default_factory=dict)

    def _regions(self, classification: Classification) -> List[str]:
        return sorted(r for r, scope in self.scopes.items() if scope.classification is classification)

    @property
    def blank(self) -> List[str]:
        return self._regions(Classification.BLANK)

    @property
    def in_use(self) -> List[str]:
        return self._regions(Classification.IN_USE)

    @property
    def deletable(self) -> List[str]:
        return self._regions(Classification.DELETABLE)

    @property
    def failed(self) -> List[str]:
        return self._regions(Classification.FAILED)

    def summary_lines(self) -> List[str]:
        lines = []
        if self.blank:
            lines.append(f"No default VPC: {', '.join(self.blank)}")
        if self.in_use:
            lines.append(f"Using default VPC: {', '.join(self.in_use)}")
        if self.deletable:
            lines.append(f"Deletable default VPC: {', '.join(self.deletable)}")
        if self.failed:
            lines.append(f"Failed to scan: {', '.join(self.failed)}")
        return lines


@dataclass
class RunReport:
    scan: ScanResult
    confirmed: bool = False
    teardowns: List[TeardownReport] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.scan.failed and all(report.completed for report in self.teardowns)


Gate = Callable[[ScanResult], bool]


def get_regions(session: boto3.Session, config: Optional[NukeConfig] = None) -> List[str]:
    """List the regions enabled for the account"""
    config = config or NukeConfig()
    client = session.client("ec2", region_name=REGION_DISCOVERY_REGION, config=config.client_config())
    try:
        response = client.describe_regions()
    except (ClientError, BotoCoreError) as e:
        raise TransportError(f"Could not list regions: {e}") from e
    return sorted(region["RegionName"] for region in response["Regions"])


class NetworkScanner:
    """Classifies the default VPC of every region and tears down the deletable ones"""

    def __init__(
        self,
        regions: List[str],
        config: Optional[NukeConfig] = None,
        sink: Optional[EventSink] = None,
        session: Optional[boto3.Session] = None,
        client_factory: Optional[Callable[[str], object]] = None,
    ):
        self.regions = list(regions)
        self.config = config or NukeConfig()
        self.sink = sink or LoggingEventSink()
        self.session = session
        self.client_factory = client_factory

    def _new_cleaner(self, region: str) -> VPCCleaner:
        # boto3 sessions are not thread safe, clients are built before fanning out
        ec2_client = self.client_factory(region) if self.client_factory else None
        if ec2_client is None and self.session is None:
            self.session = boto3.Session(profile_name=self.config.profile)
        return VPCCleaner(region, ec2_client=ec2_client, config=self.config, sink=self.sink, session=self.session)

    def classify(self, cleaner: VPCCleaner) -> ScopeResult:
        region = cleaner.region
        try:
            vpc = cleaner.find_default_vpc()
            if vpc is None:
                return ScopeResult(region, Classification.BLANK)

            interfaces = cleaner.find_network_interfaces()
            if interfaces:
                logger.info(
                    f"[{region}] Default VPC {vpc.resource_id} is in use by "
                    f"{', '.join(eni.resource_id for eni in interfaces)}"
                )
                return ScopeResult(region, Classification.IN_USE, vpc.resource_id, interfaces=interfaces)

            return ScopeResult(region, Classification.DELETABLE, vpc.resource_id, cleaner=cleaner)
        except Exception as e:
            logger.error(f"[{region}] Error scanning region: {e}")
            return ScopeResult(region, Classification.FAILED, error=e)

    def scan(self) -> ScanResult:
        logger.info("*** Scanning regions...")
        result = ScanResult()
        if not self.regions:
            return result

        cleaners = []
        for region in self.regions:
            try:
                cleaners.append(self._new_cleaner(region))
            except (NukeError, BotoCoreError) as e:
                logger.error(f"[{region}] Could not create EC2 client: {e}")
                result.scopes[region] = ScopeResult(region, Classification.FAILED, error=e)

        if not cleaners:
            return result

        with ThreadPoolExecutor(max_workers=len(cleaners)) as executor:
            for scope in executor.map(self.classify, cleaners):
                result.scopes[scope.region] = scope
        return result

    def proceed(self, result: ScanResult) -> List[TeardownReport]:
        """Tear down every deletable scope; one scope failing never stops the others"""
        cleaners = [result.scopes[region].cleaner for region in result.deletable]
        if not cleaners:
            return []

        executor = ThreadPoolExecutor(max_workers=len(cleaners))
        futures = [executor.submit(cleaner.run) for cleaner in cleaners]
        try:
            while True:
                try:
                    wait(futures)
                    break
                except KeyboardInterrupt:
                    logger.warning("Interrupted; waiting for in-flight teardowns to finish")
        finally:
            executor.shutdown(wait=True)

        reports = []
        for cleaner, future in zip(cleaners, futures):
            try:
                reports.append(future.result())
            except Exception as e:
                logger.error(f"[{cleaner.region}] Teardown crashed: {e}")
                reports.append(
                    TeardownReport(
                        region=cleaner.region,
                        vpc_id=cleaner.vpc.resource_id if cleaner.vpc else None,
                        completed=False,
                        failed_stage="unknown",
                        error=str(e),
                        mutation_count=cleaner.mutation_count,
                    )
                )
        return reports

    def run(self, gate: Gate) -> RunReport:
        result = self.scan()
        for line in result.summary_lines():
            logger.info(line)

        report = RunReport(scan=result)
        if not result.deletable:
            return report

        report.confirmed = bool(gate(result))
        if not report.confirmed:
            logger.info("Aborted, no default VPC was deleted")
            return report

        report.teardowns = self.proceed(result)
        return report
