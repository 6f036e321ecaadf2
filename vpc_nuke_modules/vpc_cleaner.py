import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional

from vpc_nuke_modules.aws_resource import (
    AWSResource,
    EgressOnlyInternetGateway,
    InternetGateway,
    NetworkAcl,
    NetworkInterface,
    RouteTable,
    SecurityGroup,
    Subnet,
    Vpc,
    VpcEndpoint,
)
from vpc_nuke_modules.errors import NukeError, StageError, ValidationError
from vpc_nuke_modules.resource_lister import attachment_filter, vpc_filter
from vpc_nuke_modules.resource_manager import ResourceManager
from vpc_nuke_modules.route_table_manager import RouteTableManager
from vpc_nuke_modules.security_group_manager import SecurityGroupManager

logger = logging.getLogger(__name__)


@dataclass
class TeardownReport:
    region: str
    vpc_id: Optional[str]
    completed: bool
    failed_stage: Optional[str] = None
    failed_resource: Optional[str] = None
    error: Optional[str] = None
    mutation_count: int = 0
    dry_run: bool = False

    def describe(self) -> str:
        if self.completed and self.dry_run:
            return f"{self.region}: would delete default VPC {self.vpc_id}"
        if self.completed:
            return f"{self.region}: deleted default VPC {self.vpc_id}"
        target = f" on {self.failed_resource}" if self.failed_resource else ""
        return f"{self.region}: failed at stage '{self.failed_stage}'{target}: {self.error}"


class VPCCleaner(ResourceManager):
    """Tears down the default VPC of one region, one stage at a time.

    Stages run strictly in order; the deletions inside a stage are issued
    concurrently and the stage only ends once all of them have returned.
    """

    def __init__(self, region: str, vpc: Optional[Vpc] = None, **kwargs):
        super().__init__(region, **kwargs)
        self.vpc = vpc
        self.sg_manager = SecurityGroupManager(self)
        self.rt_manager = RouteTableManager(self)
        self.route_tables: List[RouteTable] = []

    @property
    def vpc_id(self) -> str:
        if self.vpc is None:
            raise ValidationError(f"[{self.region}] No default VPC resolved")
        return self.vpc.resource_id

    def find_default_vpc(self) -> Optional[Vpc]:
        self.vpc = self.lister.find_default_vpc()
        return self.vpc

    def find_network_interfaces(self) -> List[NetworkInterface]:
        return self.lister.list_all("network_interfaces", [vpc_filter(self.vpc_id)])

    def run(self) -> TeardownReport:
        """Run the teardown and report instead of raising on scope-level failures"""
        try:
            self.delete_default_vpc()
        except StageError as e:
            return TeardownReport(
                region=self.region,
                vpc_id=self.vpc.resource_id if self.vpc else None,
                completed=False,
                failed_stage=e.stage,
                failed_resource=e.resource_id,
                error=str(e.cause),
                mutation_count=self.mutation_count,
                dry_run=self.dry_run,
            )
        return TeardownReport(
            region=self.region, vpc_id=self.vpc_id, completed=True,
            mutation_count=self.mutation_count, dry_run=self.dry_run,
        )

    def delete_default_vpc(self) -> None:
        cleanup_sequence = [
            ("security_groups", self._cleanup_security_groups),
            ("network_acls", self._cleanup_network_acls),
            ("vpc_endpoints", self._cleanup_endpoints),
            ("lookup_route_tables", self._lookup_route_tables),
            ("purge_route_tables", self._purge_route_tables),
            ("subnets", self._cleanup_subnets),
            ("route_tables", self._cleanup_route_tables),
            ("internet_gateways", self._cleanup_internet_gateways),
            ("egress_only_internet_gateways", self._cleanup_egress_only_internet_gateways),
            ("vpc", self._delete_vpc),
        ]

        prefix = "[DRY RUN] Would delete" if self.dry_run else "*** Deleting"
        self.logger.info(f"{prefix} default VPC [{self.vpc_id}] in {self.region}...")

        for stage, cleanup_step in cleanup_sequence:
            self.logger.debug(f"[{self.region}] Stage {stage}")
            try:
                cleanup_step(stage)
            except StageError:
                raise
            except NukeError as e:
                self.logger.error(f"[{self.region}] Error in {stage} for VPC {self.vpc_id}: {e}")
                raise StageError(self.region, stage, None, e) from e

        self.logger.info(f"[{self.region}] <<< DONE!")

    def _run_concurrently(self, stage: str, resources: Iterable[AWSResource],
                          action: Callable[[AWSResource], None]) -> None:
        failures = []
        with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
            futures = {executor.submit(action, resource): resource for resource in resources}
            for future in as_completed(futures):
                resource = futures[future]
                try:
                    future.result()
                except NukeError as e:
                    self.logger.error(f"[{self.region}] {stage}: {resource.label} failed: {e}")
                    failures.append((resource, e))

        if failures:
            resource, error = failures[0]
            raise StageError(self.region, stage, resource.resource_id, error) from error

    def _cleanup_security_groups(self, stage: str) -> None:
        security_groups: List[SecurityGroup] = self.lister.list_all("security_groups", [vpc_filter(self.vpc_id)])

        # rules first, groups may reference each other
        self._run_concurrently(stage, security_groups, lambda sg: self.sg_manager.purge_rules(sg, stage))
        self._run_concurrently(
            stage,
            [sg for sg in security_groups if not sg.is_default],
            lambda sg: self.sg_manager.delete_group(sg, stage),
        )

    def _cleanup_network_acls(self, stage: str) -> None:
        def delete_acl(acl: NetworkAcl) -> None:
            self.mutate(stage, "network ACL", acl.resource_id, acl.label,
                        "delete", "delete_network_acl", NetworkAclId=acl.resource_id)

        acls = self.lister.list_all("network_acls", [vpc_filter(self.vpc_id)])
        self._run_concurrently(stage, [acl for acl in acls if not acl.is_default], delete_acl)

    def _cleanup_endpoints(self, stage: str) -> None:
        def delete_endpoint(endpoint: VpcEndpoint) -> None:
            self.mutate(stage, "VPC endpoint", endpoint.resource_id, endpoint.label,
                        "delete", "delete_vpc_endpoints", VpcEndpointIds=[endpoint.resource_id])

        endpoints = self.lister.list_all("vpc_endpoints", [vpc_filter(self.vpc_id)])
        self._run_concurrently(stage, endpoints, delete_endpoint)

    def _lookup_route_tables(self, stage: str) -> None:
        self.route_tables = self.lister.list_all("route_tables", [vpc_filter(self.vpc_id)])
        self.logger.debug(f"[{self.region}] Found {len(self.route_tables)} route table(s)")

    def _purge_route_tables(self, stage: str) -> None:
        self._run_concurrently(stage, self.route_tables, lambda rt: self.rt_manager.purge_table(rt, stage))

    def _cleanup_subnets(self, stage: str) -> None:
        def delete_subnet(subnet: Subnet) -> None:
            self.mutate(stage, "subnet", subnet.resource_id, subnet.label,
                        "delete", "delete_subnet", SubnetId=subnet.resource_id)

        subnets = self.lister.list_all("subnets", [vpc_filter(self.vpc_id)])
        self._run_concurrently(stage, subnets, delete_subnet)

    def _cleanup_route_tables(self, stage: str) -> None:
        self._run_concurrently(
            stage,
            [rt for rt in self.route_tables if not rt.has_main_association],
            lambda rt: self.rt_manager.delete_table(rt, stage),
        )

    def _cleanup_internet_gateways(self, stage: str) -> None:
        def detach_and_delete(igw: InternetGateway) -> None:
            self.mutate(stage, "internet gateway", igw.resource_id, igw.label,
                        "detach", "detach_internet_gateway",
                        InternetGatewayId=igw.resource_id, VpcId=self.vpc_id)
            self.mutate(stage, "internet gateway", igw.resource_id, igw.label,
                        "delete", "delete_internet_gateway", InternetGatewayId=igw.resource_id)

        igws = self.lister.list_all("internet_gateways", [attachment_filter(self.vpc_id)])
        self._run_concurrently(stage, igws, detach_and_delete)

    def _cleanup_egress_only_internet_gateways(self, stage: str) -> None:
        def delete_eigw(eigw: EgressOnlyInternetGateway) -> None:
            self.mutate(stage, "egress-only internet gateway", eigw.resource_id, eigw.label,
                        "delete", "delete_egress_only_internet_gateway",
                        EgressOnlyInternetGatewayId=eigw.resource_id)

        eigws = self.lister.list_all("egress_only_internet_gateways", [attachment_filter(self.vpc_id)])
        self._run_concurrently(stage, eigws, delete_eigw)

    def _delete_vpc(self, stage: str) -> None:
        self.mutate(stage, "VPC", self.vpc_id, self.vpc.label, "delete", "delete_vpc", VpcId=self.vpc_id)
