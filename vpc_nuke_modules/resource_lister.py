import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Type

from botocore.exceptions import BotoCoreError, ClientError

from vpc_nuke_modules.aws_resource import (
    AWSResource,
    EgressOnlyInternetGateway,
    InternetGateway,
    NetworkAcl,
    NetworkInterface,
    RouteTable,
    SecurityGroup,
    SecurityGroupRule,
    Subnet,
    Vpc,
    VpcEndpoint,
)
from vpc_nuke_modules.errors import ErrorKind, TransportError, ValidationError, classify_client_error

logger = logging.getLogger(__name__)

Filter = Dict[str, Any]


@dataclass(frozen=True)
class ResourceKind:
    name: str
    operation: str
    result_key: str
    record: Type[AWSResource]


RESOURCE_KINDS: Dict[str, ResourceKind] = {
    kind.name: kind
    for kind in (
        ResourceKind("vpcs", "describe_vpcs", "Vpcs", Vpc),
        ResourceKind("network_interfaces", "describe_network_interfaces", "NetworkInterfaces", NetworkInterface),
        ResourceKind("security_groups", "describe_security_groups", "SecurityGroups", SecurityGroup),
        ResourceKind(
            "security_group_rules", "describe_security_group_rules", "SecurityGroupRules", SecurityGroupRule
        ),
        ResourceKind("network_acls", "describe_network_acls", "NetworkAcls", NetworkAcl),
        ResourceKind("vpc_endpoints", "describe_vpc_endpoints", "VpcEndpoints", VpcEndpoint),
        ResourceKind("route_tables", "describe_route_tables", "RouteTables", RouteTable),
        ResourceKind("subnets", "describe_subnets", "Subnets", Subnet),
        ResourceKind("internet_gateways", "describe_internet_gateways", "InternetGateways", InternetGateway),
        ResourceKind(
            "egress_only_internet_gateways",
            "describe_egress_only_internet_gateways",
            "EgressOnlyInternetGateways",
            EgressOnlyInternetGateway,
        ),
    )
}


def _filter(name: str, value: str) -> Filter:
    if not value:
        raise ValidationError(f"Filter {name} needs a non-empty value")
    return {"Name": name, "Values": [value]}


def vpc_filter(vpc_id: str) -> Filter:
    return _filter("vpc-id", vpc_id)


def group_filter(group_id: str) -> Filter:
    return _filter("group-id", group_id)


def attachment_filter(vpc_id: str) -> Filter:
    return _filter("attachment.vpc-id", vpc_id)


def default_vpc_filter() -> Filter:
    return _filter("is-default", "true")


@dataclass(frozen=True)
class Page:
    items: List[AWSResource]
    next_token: Optional[str] = None


class ResourceLister:
    """Paginated, filtered listing of the resources attached to a VPC"""

    def __init__(self, ec2_client: Any, region: str = ""):
        self.ec2_client = ec2_client
        self.region = region

    @staticmethod
    def get_kind(kind: str) -> ResourceKind:
        try:
            return RESOURCE_KINDS[kind]
        except KeyError:
            raise ValidationError(f"Unknown resource kind: {kind}") from None

    @staticmethod
    def _check_filters(filters: List[Filter]) -> None:
        for f in filters:
            if not isinstance(f, dict) or not f.get("Name") or not f.get("Values"):
                raise ValidationError(f"Malformed filter: {f!r}")

    def _pages(self, resource_kind: ResourceKind, filters: List[Filter],
               token: Optional[str] = None) -> Iterator[Dict[str, Any]]:
        paginator = self.ec2_client.get_paginator(resource_kind.operation)
        pagination_config = {"StartingToken": token} if token else {}
        pages = iter(paginator.paginate(Filters=filters, PaginationConfig=pagination_config))
        while True:
            try:
                page = next(pages)
            except StopIteration:
                return
            except ClientError as e:
                if classify_client_error(e) is ErrorKind.VALIDATION:
                    raise ValidationError(f"{resource_kind.operation} rejected filters {filters}: {e}") from e
                raise TransportError(f"[{self.region}] {resource_kind.operation} failed: {e}") from e
            except BotoCoreError as e:
                raise TransportError(f"[{self.region}] {resource_kind.operation} failed: {e}") from e
            yield page

    def _records(self, resource_kind: ResourceKind, page: Dict[str, Any]) -> List[AWSResource]:
        return [resource_kind.record.from_api(item) for item in page.get(resource_kind.result_key, [])]

    def fetch_page(self, kind: str, filters: List[Filter], token: Optional[str] = None) -> Page:
        """Fetch a single page; the returned next_token is None on the last page"""
        resource_kind = self.get_kind(kind)
        self._check_filters(filters)

        for page in self._pages(resource_kind, filters, token):
            return Page(items=self._records(resource_kind, page), next_token=page.get("NextToken") or None)
        return Page(items=[])

    def list_paged(self, kind: str, filters: List[Filter]) -> Iterator[AWSResource]:
        # validate eagerly, the generator body only runs on first iteration
        resource_kind = self.get_kind(kind)
        self._check_filters(filters)
        return self._iter_records(resource_kind, filters)

    def _iter_records(self, resource_kind: ResourceKind, filters: List[Filter]) -> Iterator[AWSResource]:
        for page in self._pages(resource_kind, filters):
            items = self._records(resource_kind, page)
            logger.debug(f"[{self.region}] {resource_kind.name}: page of {len(items)} item(s)")
            yield from items

    def list_all(self, kind: str, filters: List[Filter]) -> List[AWSResource]:
        return list(self.list_paged(kind, filters))

    def find_default_vpc(self) -> Optional[Vpc]:
        for vpc in self.list_paged("vpcs", [default_vpc_filter()]):
            if vpc.is_default:
                return vpc
        return None
