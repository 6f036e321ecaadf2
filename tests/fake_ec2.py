"""
In-memory stand-in for a boto3 EC2 client.

Implements the describe/mutate calls the teardown engine uses, keeps its
own state so deletions are visible to later listings, records every call
and can be told to fail specific operations.
"""

import copy
import threading
from collections import defaultdict, deque

from botocore.exceptions import ClientError

MUTATIONS = {
    "revoke_security_group_ingress",
    "revoke_security_group_egress",
    "delete_security_group",
    "delete_network_acl",
    "delete_vpc_endpoints",
    "delete_route",
    "disassociate_route_table",
    "delete_subnet",
    "delete_route_table",
    "detach_internet_gateway",
    "delete_internet_gateway",
    "delete_egress_only_internet_gateway",
    "delete_vpc",
}


def client_error(code, operation="Operation", message=None):
    return ClientError({"Error": {"Code": code, "Message": message or code}}, operation)


class FakeEC2Client:
    def __init__(self, page_size=50):
        self.page_size = page_size
        self.lock = threading.Lock()
        self.calls = []
        self.failures = defaultdict(deque)

        self.vpcs = []
        self.network_interfaces = []
        self.security_groups = []
        self.security_group_rules = []
        self.network_acls = []
        self.vpc_endpoints = []
        self.route_tables = []
        self.subnets = []
        self.internet_gateways = []
        self.egress_only_internet_gateways = []

    # -- builders -----------------------------------------------------------

    def add_vpc(self, vpc_id, is_default=True, with_defaults=True):
        self.vpcs.append({"VpcId": vpc_id, "IsDefault": is_default, "CidrBlock": "172.31.0.0/16"})
        if with_defaults:
            self.add_security_group(f"sg-default-{vpc_id}", vpc_id, name="default")
            self.add_network_acl(f"acl-default-{vpc_id}", vpc_id, is_default=True)
            self.add_route_table(
                f"rtb-main-{vpc_id}", vpc_id,
                routes=[{"DestinationCidrBlock": "172.31.0.0/16", "GatewayId": "local"}],
                associations=[{"RouteTableAssociationId": f"rtbassoc-main-{vpc_id}", "Main": True}],
            )
        return vpc_id

    def add_network_interface(self, eni_id, vpc_id):
        self.network_interfaces.append(
            {"NetworkInterfaceId": eni_id, "VpcId": vpc_id, "InterfaceType": "interface", "Status": "in-use"}
        )

    def add_security_group(self, group_id, vpc_id, name=None, ingress=0, egress=0):
        self.security_groups.append({"GroupId": group_id, "GroupName": name or group_id, "VpcId": vpc_id})
        for i in range(ingress):
            self.add_rule(f"sgr-{group_id}-in-{i}", group_id, is_egress=False)
        for i in range(egress):
            self.add_rule(f"sgr-{group_id}-out-{i}", group_id, is_egress=True)

    def add_rule(self, rule_id, group_id, is_egress):
        self.security_group_rules.append({"SecurityGroupRuleId": rule_id, "GroupId": group_id, "IsEgress": is_egress})

    def add_network_acl(self, acl_id, vpc_id, is_default=False):
        self.network_acls.append({"NetworkAclId": acl_id, "VpcId": vpc_id, "IsDefault": is_default})

    def add_vpc_endpoint(self, endpoint_id, vpc_id, endpoint_type="Gateway"):
        self.vpc_endpoints.append({"VpcEndpointId": endpoint_id, "VpcId": vpc_id, "VpcEndpointType": endpoint_type})

    def add_route_table(self, rtb_id, vpc_id, routes=(), associations=()):
        self.route_tables.append(
            {"RouteTableId": rtb_id, "VpcId": vpc_id, "Routes": list(routes), "Associations": list(associations)}
        )

    def add_subnet(self, subnet_id, vpc_id, az="eu-west-1a"):
        self.subnets.append(
            {"SubnetId": subnet_id, "VpcId": vpc_id, "AvailabilityZone": az, "AvailabilityZoneId": "euw1-az1"}
        )

    def add_internet_gateway(self, igw_id, vpc_id):
        self.internet_gateways.append(
            {"InternetGatewayId": igw_id, "Attachments": [{"VpcId": vpc_id, "State": "available"}]}
        )

    def add_egress_only_internet_gateway(self, eigw_id, vpc_id):
        self.egress_only_internet_gateways.append(
            {"EgressOnlyInternetGatewayId": eigw_id, "Attachments": [{"VpcId": vpc_id, "State": "attached"}]}
        )

    def fail(self, operation, error, times=1):
        """Make the next `times` calls of `operation` raise `error` (a code or an exception)"""
        for _ in range(times):
            self.failures[operation].append(error)

    # -- call log -----------------------------------------------------------

    def _record(self, operation, params):
        with self.lock:
            self.calls.append((operation, params))
            pending = self.failures.get(operation)
            error = pending.popleft() if pending else None
        if error is None:
            return
        if isinstance(error, str):
            raise client_error(error, operation)
        raise error

    @property
    def mutation_calls(self):
        return [(op, params) for op, params in self.calls if op in MUTATIONS]

    @property
    def listing_calls(self):
        return [(op, params) for op, params in self.calls if op.startswith("describe_")]

    def operations(self):
        return [op for op, _ in self.calls]

    # -- describe -----------------------------------------------------------

    def get_paginator(self, operation):
        return FakePaginator(self, operation)

    FILTER_NAMES = ("vpc-id", "group-id", "attachment.vpc-id", "is-default")

    @staticmethod
    def _matches(item, name, values):
        if name == "vpc-id":
            return item.get("VpcId") in values
        if name == "group-id":
            return item.get("GroupId") in values
        if name == "attachment.vpc-id":
            return any(a.get("VpcId") in values for a in item.get("Attachments", []))
        if name == "is-default":
            return str(item.get("IsDefault", False)).lower() in values
        return False

    def _describe(self, operation, collection, result_key, Filters=(), NextToken=None, **kwargs):
        self._record(operation, {"Filters": Filters, "NextToken": NextToken})
        for f in Filters:
            if f["Name"] not in self.FILTER_NAMES:
                raise client_error("InvalidParameterValue", operation, f"Unknown filter {f['Name']}")
        with self.lock:
            items = [
                copy.deepcopy(item)
                for item in collection
                if all(self._matches(item, f["Name"], f["Values"]) for f in Filters)
            ]
        start = int(NextToken or 0)
        page = items[start:start + self.page_size]
        response = {result_key: page}
        if start + self.page_size < len(items):
            response["NextToken"] = str(start + self.page_size)
        return response

    def describe_vpcs(self, **kwargs):
        return self._describe("describe_vpcs", self.vpcs, "Vpcs", **kwargs)

    def describe_network_interfaces(self, **kwargs):
        return self._describe("describe_network_interfaces", self.network_interfaces, "NetworkInterfaces", **kwargs)

    def describe_security_groups(self, **kwargs):
        return self._describe("describe_security_groups", self.security_groups, "SecurityGroups", **kwargs)

    def describe_security_group_rules(self, **kwargs):
        return self._describe(
            "describe_security_group_rules", self.security_group_rules, "SecurityGroupRules", **kwargs
        )

    def describe_network_acls(self, **kwargs):
        return self._describe("describe_network_acls", self.network_acls, "NetworkAcls", **kwargs)

    def describe_vpc_endpoints(self, **kwargs):
        return self._describe("describe_vpc_endpoints", self.vpc_endpoints, "VpcEndpoints", **kwargs)

    def describe_route_tables(self, **kwargs):
        return self._describe("describe_route_tables", self.route_tables, "RouteTables", **kwargs)

    def describe_subnets(self, **kwargs):
        return self._describe("describe_subnets", self.subnets, "Subnets", **kwargs)

    def describe_internet_gateways(self, **kwargs):
        return self._describe("describe_internet_gateways", self.internet_gateways, "InternetGateways", **kwargs)

    def describe_egress_only_internet_gateways(self, **kwargs):
        return self._describe(
            "describe_egress_only_internet_gateways",
            self.egress_only_internet_gateways,
            "EgressOnlyInternetGateways",
            **kwargs,
        )

    # -- mutations ----------------------------------------------------------

    @staticmethod
    def _find(collection, key, value):
        for item in collection:
            if item[key] == value:
                return item
        return None

    def _remove(self, operation, collection, key, value, not_found):
        with self.lock:
            item = self._find(collection, key, value)
            if item is None:
                raise client_error(not_found, operation)
            collection.remove(item)

    def _revoke(self, operation, GroupId, SecurityGroupRuleIds, is_egress):
        self._record(operation, {"GroupId": GroupId, "SecurityGroupRuleIds": list(SecurityGroupRuleIds)})
        with self.lock:
            rules = [
                r for r in self.security_group_rules
                if r["SecurityGroupRuleId"] in SecurityGroupRuleIds and r["IsEgress"] == is_egress
            ]
            if len(rules) != len(SecurityGroupRuleIds):
                raise client_error("InvalidSecurityGroupRuleId.NotFound", operation)
            for rule in rules:
                self.security_group_rules.remove(rule)

    def revoke_security_group_ingress(self, GroupId, SecurityGroupRuleIds):
        self._revoke("revoke_security_group_ingress", GroupId, SecurityGroupRuleIds, is_egress=False)

    def revoke_security_group_egress(self, GroupId, SecurityGroupRuleIds):
        self._revoke("revoke_security_group_egress", GroupId, SecurityGroupRuleIds, is_egress=True)

    def delete_security_group(self, GroupId):
        self._record("delete_security_group", {"GroupId": GroupId})
        self._remove("delete_security_group", self.security_groups, "GroupId", GroupId, "InvalidGroup.NotFound")

    def delete_network_acl(self, NetworkAclId):
        self._record("delete_network_acl", {"NetworkAclId": NetworkAclId})
        self._remove("delete_network_acl", self.network_acls, "NetworkAclId", NetworkAclId,
                     "InvalidNetworkAclID.NotFound")

    def delete_vpc_endpoints(self, VpcEndpointIds):
        self._record("delete_vpc_endpoints", {"VpcEndpointIds": list(VpcEndpointIds)})
        unsuccessful = []
        with self.lock:
            for endpoint_id in VpcEndpointIds:
                endpoint = self._find(self.vpc_endpoints, "VpcEndpointId", endpoint_id)
                if endpoint is None:
                    unsuccessful.append({
                        "Error": {"Code": "InvalidVpcEndpoint.NotFound", "Message": "not found"},
                        "ResourceId": endpoint_id,
                    })
                else:
                    self.vpc_endpoints.remove(endpoint)
        return {"Unsuccessful": unsuccessful}

    def delete_route(self, RouteTableId, **destination):
        self._record("delete_route", dict(RouteTableId=RouteTableId, **destination))
        (key, value), = destination.items()
        with self.lock:
            table = self._find(self.route_tables, "RouteTableId", RouteTableId)
            if table is None:
                raise client_error("InvalidRouteTableID.NotFound", "delete_route")
            for route in table["Routes"]:
                if route.get(key) == value:
                    if route.get("GatewayId") == "local":
                        raise client_error("InvalidParameterValue", "delete_route", "cannot remove local route")
                    table["Routes"].remove(route)
                    return
            raise client_error("InvalidRoute.NotFound", "delete_route")

    def disassociate_route_table(self, AssociationId):
        self._record("disassociate_route_table", {"AssociationId": AssociationId})
        with self.lock:
            for table in self.route_tables:
                for assoc in table["Associations"]:
                    if assoc["RouteTableAssociationId"] == AssociationId:
                        if assoc.get("Main"):
                            raise client_error("InvalidParameterValue", "disassociate_route_table")
                        table["Associations"].remove(assoc)
                        return
            raise client_error("InvalidAssociationID.NotFound", "disassociate_route_table")

    def delete_subnet(self, SubnetId):
        self._record("delete_subnet", {"SubnetId": SubnetId})
        self._remove("delete_subnet", self.subnets, "SubnetId", SubnetId, "InvalidSubnetID.NotFound")

    def delete_route_table(self, RouteTableId):
        self._record("delete_route_table", {"RouteTableId": RouteTableId})
        with self.lock:
            table = self._find(self.route_tables, "RouteTableId", RouteTableId)
            if table is None:
                raise client_error("InvalidRouteTableID.NotFound", "delete_route_table")
            if table["Associations"]:
                raise client_error("DependencyViolation", "delete_route_table")
            self.route_tables.remove(table)

    def detach_internet_gateway(self, InternetGatewayId, VpcId):
        self._record("detach_internet_gateway", {"InternetGatewayId": InternetGatewayId, "VpcId": VpcId})
        with self.lock:
            igw = self._find(self.internet_gateways, "InternetGatewayId", InternetGatewayId)
            if igw is None:
                raise client_error("InvalidInternetGatewayID.NotFound", "detach_internet_gateway")
            attached = [a for a in igw["Attachments"] if a["VpcId"] == VpcId]
            if not attached:
                raise client_error("Gateway.NotAttached", "detach_internet_gateway")
            igw["Attachments"] = [a for a in igw["Attachments"] if a["VpcId"] != VpcId]

    def delete_internet_gateway(self, InternetGatewayId):
        self._record("delete_internet_gateway", {"InternetGatewayId": InternetGatewayId})
        with self.lock:
            igw = self._find(self.internet_gateways, "InternetGatewayId", InternetGatewayId)
            if igw is None:
                raise client_error("InvalidInternetGatewayID.NotFound", "delete_internet_gateway")
            if igw["Attachments"]:
                raise client_error("DependencyViolation", "delete_internet_gateway")
            self.internet_gateways.remove(igw)

    def delete_egress_only_internet_gateway(self, EgressOnlyInternetGatewayId):
        self._record("delete_egress_only_internet_gateway",
                     {"EgressOnlyInternetGatewayId": EgressOnlyInternetGatewayId})
        self._remove("delete_egress_only_internet_gateway", self.egress_only_internet_gateways,
                     "EgressOnlyInternetGatewayId", EgressOnlyInternetGatewayId,
                     "InvalidEgressOnlyInternetGatewayId.NotFound")

    def delete_vpc(self, VpcId):
        self._record("delete_vpc", {"VpcId": VpcId})
        with self.lock:
            vpc = self._find(self.vpcs, "VpcId", VpcId)
            if vpc is None:
                raise client_error("InvalidVpcID.NotFound", "delete_vpc")
            blockers = (
                [s for s in self.subnets if s["VpcId"] == VpcId]
                + [g for g in self.security_groups if g["VpcId"] == VpcId and g["GroupName"] != "default"]
                + [i for i in self.internet_gateways if any(a["VpcId"] == VpcId for a in i["Attachments"])]
                + [e for e in self.vpc_endpoints if e["VpcId"] == VpcId]
                + [t for t in self.route_tables
                   if t["VpcId"] == VpcId and not any(a.get("Main") for a in t["Associations"])]
            )
            if blockers:
                raise client_error("DependencyViolation", "delete_vpc")
            self.vpcs.remove(vpc)
            self.security_groups[:] = [g for g in self.security_groups if g["VpcId"] != VpcId]
            self.network_acls[:] = [a for a in self.network_acls if a["VpcId"] != VpcId]
            self.route_tables[:] = [t for t in self.route_tables if t["VpcId"] != VpcId]


class FakePaginator:
    """Follows NextToken the way a botocore paginator does, one describe call per page"""

    def __init__(self, client, operation):
        self.client = client
        self.operation = operation

    def paginate(self, Filters=(), PaginationConfig=None):
        token = (PaginationConfig or {}).get("StartingToken")
        while True:
            page = getattr(self.client, self.operation)(Filters=Filters, NextToken=token)
            yield page
            token = page.get("NextToken")
            if not token:
                return
