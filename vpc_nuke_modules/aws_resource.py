from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

Tags = Tuple[Tuple[str, str], ...]


def parse_tags(tags: Optional[List[Dict[str, str]]]) -> Tags:
    return tuple((tag.get("Key", ""), tag.get("Value", "")) for tag in tags or [])


def name_tag(tags: Tags) -> Optional[str]:
    """Return the value of the Name tag, if any"""
    for key, value in tags:
        if key == "Name":
            return value or None
    return None


@dataclass(frozen=True)
class AWSResource:
    """Base class for the records returned by the describe calls"""

    resource_id: str
    tags: Tags = field(default=(), compare=False)

    @property
    def name(self) -> Optional[str]:
        return name_tag(self.tags)

    @property
    def label(self) -> str:
        return f"{self.resource_id} ({self.name})" if self.name else self.resource_id

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "AWSResource":
        raise NotImplementedError


@dataclass(frozen=True)
class Vpc(AWSResource):
    is_default: bool = False
    cidr_block: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Vpc":
        return cls(
            resource_id=data["VpcId"],
            tags=parse_tags(data.get("Tags")),
            is_default=data.get("IsDefault", False),
            cidr_block=data.get("CidrBlock"),
        )


@dataclass(frozen=True)
class NetworkInterface(AWSResource):
    interface_type: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "NetworkInterface":
        return cls(
            resource_id=data["NetworkInterfaceId"],
            tags=parse_tags(data.get("TagSet")),
            interface_type=data.get("InterfaceType"),
            description=data.get("Description"),
            status=data.get("Status"),
        )


@dataclass(frozen=True)
class SecurityGroup(AWSResource):
    group_name: str = ""
    vpc_id: Optional[str] = None

    @property
    def is_default(self) -> bool:
        return self.group_name == "default"

    @property
    def label(self) -> str:
        return f"{self.resource_id} ({self.group_name})"

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "SecurityGroup":
        return cls(
            resource_id=data["GroupId"],
            tags=parse_tags(data.get("Tags")),
            group_name=data.get("GroupName", ""),
            vpc_id=data.get("VpcId"),
        )


@dataclass(frozen=True)
class SecurityGroupRule(AWSResource):
    group_id: str = ""
    is_egress: bool = False

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "SecurityGroupRule":
        return cls(
            resource_id=data["SecurityGroupRuleId"],
            tags=parse_tags(data.get("Tags")),
            group_id=data.get("GroupId", ""),
            is_egress=data.get("IsEgress", False),
        )


@dataclass(frozen=True)
class NetworkAcl(AWSResource):
    is_default: bool = False

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "NetworkAcl":
        return cls(
            resource_id=data["NetworkAclId"],
            tags=parse_tags(data.get("Tags")),
            is_default=data.get("IsDefault", False),
        )


@dataclass(frozen=True)
class VpcEndpoint(AWSResource):
    endpoint_type: Optional[str] = None

    @property
    def label(self) -> str:
        return f"{self.endpoint_type} / {super().label}"

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "VpcEndpoint":
        return cls(
            resource_id=data["VpcEndpointId"],
            tags=parse_tags(data.get("Tags")),
            endpoint_type=data.get("VpcEndpointType"),
        )


@dataclass(frozen=True)
class Route:
    destination_cidr_block: Optional[str] = None
    destination_ipv6_cidr_block: Optional[str] = None
    destination_prefix_list_id: Optional[str] = None
    gateway_id: Optional[str] = None

    @property
    def is_local(self) -> bool:
        return self.gateway_id == "local"

    def destinations(self) -> List[Tuple[str, str]]:
        candidates = [
            ("DestinationCidrBlock", self.destination_cidr_block),
            ("DestinationIpv6CidrBlock", self.destination_ipv6_cidr_block),
            ("DestinationPrefixListId", self.destination_prefix_list_id),
        ]
        return [(key, value) for key, value in candidates if value]

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Route":
        return cls(
            destination_cidr_block=data.get("DestinationCidrBlock"),
            destination_ipv6_cidr_block=data.get("DestinationIpv6CidrBlock"),
            destination_prefix_list_id=data.get("DestinationPrefixListId"),
            gateway_id=data.get("GatewayId"),
        )


@dataclass(frozen=True)
class RouteTableAssociation:
    association_id: str
    main: bool = False
    subnet_id: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "RouteTableAssociation":
        return cls(
            association_id=data["RouteTableAssociationId"],
            main=data.get("Main", False),
            subnet_id=data.get("SubnetId"),
        )


@dataclass(frozen=True)
class RouteTable(AWSResource):
    routes: Tuple[Route, ...] = ()
    associations: Tuple[RouteTableAssociation, ...] = ()

    @property
    def has_main_association(self) -> bool:
        return any(assoc.main for assoc in self.associations)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "RouteTable":
        return cls(
            resource_id=data["RouteTableId"],
            tags=parse_tags(data.get("Tags")),
            routes=tuple(Route.from_api(route) for route in data.get("Routes", [])),
            associations=tuple(
                RouteTableAssociation.from_api(assoc) for assoc in data.get("Associations", [])
            ),
        )


@dataclass(frozen=True)
class Subnet(AWSResource):
    availability_zone: Optional[str] = None
    availability_zone_id: Optional[str] = None

    @property
    def label(self) -> str:
        return f"{self.resource_id} in {self.availability_zone} / {self.availability_zone_id}" + (
            f" ({self.name})" if self.name else ""
        )

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Subnet":
        return cls(
            resource_id=data["SubnetId"],
            tags=parse_tags(data.get("Tags")),
            availability_zone=data.get("AvailabilityZone"),
            availability_zone_id=data.get("AvailabilityZoneId"),
        )


@dataclass(frozen=True)
class InternetGateway(AWSResource):
    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "InternetGateway":
        return cls(resource_id=data["InternetGatewayId"], tags=parse_tags(data.get("Tags")))


@dataclass(frozen=True)
class EgressOnlyInternetGateway(AWSResource):
    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "EgressOnlyInternetGateway":
        return cls(
            resource_id=data["EgressOnlyInternetGatewayId"],
            tags=parse_tags(data.get("Tags")),
        )
