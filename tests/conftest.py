import dataclasses

import pytest

from fake_ec2 import FakeEC2Client
from vpc_nuke_modules.config import NukeConfig
from vpc_nuke_modules.events import CollectingEventSink
from vpc_nuke_modules.vpc_cleaner import VPCCleaner


@pytest.fixture
def config():
    return NukeConfig(base_delay=0, max_workers=4, max_attempts=3)


@pytest.fixture
def events():
    return CollectingEventSink()


@pytest.fixture
def ec2():
    return FakeEC2Client()


@pytest.fixture
def populated_ec2():
    """Default VPC with one of everything the end-to-end teardown touches"""
    client = FakeEC2Client()
    client.add_vpc("vpc-1")
    client.add_security_group("sg-g", "vpc-1", name="web", ingress=2, egress=1)
    client.add_route_table(
        "rtb-r", "vpc-1",
        routes=[
            {"DestinationCidrBlock": "172.31.0.0/16", "GatewayId": "local"},
            {"DestinationCidrBlock": "0.0.0.0/0", "GatewayId": "igw-1"},
        ],
        associations=[{"RouteTableAssociationId": "rtbassoc-s1", "SubnetId": "subnet-1", "Main": False}],
    )
    client.add_subnet("subnet-1", "vpc-1")
    client.add_internet_gateway("igw-1", "vpc-1")
    return client


@pytest.fixture
def make_cleaner(config, events):
    def _make(client, region="eu-west-1", **overrides):
        cfg = dataclasses.replace(config, **overrides)
        cleaner = VPCCleaner(region, ec2_client=client, config=cfg, sink=events)
        cleaner.find_default_vpc()
        return cleaner

    return _make
