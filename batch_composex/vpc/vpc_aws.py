# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2025 John Mille <john@compose-x.io>

"""
Functions to define the network context from x-vpc and validate it exists in AWS
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from batch_composex.common.settings import BatchComposeXSettings

from boto3.session import Session
from botocore.exceptions import ClientError
from compose_x_common.compose_x_common import keyisset, set_else_none

from batch_composex.common.logging import LOG
from batch_composex.vpc.vpc_params import (
    AZ_T,
    IDS_PATTERNS,
    LOOKUP_T,
    NOT_FOUND_ERROR_SUFFIXES,
    REQUIRED_KEYS,
    RES_KEY,
    ROUTE_TABLE_ID_T,
    SG_ID_T,
    SUBNET_ID_T,
    VPC_ID_T,
)


class NetworkContext:
    """
    Immutable network settings the compute environment is placed into.

    :ivar str vpc_id:
    :ivar str subnet_id:
    :ivar str availability_zone:
    :ivar str route_table_id:
    :ivar str security_group_id:
    """

    __slots__ = (
        "vpc_id",
        "subnet_id",
        "availability_zone",
        "route_table_id",
        "security_group_id",
    )

    def __init__(
        self,
        vpc_id: str,
        subnet_id: str,
        availability_zone: str,
        route_table_id: str,
        security_group_id: str,
    ):
        values = {
            VPC_ID_T: vpc_id,
            SUBNET_ID_T: subnet_id,
            AZ_T: availability_zone,
            ROUTE_TABLE_ID_T: route_table_id,
            SG_ID_T: security_group_id,
        }
        for key, value in values.items():
            if not isinstance(value, str) or not IDS_PATTERNS[key].match(value):
                raise ValueError(
                    f"{RES_KEY}.{key} - {value} is not valid. Must match",
                    IDS_PATTERNS[key].pattern,
                )
        object.__setattr__(self, "vpc_id", vpc_id)
        object.__setattr__(self, "subnet_id", subnet_id)
        object.__setattr__(self, "availability_zone", availability_zone)
        object.__setattr__(self, "route_table_id", route_table_id)
        object.__setattr__(self, "security_group_id", security_group_id)

    def __setattr__(self, key, value):
        raise AttributeError(f"{self.__class__.__name__} is immutable")

    def __eq__(self, other):
        if not isinstance(other, NetworkContext):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __hash__(self):
        return hash(tuple(self.to_dict().values()))

    def __repr__(self):
        return f"NetworkContext({self.vpc_id}, {self.subnet_id}, {self.security_group_id})"

    def to_dict(self) -> dict:
        return {
            VPC_ID_T: self.vpc_id,
            SUBNET_ID_T: self.subnet_id,
            AZ_T: self.availability_zone,
            ROUTE_TABLE_ID_T: self.route_table_id,
            SG_ID_T: self.security_group_id,
        }

    @property
    def subnets(self) -> list:
        return [self.subnet_id]


def describe_one(client, method_name: str, result_key: str, id_key: str, value: str) -> dict:
    """
    Calls the EC2 describe API for the single identifier and returns the only result.

    :raises LookupError: when the resource does not exist
    :raises botocore.exceptions.ClientError: for any other API error
    """
    try:
        results = getattr(client, method_name)(**{id_key: [value]})[result_key]
    except ClientError as error:
        code = error.response["Error"]["Code"]
        if code.endswith(NOT_FOUND_ERROR_SUFFIXES):
            raise LookupError(f"{RES_KEY} - Unable to find {value}", code)
        LOG.error(f"{RES_KEY} - Failed to describe {value}")
        LOG.error(error)
        raise
    if not results:
        raise LookupError(f"{RES_KEY} - Unable to find {value}")
    return results[0]


def validate_network_context(network: NetworkContext, session: Session) -> None:
    """
    Function to ensure that the VPC, subnet, route table and security group all exist
    and that they belong together.

    :param NetworkContext network:
    :param boto3.session.Session session:
    :raises LookupError:
    """
    client = session.client("ec2")
    describe_one(client, "describe_vpcs", "Vpcs", "VpcIds", network.vpc_id)
    subnet = describe_one(
        client, "describe_subnets", "Subnets", "SubnetIds", network.subnet_id
    )
    if subnet["VpcId"] != network.vpc_id:
        raise LookupError(
            f"{RES_KEY} - subnet {network.subnet_id} is in {subnet['VpcId']}, not in {network.vpc_id}"
        )
    if subnet["AvailabilityZone"] != network.availability_zone:
        raise LookupError(
            f"{RES_KEY} - subnet {network.subnet_id} is in {subnet['AvailabilityZone']}, "
            f"not in {network.availability_zone}"
        )
    route_table = describe_one(
        client,
        "describe_route_tables",
        "RouteTables",
        "RouteTableIds",
        network.route_table_id,
    )
    if route_table["VpcId"] != network.vpc_id:
        raise LookupError(
            f"{RES_KEY} - route table {network.route_table_id} is not in {network.vpc_id}"
        )
    security_group = describe_one(
        client,
        "describe_security_groups",
        "SecurityGroups",
        "GroupIds",
        network.security_group_id,
    )
    if security_group["VpcId"] != network.vpc_id:
        raise LookupError(
            f"{RES_KEY} - security group {network.security_group_id} is not in {network.vpc_id}"
        )
    LOG.info(f"{RES_KEY} - {network} found in AWS")


def lookup_network_context(settings: BatchComposeXSettings) -> NetworkContext:
    """
    Defines the network context from x-vpc. When Lookup is true (the default), validates
    all the identifiers exist in the account.

    :param settings: The settings for execution
    :rtype: NetworkContext
    """
    vpc_config = set_else_none(RES_KEY, settings.compose_content)
    if not vpc_config:
        raise KeyError(f"{RES_KEY} is required to create a new compute environment")
    missing = [key for key in REQUIRED_KEYS if not keyisset(key, vpc_config)]
    if missing:
        raise KeyError(f"{RES_KEY} - missing required settings", missing)
    network = NetworkContext(
        vpc_config[VPC_ID_T],
        vpc_config[SUBNET_ID_T],
        vpc_config[AZ_T],
        vpc_config[ROUTE_TABLE_ID_T],
        vpc_config[SG_ID_T],
    )
    if vpc_config.get(LOOKUP_T, True):
        validate_network_context(network, settings.session)
    else:
        LOG.info(f"{RES_KEY} - Lookup disabled. Using {network} as-is")
    return network
