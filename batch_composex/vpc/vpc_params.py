# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Settings keys related to the VPC settings. Used by batch_composex.vpc and others
"""

import re

RES_KEY = "x-vpc"

VPC_ID_T = "VpcId"
SUBNET_ID_T = "SubnetId"
AZ_T = "AvailabilityZone"
ROUTE_TABLE_ID_T = "RouteTableId"
SG_ID_T = "SecurityGroupId"
LOOKUP_T = "Lookup"

REQUIRED_KEYS = [VPC_ID_T, SUBNET_ID_T, AZ_T, ROUTE_TABLE_ID_T, SG_ID_T]

VPC_ID_RE = re.compile(r"^vpc-[a-z0-9]+$")
SUBNET_ID_RE = re.compile(r"^subnet-[a-z0-9]+$")
AZ_RE = re.compile(r"^[a-z]{2}(?:-[a-z]+)+-\d[a-z]$")
ROUTE_TABLE_ID_RE = re.compile(r"^rtb-[a-z0-9]+$")
SG_ID_RE = re.compile(r"^sg-[a-z0-9]+$")

IDS_PATTERNS = {
    VPC_ID_T: VPC_ID_RE,
    SUBNET_ID_T: SUBNET_ID_RE,
    AZ_T: AZ_RE,
    ROUTE_TABLE_ID_T: ROUTE_TABLE_ID_RE,
    SG_ID_T: SG_ID_RE,
}

# EC2 error codes for identifiers that do not exist, i.e. InvalidVpcID.NotFound
NOT_FOUND_ERROR_SUFFIXES = (".NotFound", ".Malformed")
