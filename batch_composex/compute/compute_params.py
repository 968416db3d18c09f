#  -*- coding: utf-8 -*-
# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2021 John Mille <john@compose-x.io>

"""
Compute environment settings titles and default values.

You can change the titles *values* so you like so long as you keep it [a-zA-Z0-9]
"""

import re

RES_KEY = "x-compute"

COMPUTE_ENVIRONMENT_T = "BatchCompute"
COMPUTE_ENVIRONMENT_ARN_T = "ComputeEnvironmentArn"

USE_KEY = "Use"
PROPERTIES_KEY = "Properties"

ON_DEMAND = "EC2"
SPOT = "SPOT"
RESOURCES_TYPES = [ON_DEMAND, SPOT]

DEFAULT_MIN_VCPUS = 0
DEFAULT_MAX_VCPUS = 256
DEFAULT_INSTANCE_TYPES = ["optimal"]
DEFAULT_ALLOCATION_STRATEGY = "BEST_FIT"
ALLOCATION_STRATEGIES = [
    "BEST_FIT",
    "BEST_FIT_PROGRESSIVE",
    "SPOT_CAPACITY_OPTIMIZED",
]

COMPUTE_ENVIRONMENT_ARN_RE = re.compile(
    r"^arn:aws(?:-[a-z]+)*:batch:(?P<region>[a-z0-9-]+):(?P<account_id>\d{12}):"
    r"compute-environment/(?P<name>[a-zA-Z0-9_-]{1,128})$"
)
