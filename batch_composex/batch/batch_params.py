#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Titles and default values for the AWS Batch job queue and job definition.
"""

RES_KEY = "x-batch"
JOB_QUEUE_KEY = "JobQueue"
JOB_DEFINITION_KEY = "JobDefinition"

JOB_QUEUE_T = "JobQueue"
JOB_DEFINITION_T = "JobDefinition"

DEFAULT_QUEUE_PRIORITY = 1
DEFAULT_ORDER = 1
QUEUE_STATES = ["ENABLED", "DISABLED"]

DEFAULT_COMMAND = ["date"]
DEFAULT_ENVIRONMENT = {"TZ": "Asia/Tokyo"}
DEFAULT_VCPUS = 1
DEFAULT_MEMORY_MIB = 100
DEFAULT_RETRY_ATTEMPTS = 1
MAX_RETRY_ATTEMPTS = 10
MIN_TIMEOUT_SECONDS = 60
