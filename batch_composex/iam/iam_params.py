#   -*- coding: utf-8 -*-
#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2021 John Mille <john@compose-x.io>

"""
Titles and AWS managed policies of the IAM roles needed by AWS Batch.
"""

RES_KEY = "x-iam"

BATCH_ROLE_T = "BatchRole"
INSTANCE_ROLE_T = "InstanceRole"
JOB_ROLE_T = "JobRole"
INSTANCE_PROFILE_T = "InstanceProfile"

BATCH_SERVICE_POLICY = "arn:aws:iam::aws:policy/service-role/AWSBatchServiceRole"
ECS_INSTANCE_POLICY = (
    "arn:aws:iam::aws:policy/service-role/AmazonEC2ContainerServiceforEC2Role"
)
ECS_TASK_EXECUTION_POLICY = (
    "arn:aws:iam::aws:policy/service-role/AmazonECSTaskExecutionRolePolicy"
)

DEFAULT_ROLES = {
    BATCH_ROLE_T: {"Principal": "batch", "ManagedPolicyArns": [BATCH_SERVICE_POLICY]},
    INSTANCE_ROLE_T: {
        "Principal": "ec2",
        "ManagedPolicyArns": [ECS_INSTANCE_POLICY],
    },
    JOB_ROLE_T: {
        "Principal": "ecs-tasks",
        "ManagedPolicyArns": [ECS_TASK_EXECUTION_POLICY],
    },
}
