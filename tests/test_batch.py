#  -*- coding: utf-8 -*-
# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Module to test the job queue and job definition.
"""

import pytest
from pytest import raises
from troposphere import Template

from batch_composex.batch.batch_params import JOB_DEFINITION_T, JOB_QUEUE_T
from batch_composex.batch.job_definition import (
    JobDefinitionSpec,
    add_job_definition,
    define_job_definition,
)
from batch_composex.batch.job_queue import JobQueueSpec, add_job_queue, define_job_queue
from batch_composex.compute.compute_environment import ImportedComputeEnvironment
from batch_composex.ecr.image_publisher import ImageArtifact
from batch_composex.iam.iam_params import JOB_ROLE_T
from batch_composex.iam.iam_roles import define_roles

REGISTRY = "123456789012.dkr.ecr.ap-northeast-1.amazonaws.com"


def compute_arn(name):
    return f"arn:aws:batch:ap-northeast-1:123456789012:compute-environment/{name}"


@pytest.fixture
def compute():
    return ImportedComputeEnvironment(compute_arn("existing"))


@pytest.fixture
def image():
    return ImageArtifact("/tmp", "example", "v1", registry=REGISTRY)


@pytest.fixture
def job_role(settings_factory, content):
    return define_roles(settings_factory(content))[JOB_ROLE_T]


def test_job_queue_single_compute(settings_factory, content, compute):
    queue = define_job_queue(settings_factory(content), compute)
    template = Template()
    add_job_queue(template, queue)
    props = template.to_dict()["Resources"][JOB_QUEUE_T]["Properties"]
    assert props["ComputeEnvironmentOrder"] == [
        {"ComputeEnvironment": compute_arn("existing"), "Order": 1}
    ]
    assert props["JobQueueName"] == "testJobQueue"
    assert props["Priority"] == 1
    assert props["State"] == "ENABLED"


def test_job_queue_stable_order():
    first = ImportedComputeEnvironment(compute_arn("first"))
    second = ImportedComputeEnvironment(compute_arn("second"))
    third = ImportedComputeEnvironment(compute_arn("third"))
    queue = JobQueueSpec("queue", [(first, 2), (second, 1), (third, 2)])
    assert [compute for compute, _ in queue.compute_environments] == [
        second,
        first,
        third,
    ]


@pytest.mark.parametrize(
    "args",
    [
        {"compute_environments": []},
        {"order": 0},
        {"order": "1"},
        {"priority": -1},
        {"state": "PAUSED"},
    ],
)
def test_job_queue_invalid(compute, args):
    order = args.pop("order", 1)
    compute_environments = args.pop("compute_environments", [(compute, order)])
    with raises(ValueError):
        JobQueueSpec("queue", compute_environments, **args)


def test_job_definition_defaults(settings_factory, content, image, job_role):
    job_definition = define_job_definition(settings_factory(content), image, job_role)
    assert job_definition.vcpus == 1
    assert job_definition.memory_limit_mib == 100
    assert job_definition.command == ["date"]
    assert job_definition.environment == {"TZ": "Asia/Tokyo"}
    assert job_definition.image is image

    template = Template()
    add_job_definition(template, job_definition)
    resources = template.to_dict()["Resources"]
    assert JOB_ROLE_T in resources
    props = resources[JOB_DEFINITION_T]["Properties"]
    assert props["Type"] == "container"
    container = props["ContainerProperties"]
    assert container["Image"] == f"{REGISTRY}/example:v1"
    assert container["Command"] == ["date"]
    assert container["Environment"] == [{"Name": "TZ", "Value": "Asia/Tokyo"}]
    assert container["JobRoleArn"] == {"Fn::GetAtt": [JOB_ROLE_T, "Arn"]}
    assert container["ResourceRequirements"] == [
        {"Type": "VCPU", "Value": "1"},
        {"Type": "MEMORY", "Value": "100"},
    ]
    assert props["RetryStrategy"] == {"Attempts": 1}


def test_job_definition_image_is_the_artifact_uri(job_role):
    unresolved = ImageArtifact("/tmp", "example", "v1")
    job_definition = JobDefinitionSpec("job", ["date"], {}, unresolved, job_role)
    container = job_definition.cfn_resource.to_dict()["Properties"][
        "ContainerProperties"
    ]
    assert container["Image"] == unresolved.image_uri.to_dict()


def test_job_definition_from_settings(settings_factory, content, image, job_role):
    content["x-batch"] = {
        "JobDefinition": {
            "JobDefinitionName": "example",
            "Command": ["python", "run.py"],
            "Environment": {"LOG_LEVEL": "debug", "WORKERS": 4, "DEBUG": True},
            "Vcpus": 2,
            "MemoryLimitMiB": 2048,
            "RetryAttempts": 3,
            "Timeout": 600,
        }
    }
    job_definition = define_job_definition(settings_factory(content), image, job_role)
    props = job_definition.cfn_resource.to_dict()["Properties"]
    assert props["JobDefinitionName"] == "example"
    assert props["Timeout"] == {"AttemptDurationSeconds": 600}
    assert props["RetryStrategy"] == {"Attempts": 3}
    assert props["ContainerProperties"]["Environment"] == [
        {"Name": "LOG_LEVEL", "Value": "debug"},
        {"Name": "WORKERS", "Value": "4"},
        {"Name": "DEBUG", "Value": "true"},
    ]


@pytest.mark.parametrize(
    "kwargs, error",
    [
        ({"vcpus": 0}, ValueError),
        ({"memory_limit_mib": -100}, ValueError),
        ({"vcpus": True}, ValueError),
        ({"retry_attempts": 11}, ValueError),
        ({"timeout": 30}, ValueError),
        ({"command": "date"}, TypeError),
        ({"command": ["echo", 1]}, TypeError),
        ({"command": []}, ValueError),
        ({"environment": ["TZ=UTC"]}, TypeError),
        ({"image": None}, ValueError),
    ],
)
def test_job_definition_invalid(image, job_role, kwargs, error):
    args = {
        "name": "job",
        "command": ["date"],
        "environment": {},
        "image": image,
        "job_role": job_role,
    }
    args.update(kwargs)
    with raises(error):
        JobDefinitionSpec(**args)
