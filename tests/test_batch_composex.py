#  -*- coding: utf-8 -*-
# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Module to test the full template generation.
"""

import json
from os import path

import placebo
import pytest

from batch_composex.batch.batch_params import JOB_DEFINITION_T, JOB_QUEUE_T
from batch_composex.batch_composex import generate_full_template
from batch_composex.compute.compute_params import COMPUTE_ENVIRONMENT_T
from batch_composex.ecr.image_publisher import ImageArtifact
from batch_composex.iam.iam_params import (
    BATCH_ROLE_T,
    INSTANCE_PROFILE_T,
    INSTANCE_ROLE_T,
    JOB_ROLE_T,
)

REGISTRY = "123456789012.dkr.ecr.ap-northeast-1.amazonaws.com"
COMPUTE_ARN = "arn:aws:batch:ap-northeast-1:123456789012:compute-environment/existing"


@pytest.fixture
def image(build_context):
    return ImageArtifact(str(build_context), "example", "v1", registry=REGISTRY)


def test_managed_template(settings_factory, content, image):
    root_stack = generate_full_template(settings_factory(content), image)
    template = root_stack.stack_template.to_dict()
    assert set(template["Resources"].keys()) == {
        BATCH_ROLE_T,
        INSTANCE_ROLE_T,
        INSTANCE_PROFILE_T,
        COMPUTE_ENVIRONMENT_T,
        JOB_QUEUE_T,
        JOB_ROLE_T,
        JOB_DEFINITION_T,
    }
    queue = template["Resources"][JOB_QUEUE_T]["Properties"]
    assert queue["ComputeEnvironmentOrder"] == [
        {"ComputeEnvironment": {"Ref": COMPUTE_ENVIRONMENT_T}, "Order": 1}
    ]
    container = template["Resources"][JOB_DEFINITION_T]["Properties"][
        "ContainerProperties"
    ]
    assert container["Image"] == image.image_uri
    outputs = template["Outputs"]
    assert outputs["ImageUri"]["Value"] == f"{REGISTRY}/example:v1"
    assert outputs["JobQueueArn"]["Value"] == {"Ref": JOB_QUEUE_T}
    assert outputs["JobQueueArn"]["Export"] == {
        "Name": {"Fn::Sub": "${AWS::StackName}::JobQueueArn"}
    }
    assert outputs["ComputeEnvironmentArn"]["Value"] == {"Ref": COMPUTE_ENVIRONMENT_T}


def test_imported_template(settings_factory, content, image):
    content["x-compute"] = {"Use": COMPUTE_ARN}
    root_stack = generate_full_template(settings_factory(content), image)
    template = root_stack.stack_template.to_dict()
    assert set(template["Resources"].keys()) == {
        JOB_QUEUE_T,
        JOB_ROLE_T,
        JOB_DEFINITION_T,
    }
    queue = template["Resources"][JOB_QUEUE_T]["Properties"]
    assert queue["ComputeEnvironmentOrder"] == [
        {"ComputeEnvironment": COMPUTE_ARN, "Order": 1}
    ]
    assert template["Outputs"]["ComputeEnvironmentArn"]["Value"] == COMPUTE_ARN


def test_template_is_deterministic(settings_factory, content, image):
    first = generate_full_template(settings_factory(content), image)
    second = generate_full_template(settings_factory(content), image)
    assert first.stack_template.to_json() == second.stack_template.to_json()


def test_template_without_published_image(settings_factory, content):
    root_stack = generate_full_template(settings_factory(content))
    template = root_stack.stack_template.to_dict()
    container = template["Resources"][JOB_DEFINITION_T]["Properties"][
        "ContainerProperties"
    ]
    assert container["Image"] == {
        "Fn::Sub": "${AWS::AccountId}.dkr.ecr.${AWS::Region}.${AWS::URLSuffix}/example:v1"
    }


def test_lookup_failure_renders_nothing(settings_factory, content, session, here):
    del content["x-vpc"]["Lookup"]
    pill = placebo.attach(session, data_path=path.join(here, "x_network_lookup_missing"))
    pill.playback()
    settings = settings_factory(content)
    with pytest.raises(LookupError):
        generate_full_template(settings)
    assert not settings.root_stack.stack_template.resources


def test_end_to_end(settings_factory, content, image, session, here):
    """
    Creates a new compute environment in vpc-1, validated against EC2, and checks the job definition
    """
    del content["x-vpc"]["Lookup"]
    pill = placebo.attach(session, data_path=path.join(here, "x_network_lookup"))
    pill.playback()
    settings = settings_factory(content)
    root_stack = generate_full_template(settings, image)
    template = json.loads(root_stack.stack_template.to_json())
    compute = template["Resources"][COMPUTE_ENVIRONMENT_T]["Properties"]
    assert compute["ComputeResources"]["Subnets"] == ["subnet-1"]
    assert compute["ComputeResources"]["SecurityGroupIds"] == ["sg-1"]
    job_definition = template["Resources"][JOB_DEFINITION_T]["Properties"]
    container = job_definition["ContainerProperties"]
    assert container["ResourceRequirements"] == [
        {"Type": "VCPU", "Value": "1"},
        {"Type": "MEMORY", "Value": "100"},
    ]
    assert container["Command"] == ["date"]
    assert container["Environment"] == [{"Name": "TZ", "Value": "Asia/Tokyo"}]
    assert container["Image"] == f"{REGISTRY}/example:v1"

    root_stack.render(settings)
    assert path.exists(path.join(settings.output_dir, "test.json"))
    assert root_stack.TemplateURL == path.join(settings.output_dir, "test.json")
