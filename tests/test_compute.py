#  -*- coding: utf-8 -*-
# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>

import pytest
from pytest import raises
from troposphere import Template

from batch_composex.compute.compute_environment import (
    ImportedComputeEnvironment,
    ManagedComputeEnvironment,
    resolve_compute_environment,
)
from batch_composex.compute.compute_params import COMPUTE_ENVIRONMENT_T
from batch_composex.exceptions import IncompatibleOptions
from batch_composex.iam.iam_params import (
    BATCH_ROLE_T,
    INSTANCE_PROFILE_T,
    INSTANCE_ROLE_T,
)
from batch_composex.iam.iam_roles import define_roles
from batch_composex.vpc.vpc_aws import NetworkContext

COMPUTE_ARN = (
    "arn:aws:batch:ap-northeast-1:123456789012:compute-environment/existing-compute"
)


@pytest.fixture
def network():
    return NetworkContext("vpc-1", "subnet-1", "ap-northeast-1a", "rtb-1", "sg-1")


@pytest.fixture
def roles(settings_factory, content):
    return define_roles(settings_factory(content))


def test_imported_reference_is_the_arn():
    compute = ImportedComputeEnvironment(COMPUTE_ARN)
    assert compute.mode == "imported"
    assert compute.reference == COMPUTE_ARN
    assert compute.name == "existing-compute"
    template = Template()
    compute.add_to_template(template)
    assert not template.resources


@pytest.mark.parametrize(
    "arn",
    [
        "arn:aws:batch:ap-northeast-1:123456789012:job-queue/queue",
        "existing-compute",
        "arn:aws:batch:ap-northeast-1:1234:compute-environment/existing",
    ],
)
def test_imported_invalid_arn(arn):
    with raises(ValueError):
        ImportedComputeEnvironment(arn)
    with raises(TypeError):
        ImportedComputeEnvironment(None)


def test_managed_references(network, roles):
    compute = ManagedComputeEnvironment(
        network, "sg-1", roles[INSTANCE_ROLE_T], roles[BATCH_ROLE_T]
    )
    template = Template()
    compute.add_to_template(template)
    resources = template.to_dict()["Resources"]
    props = resources[COMPUTE_ENVIRONMENT_T]["Properties"]
    assert props["Type"] == "MANAGED"
    assert props["State"] == "ENABLED"
    assert props["ServiceRole"] == {"Fn::GetAtt": [BATCH_ROLE_T, "Arn"]}
    assert props["ComputeResources"]["InstanceRole"] == {
        "Fn::GetAtt": [INSTANCE_PROFILE_T, "Arn"]
    }
    assert props["ComputeResources"]["Subnets"] == ["subnet-1"]
    assert props["ComputeResources"]["SecurityGroupIds"] == ["sg-1"]
    assert props["ComputeResources"]["Type"] == "EC2"
    assert props["ComputeResources"]["MinvCpus"] == 0
    assert props["ComputeResources"]["MaxvCpus"] == 256
    assert props["ComputeResources"]["InstanceTypes"] == ["optimal"]
    assert resources[INSTANCE_PROFILE_T]["Properties"]["Roles"] == [
        {"Ref": INSTANCE_ROLE_T}
    ]
    assert compute.reference.to_dict() == {"Ref": COMPUTE_ENVIRONMENT_T}


@pytest.mark.parametrize(
    "missing", ["network", "security_group_id", "instance_role", "service_role"]
)
def test_managed_requires_all_inputs(network, roles, missing):
    kwargs = {
        "network": network,
        "security_group_id": "sg-1",
        "instance_role": roles[INSTANCE_ROLE_T],
        "service_role": roles[BATCH_ROLE_T],
    }
    kwargs[missing] = None
    with raises(ValueError):
        ManagedComputeEnvironment(**kwargs)


@pytest.mark.parametrize(
    "properties",
    [
        {"Type": "FARGATE"},
        {"AllocationStrategy": "LOWEST_PRICE"},
        {"Type": "SPOT", "AllocationStrategy": "BEST_FIT"},
        {"AllocationStrategy": "SPOT_CAPACITY_OPTIMIZED"},
        {"MinvCpus": 8, "MaxvCpus": 4},
        {"MaxvCpus": -1},
    ],
)
def test_managed_invalid_properties(network, roles, properties):
    with raises(ValueError):
        ManagedComputeEnvironment(
            network,
            "sg-1",
            roles[INSTANCE_ROLE_T],
            roles[BATCH_ROLE_T],
            properties=properties,
        )


def test_resolve_managed_by_default(settings_factory, content):
    settings = settings_factory(content)
    compute = resolve_compute_environment(settings, define_roles(settings))
    assert isinstance(compute, ManagedComputeEnvironment)
    assert compute.properties["ComputeEnvironmentName"] == "testComputeEnvironment"
    assert compute.network.subnet_id == "subnet-1"


def test_resolve_imported(settings_factory, content):
    content["x-compute"] = {"Use": COMPUTE_ARN}
    del content["x-vpc"]
    settings = settings_factory(content)
    compute = resolve_compute_environment(settings, define_roles(settings))
    assert isinstance(compute, ImportedComputeEnvironment)
    assert compute.reference == COMPUTE_ARN


def test_resolve_imported_from_cli(settings_factory, content):
    content["x-compute"] = {"Properties": {"MaxvCpus": 16}}
    settings = settings_factory(content, ComputeEnvironmentArn=COMPUTE_ARN)
    compute = resolve_compute_environment(settings, define_roles(settings))
    assert compute.reference == COMPUTE_ARN


def test_resolve_use_and_properties(settings_factory, content):
    content["x-compute"] = {"Use": COMPUTE_ARN, "Properties": {"MaxvCpus": 16}}
    settings = settings_factory(content)
    with raises(IncompatibleOptions):
        resolve_compute_environment(settings, define_roles(settings))


def test_resolve_instance_profile_name(settings_factory, content):
    content["x-iam"] = {INSTANCE_ROLE_T: {"InstanceProfileName": "example"}}
    content["x-compute"] = {
        "Properties": {
            "ComputeEnvironmentName": "example",
            "Type": "SPOT",
            "AllocationStrategy": "SPOT_CAPACITY_OPTIMIZED",
        }
    }
    settings = settings_factory(content)
    compute = resolve_compute_environment(settings, define_roles(settings))
    profile_props = compute.instance_profile.to_dict()["Properties"]
    assert profile_props["InstanceProfileName"] == "example"
    props = compute.cfn_resource.to_dict()["Properties"]
    assert props["ComputeEnvironmentName"] == "example"
    assert props["ComputeResources"]["Type"] == "SPOT"
