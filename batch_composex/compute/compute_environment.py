#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
The compute environment is either imported (``x-compute.Use``, an existing compute environment ARN)
or managed (``x-compute.Properties``, created along with its instance profile).
The choice is made once, when resolving, and the rest of the execution only uses
:attr:`ComputeEnvironment.reference`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from batch_composex.common.settings import BatchComposeXSettings
    from batch_composex.iam.iam_roles import RoleBinding
    from batch_composex.vpc.vpc_aws import NetworkContext

from compose_x_common.compose_x_common import keyisset, set_else_none
from troposphere import AWS_NO_VALUE, GetAtt, Ref, Template
from troposphere.batch import ComputeEnvironment as CfnComputeEnvironment
from troposphere.batch import ComputeResources
from troposphere.iam import InstanceProfile

from batch_composex.common import logical_name
from batch_composex.common.logging import LOG
from batch_composex.common.troposphere_tools import add_resource
from batch_composex.compute.compute_params import (
    ALLOCATION_STRATEGIES,
    COMPUTE_ENVIRONMENT_ARN_RE,
    COMPUTE_ENVIRONMENT_T,
    DEFAULT_ALLOCATION_STRATEGY,
    DEFAULT_INSTANCE_TYPES,
    DEFAULT_MAX_VCPUS,
    DEFAULT_MIN_VCPUS,
    ON_DEMAND,
    PROPERTIES_KEY,
    RES_KEY,
    RESOURCES_TYPES,
    SPOT,
    USE_KEY,
)
from batch_composex.exceptions import IncompatibleOptions
from batch_composex.iam.iam_params import (
    BATCH_ROLE_T,
    INSTANCE_PROFILE_T,
    INSTANCE_ROLE_T,
    RES_KEY as IAM_KEY,
)
from batch_composex.iam.iam_roles import add_role
from batch_composex.vpc.vpc_aws import lookup_network_context


class ComputeEnvironment:
    """
    Base class for the compute environment the job queue draws capacity from.
    """

    mode = None

    @property
    def reference(self) -> Union[str, Ref]:
        raise NotImplementedError

    def add_to_template(self, template: Template) -> None:
        """Adds the resources needed for the compute environment to the template, if any"""


class ImportedComputeEnvironment(ComputeEnvironment):
    """
    Existing compute environment, used by ARN only. Nothing is created.
    """

    mode = "imported"

    def __init__(self, arn: str):
        if not isinstance(arn, str):
            raise TypeError(f"{RES_KEY}.{USE_KEY} must be a string. Got", type(arn))
        parts = COMPUTE_ENVIRONMENT_ARN_RE.match(arn)
        if not parts:
            raise ValueError(
                f"{RES_KEY}.{USE_KEY} - {arn} is not a valid compute environment ARN. Must match",
                COMPUTE_ENVIRONMENT_ARN_RE.pattern,
            )
        self.arn = arn
        self.name = parts.group("name")

    def __repr__(self):
        return f"ImportedComputeEnvironment({self.arn})"

    @property
    def reference(self) -> str:
        return self.arn


class ManagedComputeEnvironment(ComputeEnvironment):
    """
    New managed compute environment placed into the network context, with the instance role
    wrapped into an instance profile and the AWS Batch service role.

    :ivar NetworkContext network:
    :ivar str security_group_id:
    :ivar RoleBinding instance_role:
    :ivar RoleBinding service_role:
    :ivar dict properties: the compute environment settings, defaults applied
    """

    mode = "managed"

    def __init__(
        self,
        network: NetworkContext,
        security_group_id: str,
        instance_role: RoleBinding,
        service_role: RoleBinding,
        properties: dict = None,
        instance_profile_name: str = None,
    ):
        missing = [
            name
            for name, value in (
                ("network", network),
                ("security_group_id", security_group_id),
                ("instance_role", instance_role),
                ("service_role", service_role),
            )
            if not value
        ]
        if missing:
            raise ValueError(
                f"{RES_KEY} - A managed compute environment requires", missing
            )
        self.network = network
        self.security_group_id = security_group_id
        self.instance_role = instance_role
        self.service_role = service_role
        self.instance_profile_name = instance_profile_name
        self.properties = self.set_properties(properties if properties else {})
        self._instance_profile = None
        self._cfn_resource = None

    def __repr__(self):
        return f"ManagedComputeEnvironment({self.properties['ComputeEnvironmentName']})"

    @staticmethod
    def set_properties(properties: dict) -> dict:
        """
        Applies the default values to the compute environment properties and validates them.
        """
        props = {
            "ComputeEnvironmentName": set_else_none("ComputeEnvironmentName", properties),
            "Type": set_else_none("Type", properties, alt_value=ON_DEMAND),
            "MinvCpus": properties.get("MinvCpus", DEFAULT_MIN_VCPUS),
            "MaxvCpus": properties.get("MaxvCpus", DEFAULT_MAX_VCPUS),
            "InstanceTypes": set_else_none(
                "InstanceTypes", properties, alt_value=list(DEFAULT_INSTANCE_TYPES)
            ),
            "AllocationStrategy": set_else_none(
                "AllocationStrategy", properties, alt_value=DEFAULT_ALLOCATION_STRATEGY
            ),
        }
        if props["Type"] not in RESOURCES_TYPES:
            raise ValueError(
                f"{RES_KEY}.Type - {props['Type']} is not valid. Must be one of",
                RESOURCES_TYPES,
            )
        if props["AllocationStrategy"] not in ALLOCATION_STRATEGIES:
            raise ValueError(
                f"{RES_KEY}.AllocationStrategy - {props['AllocationStrategy']} is not valid. Must be one of",
                ALLOCATION_STRATEGIES,
            )
        if props["Type"] == SPOT and props["AllocationStrategy"] == "BEST_FIT":
            raise ValueError(
                f"{RES_KEY} - SPOT with BEST_FIT requires a Spot Fleet role. "
                "Use SPOT_CAPACITY_OPTIMIZED or BEST_FIT_PROGRESSIVE"
            )
        if props["Type"] == ON_DEMAND and props["AllocationStrategy"].startswith(
            "SPOT_"
        ):
            raise ValueError(
                f"{RES_KEY} - {props['AllocationStrategy']} is only valid for SPOT"
            )
        for key in ("MinvCpus", "MaxvCpus"):
            if not isinstance(props[key], int) or props[key] < 0:
                raise ValueError(f"{RES_KEY}.{key} must be a positive integer")
        if props["MinvCpus"] > props["MaxvCpus"]:
            raise ValueError(
                f"{RES_KEY} - MinvCpus ({props['MinvCpus']}) is greater than MaxvCpus ({props['MaxvCpus']})"
            )
        return props

    @property
    def instance_profile(self) -> InstanceProfile:
        if not self._instance_profile:
            self._instance_profile = InstanceProfile(
                INSTANCE_PROFILE_T,
                InstanceProfileName=self.instance_profile_name
                if self.instance_profile_name
                else Ref(AWS_NO_VALUE),
                Roles=[self.instance_role.name],
            )
        return self._instance_profile

    @property
    def cfn_resource(self) -> CfnComputeEnvironment:
        if not self._cfn_resource:
            self._cfn_resource = CfnComputeEnvironment(
                COMPUTE_ENVIRONMENT_T,
                ComputeEnvironmentName=self.properties["ComputeEnvironmentName"]
                if self.properties["ComputeEnvironmentName"]
                else Ref(AWS_NO_VALUE),
                Type="MANAGED",
                State="ENABLED",
                ServiceRole=self.service_role.arn,
                ComputeResources=ComputeResources(
                    Type=self.properties["Type"],
                    AllocationStrategy=self.properties["AllocationStrategy"],
                    MinvCpus=self.properties["MinvCpus"],
                    MaxvCpus=self.properties["MaxvCpus"],
                    InstanceTypes=self.properties["InstanceTypes"],
                    InstanceRole=GetAtt(self.instance_profile, "Arn"),
                    Subnets=self.network.subnets,
                    SecurityGroupIds=[self.security_group_id],
                ),
            )
        return self._cfn_resource

    @property
    def reference(self) -> Ref:
        return Ref(self.cfn_resource)

    def add_to_template(self, template: Template) -> None:
        add_role(template, self.service_role)
        add_role(template, self.instance_role)
        add_resource(template, self.instance_profile)
        add_resource(template, self.cfn_resource)


def resolve_compute_environment(
    settings: BatchComposeXSettings, roles: dict, network: NetworkContext = None
) -> ComputeEnvironment:
    """
    Resolves the compute environment once, from x-compute and the CLI override.

    * ``Use`` (or --compute-environment-arn, which takes precedence) -> ImportedComputeEnvironment, no side effect.
    * otherwise -> the network context is looked up and a ManagedComputeEnvironment is defined.

    :param settings: The settings for execution
    :param dict[str, RoleBinding] roles: the role bindings
    :param NetworkContext network: the network context. Looked up from x-vpc if not set
    :raises IncompatibleOptions: if both Use and Properties are set
    """
    compute_config = set_else_none(RES_KEY, settings.compose_content, alt_value={})
    if keyisset(USE_KEY, compute_config) and keyisset(PROPERTIES_KEY, compute_config):
        raise IncompatibleOptions(
            f"{RES_KEY} - {USE_KEY} and {PROPERTIES_KEY} are mutually exclusive"
        )
    arn = settings.compute_environment_arn
    if arn and compute_config:
        LOG.warning(f"{RES_KEY} - Overridden by --compute-environment-arn {arn}")
    elif not arn:
        arn = set_else_none(USE_KEY, compute_config)
    if arn:
        compute = ImportedComputeEnvironment(arn)
        LOG.info(f"{RES_KEY} - Using existing compute environment {compute.arn}")
        return compute
    if network is None:
        network = lookup_network_context(settings)
    iam_config = set_else_none(IAM_KEY, settings.compose_content, alt_value={})
    instance_role_config = set_else_none(INSTANCE_ROLE_T, iam_config, alt_value={})
    properties = set_else_none(PROPERTIES_KEY, compute_config, alt_value={})
    if not keyisset("ComputeEnvironmentName", properties):
        properties = dict(properties)
        properties["ComputeEnvironmentName"] = (
            f"{logical_name(settings.name)}ComputeEnvironment"
        )
    compute = ManagedComputeEnvironment(
        network,
        network.security_group_id,
        roles[INSTANCE_ROLE_T],
        roles[BATCH_ROLE_T],
        properties=properties,
        instance_profile_name=set_else_none(
            "InstanceProfileName", instance_role_config
        ),
    )
    LOG.info(f"{RES_KEY} - Creating new compute environment {compute}")
    return compute
