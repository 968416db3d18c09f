#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Container job definition. Every job submitted against it runs the same command,
with the same environment, image and resources.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from batch_composex.common.settings import BatchComposeXSettings
    from batch_composex.ecr.image_publisher import ImageArtifact
    from batch_composex.iam.iam_roles import RoleBinding

from compose_x_common.compose_x_common import set_else_none
from troposphere import AWS_NO_VALUE, Ref, Template
from troposphere.batch import (
    ContainerProperties,
    Environment,
    JobDefinition,
    ResourceRequirement,
    RetryStrategy,
    Timeout,
)

from batch_composex.batch.batch_params import (
    DEFAULT_COMMAND,
    DEFAULT_ENVIRONMENT,
    DEFAULT_MEMORY_MIB,
    DEFAULT_RETRY_ATTEMPTS,
    DEFAULT_VCPUS,
    JOB_DEFINITION_KEY,
    JOB_DEFINITION_T,
    MAX_RETRY_ATTEMPTS,
    MIN_TIMEOUT_SECONDS,
    RES_KEY,
)
from batch_composex.common import logical_name
from batch_composex.common.logging import LOG
from batch_composex.common.troposphere_tools import add_resource
from batch_composex.iam.iam_roles import add_role


def validate_positive_int(name: str, value) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or value < 1:
        raise ValueError(
            f"{RES_KEY}.{JOB_DEFINITION_KEY}.{name} must be a positive integer. Got",
            value,
        )
    return value


def environment_value(value) -> str:
    """
    Container environment values are strings. Booleans keep their YAML spelling.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class JobDefinitionSpec:
    """
    Job definition settings. The vCPU and memory combination is not checked locally,
    AWS Batch validates it when the job definition is registered.

    :ivar str name:
    :ivar list[str] command:
    :ivar dict environment:
    :ivar ImageArtifact image:
    :ivar RoleBinding job_role:
    :ivar int vcpus:
    :ivar int memory_limit_mib:
    :ivar int retry_attempts:
    :ivar int timeout:
    """

    def __init__(
        self,
        name: str,
        command: list,
        environment: dict,
        image: ImageArtifact,
        job_role: RoleBinding,
        vcpus: int = DEFAULT_VCPUS,
        memory_limit_mib: int = DEFAULT_MEMORY_MIB,
        retry_attempts: int = DEFAULT_RETRY_ATTEMPTS,
        timeout: int = None,
    ):
        if image is None:
            raise ValueError(f"{RES_KEY}.{JOB_DEFINITION_KEY} - image is required")
        if job_role is None:
            raise ValueError(f"{RES_KEY}.{JOB_DEFINITION_KEY} - job role is required")
        if not isinstance(command, list) or not all(
            isinstance(arg, str) for arg in command
        ):
            raise TypeError(
                f"{RES_KEY}.{JOB_DEFINITION_KEY}.Command must be a list of strings"
            )
        if not command:
            raise ValueError(
                f"{RES_KEY}.{JOB_DEFINITION_KEY}.Command must not be empty"
            )
        if not isinstance(environment, dict):
            raise TypeError(
                f"{RES_KEY}.{JOB_DEFINITION_KEY}.Environment must be a mapping"
            )
        self.name = name
        self.command = list(command)
        self.environment = {
            str(key): environment_value(value) for key, value in environment.items()
        }
        self.image = image
        self.job_role = job_role
        self.vcpus = validate_positive_int("Vcpus", vcpus)
        self.memory_limit_mib = validate_positive_int("MemoryLimitMiB", memory_limit_mib)
        self.retry_attempts = validate_positive_int("RetryAttempts", retry_attempts)
        if self.retry_attempts > MAX_RETRY_ATTEMPTS:
            raise ValueError(
                f"{RES_KEY}.{JOB_DEFINITION_KEY}.RetryAttempts must be <= {MAX_RETRY_ATTEMPTS}"
            )
        if timeout is not None and (
            validate_positive_int("Timeout", timeout) < MIN_TIMEOUT_SECONDS
        ):
            raise ValueError(
                f"{RES_KEY}.{JOB_DEFINITION_KEY}.Timeout must be >= {MIN_TIMEOUT_SECONDS}"
            )
        self.timeout = timeout
        self._cfn_resource = None

    def __repr__(self):
        return f"JobDefinitionSpec({self.name}, {self.image})"

    @property
    def cfn_resource(self) -> JobDefinition:
        if not self._cfn_resource:
            self._cfn_resource = JobDefinition(
                JOB_DEFINITION_T,
                JobDefinitionName=self.name if self.name else Ref(AWS_NO_VALUE),
                Type="container",
                PlatformCapabilities=["EC2"],
                ContainerProperties=ContainerProperties(
                    Image=self.image.image_uri,
                    Command=self.command,
                    Environment=[
                        Environment(Name=key, Value=value)
                        for key, value in self.environment.items()
                    ],
                    JobRoleArn=self.job_role.arn,
                    ResourceRequirements=[
                        ResourceRequirement(Type="VCPU", Value=str(self.vcpus)),
                        ResourceRequirement(
                            Type="MEMORY", Value=str(self.memory_limit_mib)
                        ),
                    ],
                ),
                RetryStrategy=RetryStrategy(Attempts=self.retry_attempts),
                Timeout=Timeout(AttemptDurationSeconds=self.timeout)
                if self.timeout
                else Ref(AWS_NO_VALUE),
            )
        return self._cfn_resource


def define_job_definition(
    settings: BatchComposeXSettings, image: ImageArtifact, job_role: RoleBinding
) -> JobDefinitionSpec:
    """
    Defines the job definition from x-batch.JobDefinition, using the published image artifact as-is.
    """
    batch_config = set_else_none(RES_KEY, settings.compose_content, alt_value={})
    job_config = set_else_none(JOB_DEFINITION_KEY, batch_config, alt_value={})
    job_definition = JobDefinitionSpec(
        set_else_none(
            "JobDefinitionName",
            job_config,
            alt_value=f"{logical_name(settings.name)}JobDefinition",
        ),
        job_config["Command"]
        if "Command" in job_config
        else list(DEFAULT_COMMAND),
        job_config["Environment"]
        if "Environment" in job_config
        else dict(DEFAULT_ENVIRONMENT),
        image,
        job_role,
        vcpus=job_config.get("Vcpus", DEFAULT_VCPUS),
        memory_limit_mib=job_config.get("MemoryLimitMiB", DEFAULT_MEMORY_MIB),
        retry_attempts=job_config.get("RetryAttempts", DEFAULT_RETRY_ATTEMPTS),
        timeout=job_config.get("Timeout"),
    )
    LOG.info(f"{RES_KEY}.{JOB_DEFINITION_KEY} - {job_definition}")
    return job_definition


def add_job_definition(template: Template, job_definition: JobDefinitionSpec) -> JobDefinition:
    add_role(template, job_definition.job_role)
    return add_resource(template, job_definition.cfn_resource)
