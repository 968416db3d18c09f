# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Main module to generate the AWS Batch template from the input file.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from batch_composex.common.settings import BatchComposeXSettings
    from batch_composex.ecr.image_publisher import ImageArtifact

from troposphere import AWS_STACK_NAME, Export, Output, Ref, Sub

from batch_composex.batch.job_definition import (
    add_job_definition,
    define_job_definition,
)
from batch_composex.batch.job_queue import add_job_queue, define_job_queue
from batch_composex.common import CFN_EXPORT_DELIMITER, logical_name
from batch_composex.common.logging import LOG
from batch_composex.common.stacks import BatchComposeXStack
from batch_composex.common.troposphere_tools import add_outputs, build_template
from batch_composex.compute.compute_environment import resolve_compute_environment
from batch_composex.compute.compute_params import COMPUTE_ENVIRONMENT_ARN_T
from batch_composex.ecr.image_publisher import define_image_artifact
from batch_composex.iam.iam_params import JOB_ROLE_T
from batch_composex.iam.iam_roles import define_roles

JOB_QUEUE_ARN_T = "JobQueueArn"
JOB_DEFINITION_ARN_T = "JobDefinitionArn"
IMAGE_URI_T = "ImageUri"


def export_output(title: str, value) -> Output:
    return Output(
        title,
        Value=value,
        Export=Export(Sub(f"${{{AWS_STACK_NAME}}}{CFN_EXPORT_DELIMITER}{title}")),
    )


def create_root_stack(settings: BatchComposeXSettings) -> BatchComposeXStack:
    """
    Initializes the root stack template and BatchComposeXStack

    :param batch_composex.common.settings.BatchComposeXSettings settings: The settings for the execution
    """
    template = build_template("Root template generated via Batch Compose-X")
    return BatchComposeXStack(
        logical_name(settings.name.title()),
        stack_template=template,
        file_name=settings.name,
    )


def generate_full_template(
    settings: BatchComposeXSettings, image_artifact: ImageArtifact = None
) -> BatchComposeXStack:
    """
    Function to generate the root template with all the AWS Batch resources.

    * Defines the IAM roles
    * Resolves the compute environment, imported or managed
    * Defines the job queue bound to the compute environment
    * Defines the job definition using the image artifact as-is
    * Adds the outputs

    Any lookup failure raises, and nothing is rendered.

    :param batch_composex.common.settings.BatchComposeXSettings settings: The settings for the execution
    :param ImageArtifact image_artifact: the published image. Defined from x-ecr if not set.
    :return: the root stack
    :rtype: BatchComposeXStack
    """
    settings.root_stack = create_root_stack(settings)
    template = settings.root_stack.stack_template
    roles = define_roles(settings)
    compute = resolve_compute_environment(settings, roles)
    compute.add_to_template(template)

    queue = define_job_queue(settings, compute)
    add_job_queue(template, queue)

    if image_artifact is None:
        image_artifact = define_image_artifact(settings)
    job_definition = define_job_definition(settings, image_artifact, roles[JOB_ROLE_T])
    add_job_definition(template, job_definition)

    add_outputs(
        template,
        [
            export_output(COMPUTE_ENVIRONMENT_ARN_T, compute.reference),
            export_output(JOB_QUEUE_ARN_T, Ref(queue.cfn_resource)),
            export_output(JOB_DEFINITION_ARN_T, Ref(job_definition.cfn_resource)),
            export_output(IMAGE_URI_T, image_artifact.image_uri),
        ],
    )
    LOG.info(
        f"{settings.name} - {compute.mode} compute environment, "
        f"{len(template.resources)} resources to render"
    )
    return settings.root_stack
