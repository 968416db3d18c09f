# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>

from os import path
from tempfile import mkdtemp

from behave import given, then

from batch_composex.batch.batch_params import JOB_DEFINITION_T, JOB_QUEUE_T
from batch_composex.batch_composex import generate_full_template
from batch_composex.common.settings import BatchComposeXSettings
from batch_composex.compute.compute_params import COMPUTE_ENVIRONMENT_T


def here():
    return path.abspath(path.dirname(__file__))


@given("I use {file_path} as my input file")
def step_impl(context, file_path):
    """
    Function to import the input file from use-cases.

    :param context:
    :param str file_path:
    """
    cases_path = path.abspath(f"{here()}/../../../{file_path}")
    context.settings = BatchComposeXSettings(
        profile_name=getattr(context, "profile_name", None),
        **{
            BatchComposeXSettings.name_arg: "test",
            BatchComposeXSettings.command_arg: BatchComposeXSettings.render_arg,
            BatchComposeXSettings.input_file_arg: cases_path,
            BatchComposeXSettings.output_dir_arg: mkdtemp(),
            BatchComposeXSettings.format_arg: "yaml",
        },
    )


@given("I want to create the template")
def step_impl(context):
    context.root_stack = generate_full_template(context.settings)
    context.template = context.root_stack.stack_template.to_dict()


@then("the job queue uses the compute environment with order {order:d}")
def step_impl(context, order):
    queue = context.template["Resources"][JOB_QUEUE_T]["Properties"]
    assert queue["ComputeEnvironmentOrder"] == [
        {"ComputeEnvironment": {"Ref": COMPUTE_ENVIRONMENT_T}, "Order": order}
    ]


@then("the job definition runs {command} with {vcpus:d} vcpu and {memory:d} MiB")
def step_impl(context, command, vcpus, memory):
    container = context.template["Resources"][JOB_DEFINITION_T]["Properties"][
        "ContainerProperties"
    ]
    assert container["Command"] == [command]
    assert container["ResourceRequirements"] == [
        {"Type": "VCPU", "Value": str(vcpus)},
        {"Type": "MEMORY", "Value": str(memory)},
    ]


@then("the template has no compute environment")
def step_impl(context):
    assert COMPUTE_ENVIRONMENT_T not in context.template["Resources"]


@then("I render all files to verify execution")
def step_impl(context):
    context.root_stack.render(context.settings)
    assert path.exists(context.root_stack.TemplateURL)
