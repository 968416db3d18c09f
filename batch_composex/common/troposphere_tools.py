#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Helper functions around troposphere Template manipulation, to avoid duplicates and
get consistent templates across the execution.
"""

from __future__ import annotations

from troposphere import AWSObject, Output, Template


def build_template(description=None):
    """
    Function to build a CFN template with the given description.

    :param str description: the template description
    :return: the template
    :rtype: troposphere.Template
    """
    template = Template()
    template.set_version("2010-09-09")
    template.set_description(
        description if description else "Template generated by Batch Compose-X"
    )
    return template


def add_resource(template: Template, resource: AWSObject) -> AWSObject:
    """
    Function to add resource to template. Raises if a resource with the same title
    already exists, to avoid overriding it silently.

    :param troposphere.Template template:
    :param troposphere.AWSObject resource:
    :return: the resource
    """
    if resource.title in template.resources:
        raise ValueError(
            f"Resource {resource.title} is already defined in the template"
        )
    template.add_resource(resource)
    return resource


def add_outputs(template: Template, outputs: list) -> None:
    """
    Function to add outputs to the template, overriding an output with the same title.

    :param troposphere.Template template:
    :param list[troposphere.Output] outputs:
    """
    for output in outputs:
        if not isinstance(output, Output):
            raise TypeError("Expected", Output, "got", type(output))
        if output.title in template.outputs:
            template.outputs[output.title] = output
        else:
            template.add_output(output)
