#  -*- coding: utf-8 -*-
# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Module to handle the root stack. Allows to treat everything in memory before uploading
files into S3 and on disk.
"""

from troposphere import Template

from batch_composex.common import logical_name
from batch_composex.common.files import FileArtifact
from batch_composex.common.logging import LOG


class BatchComposeXStack:
    """
    Class to keep track of the root template along with the name of the file it renders to.

    :ivar str name: the stack name
    :ivar str title: the logical name of the stack
    :ivar troposphere.Template stack_template: the template object
    :ivar str TemplateURL: the path or S3 URL of the rendered template
    """

    def __init__(self, name, stack_template, file_name=None):
        if not isinstance(stack_template, Template):
            raise TypeError(
                "stack_template is", type(stack_template), "expected", Template
            )
        self.name = name
        self.title = logical_name(name)
        self.file_name = file_name if file_name else self.title
        self.stack_template = stack_template
        self.template_file = None
        self.TemplateURL = None

    def __repr__(self):
        return f"{self.title}({self.file_name})"

    def render(self, settings):
        """
        Function to use when the template is finalized: writes it to disk, uploads it to S3
        when the command requires it, and validates it with CloudFormation.
        """
        LOG.debug(f"Rendering {self.title}")
        self.template_file = FileArtifact(
            file_name=self.file_name,
            template=self.stack_template,
            settings=settings,
            file_format=settings.format,
        )
        self.template_file.define_body()
        self.template_file.write(settings)
        self.TemplateURL = self.template_file.file_path
        if settings.upload:
            self.template_file.upload(settings)
            self.TemplateURL = self.template_file.url
            LOG.debug(f"Rendered URL = {self.template_file.url}")
            self.template_file.validate(settings)
