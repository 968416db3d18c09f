# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Module for the BatchComposeXSettings class
"""

from __future__ import annotations

from copy import deepcopy
from datetime import datetime as dt
from json import loads
from os import getcwd, path

import boto3
import jsonschema
import yaml
from botocore.exceptions import ClientError
from cfn_flip.yaml_dumper import LongCleanDumper
from compose_x_common.aws import get_account_id, validate_iam_role_arn
from compose_x_common.compose_x_common import keyisset, set_else_none
from importlib_resources import files as pkg_files

from batch_composex.common.aws import get_cross_role_session
from batch_composex.common.envsubst import expandvars
from batch_composex.common.logging import LOG
from batch_composex.iam import ROLE_ARN_ARG


class BatchComposeXSettings:
    """
    Class to handle the settings to use for Batch Compose-X.

    :ivar dict compose_content: the interpolated and validated input content
    :ivar boto3.session.Session session: the session used for all API calls
    :ivar BatchComposeXStack root_stack:
    """

    name_arg = "Name"
    region_arg = "RegionName"
    arn_arg = ROLE_ARN_ARG

    deploy_arg = "up"
    render_arg = "render"
    create_arg = "create"
    plan_arg = "plan"
    publish_arg = "publish"
    config_render_arg = "config"
    command_arg = "command"

    bucket_arg = "BucketName"
    input_file_arg = "BatchComposeXFile"
    output_dir_arg = "OutputDirectory"
    format_arg = "TemplateFormat"
    default_format = "json"
    allowed_formats = ["json", "yaml"]

    compute_arn_arg = "ComputeEnvironmentArn"
    image_tag_arg = "ImageTag"
    skip_publish_arg = "SkipPublish"

    default_output_dir = f"/tmp/{dt.utcnow().strftime('%s')}"

    active_commands = [
        {
            "name": deploy_arg,
            "help": "Generates & Validates the CFN template, Creates/Updates stack in CFN",
        },
        {
            "name": render_arg,
            "help": "Generates the CFN template locally. No upload to S3, no AWS change",
        },
        {
            "name": create_arg,
            "help": "Generates & Validates the CFN template locally. Uploads it to S3",
        },
        {
            "name": plan_arg,
            "help": "Creates a change-set to show the diff prior to an update",
        },
        {
            "name": publish_arg,
            "help": "Builds and pushes the job image to AWS ECR only",
        },
    ]
    validation_commands = [
        {
            "name": config_render_arg,
            "help": "Renders the input file, interpolated and validated",
        }
    ]
    neutral_commands = [{"name": "version", "help": "Batch Compose-X Version"}]
    all_commands = active_commands + validation_commands + neutral_commands

    def __init__(self, content=None, profile_name=None, session=None, **kwargs):
        """
        Class to init the configuration

        :param dict content: input content to use instead of reading the input file
        :param str profile_name: Name of a profile configured in .aws/config
        :param boto3.session.Session session: The session to override the API calls with
        """
        self.__args = deepcopy(kwargs)
        self.session = boto3.session.Session()
        self.override_session(session, profile_name, kwargs)
        self.aws_region = (
            kwargs[self.region_arg]
            if keyisset(self.region_arg, kwargs)
            else self.session.region_name
        )
        self.bucket_name = set_else_none(self.bucket_arg, kwargs)
        self.account_id = None
        self.name = set_else_none(self.name_arg, kwargs)
        self.output_dir = self.default_output_dir
        self.format = self.default_format

        self.deploy = False
        self.plan = False
        self.publish_only = False
        self.upload = False
        self.parse_command(kwargs)

        self.input_file = set_else_none(self.input_file_arg, kwargs)
        self.compose_content = {}
        self.set_content(kwargs, content)
        self.set_output_settings(kwargs)
        self.root_stack = None

    def __repr__(self):
        return f"BatchComposeXSettings({self.name}, {self.aws_region})"

    @property
    def disable_rollback(self) -> bool:
        return bool(set_else_none("DisableRollback", self.__args, alt_value=False))

    @property
    def compute_environment_arn(self):
        return set_else_none(self.compute_arn_arg, self.__args)

    @property
    def image_tag(self):
        return set_else_none(self.image_tag_arg, self.__args)

    @property
    def skip_publish(self) -> bool:
        return keyisset(self.skip_publish_arg, self.__args)

    @property
    def publish(self) -> bool:
        """
        Whether the image is built and pushed before the template is composed.
        render never publishes, so the template is generated without any AWS side effect.
        """
        if self.publish_only:
            return True
        return self.upload and not self.skip_publish

    @property
    def input_dir(self) -> str:
        """
        Directory relative paths of the input file are resolved from.
        """
        if self.input_file:
            return path.dirname(path.abspath(self.input_file))
        return getcwd()

    def set_content(self, kwargs, content=None):
        """
        Method to initialize the input content, from content or from the input file.
        The environment variables are interpolated before YAML parsing.

        :param dict kwargs:
        :param dict content:
        """
        if content is None:
            if not keyisset(self.input_file_arg, kwargs):
                raise KeyError(
                    "An input file is required", self.input_file_arg, kwargs.keys()
                )
            with open(kwargs[self.input_file_arg]) as input_fd:
                content = yaml.safe_load(expandvars(input_fd.read()))
        if not isinstance(content, dict):
            raise TypeError("Input content must be of type", dict, "Got", type(content))
        self.compose_content = deepcopy(content)
        source = pkg_files("batch_composex").joinpath("specs/batch-compose-x.spec.json")
        LOG.info(f"Validating against input schema {source}")
        jsonschema.validate(self.compose_content, loads(source.read_text()))

    def render_config(self) -> str:
        """
        Returns the input content, once interpolated and validated, as YAML
        """
        return yaml.dump(self.compose_content, Dumper=LongCleanDumper)

    def parse_command(self, kwargs):
        """
        Method to analyze the command and set execution settings accordingly.

        :param dict kwargs:
        """
        command = kwargs[self.command_arg]
        command_names = [cmd["name"] for cmd in self.all_commands]
        if command not in command_names:
            raise ValueError(f"{command} is not valid. Must be one of", command_names)
        if command == self.deploy_arg:
            self.deploy = True
            self.upload = True
        elif command == self.plan_arg:
            self.plan = True
            self.upload = True
        elif command == self.create_arg:
            self.upload = True
        elif command == self.publish_arg:
            self.publish_only = True

    def override_session(self, session, profile_name, kwargs):
        """
        Method to set the session based on input params

        :param boto3.session.Session session: The session to override the API calls with
        :param str profile_name: Name of a profile configured in .aws/config
        :param dict kwargs: CLI kwargs
        """
        if profile_name and not session:
            self.session = boto3.session.Session(profile_name=profile_name)
        elif session and not (profile_name or keyisset(self.arn_arg, kwargs)):
            self.session = session
        if keyisset(self.arn_arg, kwargs):
            validate_iam_role_arn(arn=kwargs[self.arn_arg])
            self.session = get_cross_role_session(
                session if session else self.session,
                kwargs[self.arn_arg],
                region_name=set_else_none(self.region_arg, kwargs),
                session_name=f"BatchComposeXSettings@{kwargs[self.command_arg]}",
            )

    def set_output_settings(self, kwargs):
        """
        Method to set the output settings based on kwargs
        """
        self.format = self.default_format
        if (
            keyisset(self.format_arg, kwargs)
            and kwargs[self.format_arg] in self.allowed_formats
        ):
            self.format = kwargs[self.format_arg]

        self.output_dir = (
            kwargs[self.output_dir_arg]
            if keyisset(self.output_dir_arg, kwargs)
            else self.default_output_dir
        )

    def set_bucket_name_from_account_id(self):
        """
        Defines the default bucket name to use from the AWS Account ID
        """
        if self.bucket_name and isinstance(self.bucket_name, str):
            return
        if self.account_id is None:
            try:
                self.account_id = get_account_id(session=self.session)
                self.bucket_name = (
                    f"batch-compose-x-{self.account_id}-{self.aws_region}"
                )
            except ClientError as error:
                code = error.response["Error"]["Code"]
                message = error.response["Error"]["Message"]
                if code == "ExpiredToken":
                    LOG.error(message)
                    LOG.warning(
                        "Due to credentials error, we won't attempt to upload to S3."
                    )
                else:
                    LOG.error(error)
                self.bucket_name = None
                self.upload = False
