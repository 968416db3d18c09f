#  -*- coding: utf-8 -*-
# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Functions to manage a template file and whether it should be stored in S3
"""

from os import makedirs
from os.path import abspath

from botocore.exceptions import ClientError
from troposphere import Template

from batch_composex.common import FILE_PREFIX
from batch_composex.common.logging import LOG

JSON_MIME = "application/json"
YAML_MIME = "application/x-yaml"


def upload_file(
    body,
    bucket_name,
    file_name,
    settings,
    prefix=None,
    mime=None,
):
    """Upload template_body to a file in s3 with given prefix and bucket_name

    :param body: Template body, would come from troposphere template to_json() or to_yaml()
    :type body: str
    :param bucket_name: name of the bucket to upload the file to
    :type bucket_name: str
    :param file_name: Name of the file
    :type file_name: str
    :param prefix: override default prefix for the file in S3
    :type prefix: str, optional
    :returns: url_path, the https://s3.amazonaws.com/ URL to the file
    :rtype: str
    """
    if mime is None:
        mime = JSON_MIME
    if prefix is None:
        prefix = FILE_PREFIX

    key = f"{prefix}/{file_name}"
    client = settings.session.client("s3")
    client.put_object(
        Body=body,
        Key=key,
        Bucket=bucket_name,
        ContentEncoding="utf-8",
        ContentType=mime,
        ServerSideEncryption="AES256",
    )
    return f"https://s3.amazonaws.com/{bucket_name}/{key}"


class FileArtifact:
    """
    Class to handle the template file artifact.
    It will allow to upload the content to S3 or write to local filesystem.
    It also handles CloudFormation templates validation.

    :cvar str url: The URL in S3 where the file will be uploaded to or available from.
    :cvar str body: The content of the FileArtifact
    :cvar troposphere.Template template: the CFN template
    :cvar str file_name: the base name of the file
    :cvar str mime: MIME-type of the file
    :cvar str file_path: Output file path for the FileArtifact
    """

    mime = JSON_MIME
    file_path = None

    def __init__(self, file_name, settings, template, file_format=None):
        """
        Init method for FileArtifact

        :param str file_name: Name of the file, without extension.
        :param settings: The settings for execution
        :param troposphere.Template template: The template to render
        :param str file_format: json or yaml. Defaults to the settings format
        """
        if not isinstance(template, Template):
            raise TypeError("template must be of type", Template, "got", type(template))
        if file_format is None:
            file_format = settings.format
        if not isinstance(file_format, str):
            raise TypeError("format is of type", type(file_format), "expected", str)
        self.template = template
        self.body = None
        self.url = None
        self.file_name = file_name
        self.define_file_specs(file_name, file_format, settings)
        self.file_path = f"{settings.output_dir}/{self.file_name}"

    def __repr__(self):
        return self.file_path

    def upload(self, settings):
        """
        Method to handle uploading the files to S3.
        """
        self.url = upload_file(
            body=self.body,
            settings=settings,
            bucket_name=settings.bucket_name,
            file_name=self.file_name,
            mime=self.mime,
        )
        LOG.info(f"{self.file_name} uploaded successfully to {self.url}")

    def write(self, settings):
        """
        Method to write the file to local filesystem in the output directory
        """
        makedirs(settings.output_dir, exist_ok=True)
        with open(self.file_path, "w") as template_fd:
            template_fd.write(self.body)
        LOG.info(
            f"Template {self.file_name} written successfully at {abspath(self.file_path)}"
        )

    def validate(self, settings):
        """
        Method to validate the CloudFormation template once uploaded to S3
        """
        try:
            settings.session.client("cloudformation").validate_template(
                TemplateURL=self.url
            )
            LOG.debug(f"Template {self.file_name} was validated successfully by CFN")
        except ClientError as error:
            LOG.error(error)
            LOG.error(f"Failed validation template is at {abspath(self.file_path)}")
            raise

    def define_body(self):
        """
        Method to define the body of the file artifact, based on the mime type.
        """
        if self.mime == YAML_MIME:
            self.body = self.template.to_yaml()
        else:
            self.body = self.template.to_json()

    def define_file_specs(self, file_name, file_format, settings):
        """
        Method to set the file name and mime type from the format

        :param file_name: name of the file
        :param file_format: format to use for the file.
        :param settings: The settings for execution
        """
        if file_format in settings.allowed_formats:
            self.file_name = f"{file_name}.{file_format}"
        if self.file_name.endswith(".yml") or self.file_name.endswith(".yaml"):
            self.mime = YAML_MIME
        else:
            self.mime = JSON_MIME
