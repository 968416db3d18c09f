#  -*- coding: utf-8 -*-
# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>

from copy import deepcopy
from os import path

import boto3
import pytest

from batch_composex.common.settings import BatchComposeXSettings

REGION = "ap-northeast-1"

NETWORK = {
    "VpcId": "vpc-1",
    "SubnetId": "subnet-1",
    "AvailabilityZone": "ap-northeast-1a",
    "RouteTableId": "rtb-1",
    "SecurityGroupId": "sg-1",
}


@pytest.fixture
def here():
    return path.abspath(path.dirname(__file__))


@pytest.fixture(autouse=True)
def aws_env(monkeypatch):
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", REGION)


@pytest.fixture
def session():
    return boto3.session.Session(region_name=REGION)


@pytest.fixture
def build_context(tmp_path):
    """
    Minimal docker build context
    """
    context = tmp_path / "docker"
    context.mkdir()
    (context / "Dockerfile").write_text("FROM public.ecr.aws/amazonlinux/amazonlinux:2\n")
    (context / "run.sh").write_text("#!/bin/sh\ndate\n")
    return context


@pytest.fixture
def content(build_context):
    return {
        "x-vpc": dict(NETWORK, Lookup=False),
        "x-ecr": {
            "Directory": str(build_context),
            "RepositoryName": "example",
            "Tag": "v1",
        },
    }


@pytest.fixture
def settings_factory(session, tmp_path):
    """
    Returns a function to create the settings from the given content, for the render command.
    """

    def _settings(content, command=BatchComposeXSettings.render_arg, **kwargs):
        args = {
            BatchComposeXSettings.name_arg: "test",
            BatchComposeXSettings.command_arg: command,
            BatchComposeXSettings.output_dir_arg: str(tmp_path / "outputs"),
        }
        args.update(kwargs)
        return BatchComposeXSettings(content=deepcopy(content), session=session, **args)

    return _settings
