#  -*- coding: utf-8 -*-
# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Module to test the common functions and helpers.
"""

import logging

from pytest import raises
from troposphere import Output, Template
from troposphere.iam import Role

from batch_composex.common import logical_name
from batch_composex.common.envsubst import expandvars
from batch_composex.common.logging import LOG, set_log_level
from batch_composex.common.troposphere_tools import (
    add_outputs,
    add_resource,
    build_template,
)


def test_logical_name():
    assert logical_name("my-batch_stack.01") == "mybatchstack01"
    with raises(TypeError):
        logical_name(123)
    with raises(ValueError):
        logical_name("---")


def test_expandvars(monkeypatch):
    monkeypatch.setenv("REPOSITORY", "example")
    monkeypatch.delenv("UNSET_VARIABLE", raising=False)
    assert expandvars("RepositoryName: ${REPOSITORY}") == "RepositoryName: example"
    assert expandvars("RepositoryName: $REPOSITORY") == "RepositoryName: example"
    assert expandvars("Tag: ${UNSET_VARIABLE:-latest}") == "Tag: latest"
    assert expandvars("Tag: ${REPOSITORY:+defined}") == "Tag: defined"
    assert expandvars("Tag: ${UNSET_VARIABLE:+defined}") == "Tag: "
    assert expandvars("Tag: ${UNSET_VARIABLE}") == "Tag: ${UNSET_VARIABLE}"


def test_expandvars_skips_aws_pseudo_parameters():
    value = "${AWS::AccountId}.dkr.ecr.${AWS::Region}.amazonaws.com"
    assert expandvars(value) == value


def test_add_resource_duplicates():
    template = build_template("test")
    role = Role("TestRole", AssumeRolePolicyDocument={})
    add_resource(template, role)
    with raises(ValueError):
        add_resource(template, Role("TestRole", AssumeRolePolicyDocument={}))
    assert template.resources["TestRole"] is role


def test_add_outputs():
    template = Template()
    add_outputs(template, [Output("Test", Value="one")])
    add_outputs(template, [Output("Test", Value="two")])
    assert template.to_dict()["Outputs"]["Test"]["Value"] == "two"
    with raises(TypeError):
        add_outputs(template, ["not-an-output"])


def test_set_log_level():
    assert set_log_level("debug")
    assert LOG.level == logging.DEBUG
    assert not set_log_level("verbose")
    assert set_log_level("INFO")
    assert LOG.level == logging.INFO
