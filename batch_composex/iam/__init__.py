# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>


import re

from troposphere import Join, Ref, Sub

from batch_composex.common.logging import LOG

ROLE_ARN_ARG = "RoleArn"

POLICY_RE = re.compile(
    r"((^([a-zA-Z0-9_./-]+)$)|(^(arn:aws(?:-[a-z]+)*:iam::(aws|\d{12}):policy/)[a-zA-Z0-9_./-]+$))"
)


def service_role_trust_policy(service_name: str) -> dict:
    """
    Simple function to format the trust relationship for a Role and an AWS Service
    used from lambda-my-aws/ozone

    :param str service_name: name of the AWS service allowed to assume the role, i.e. batch, ec2
    :return: policy document
    :rtype: dict
    """
    statement = {
        "Effect": "Allow",
        "Principal": {"Service": [Sub(f"{service_name}.${{AWS::URLSuffix}}")]},
        "Action": ["sts:AssumeRole"],
    }
    policy_doc = {"Version": "2012-10-17", "Statement": [statement]}
    return policy_doc


def define_iam_policy(policy):
    """
    From input, determines if the policy string is the full ARN or just the name of the policy.
    If just the name, assumes it is from the account itself, and adds the necessary ARN prefix.

    :param str policy:
    :return: the policy
    :rtype: str, troposphere.Sub
    """
    if isinstance(policy, (Sub, Ref, Join)):
        LOG.debug(f"policy {policy}")
        return policy
    if not isinstance(policy, str):
        raise TypeError("policy must be one of", (str, Sub, Ref, Join), "Got", type(policy))
    if not POLICY_RE.match(policy):
        raise ValueError(
            f"policy name {policy} does not match expected regexp",
            POLICY_RE.pattern,
        )
    if not policy.startswith("arn:"):
        return Sub(f"arn:${{AWS::Partition}}:iam::${{AWS::AccountId}}:policy/{policy}")
    return policy
