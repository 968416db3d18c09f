#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
IAM Roles needed for AWS Batch: the Batch service role, the ECS instances role and the job role.
Each role is created once with the stack and never mutated afterwards.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from batch_composex.common.settings import BatchComposeXSettings

from compose_x_common.compose_x_common import keyisset, set_else_none
from troposphere import AWS_NO_VALUE, GetAtt, Ref, Template
from troposphere.iam import Role

from batch_composex.common import logical_name
from batch_composex.common.logging import LOG
from batch_composex.common.troposphere_tools import add_resource
from batch_composex.iam import define_iam_policy, service_role_trust_policy
from batch_composex.iam.iam_params import DEFAULT_ROLES, RES_KEY


class RoleBinding:
    """
    Class to represent an IAM role trusted by an AWS service principal, with its managed policies.

    :ivar str title: logical name of the role in the template
    :ivar str role_name: the IAM RoleName, if set
    :ivar str principal: the AWS service allowed to assume the role, i.e. batch, ec2
    :ivar list managed_policies: list of the managed policies ARNs
    :ivar troposphere.iam.Role cfn_resource:
    """

    def __init__(
        self,
        title: str,
        principal: str,
        managed_policies: list,
        role_name: str = None,
        permissions_boundary: str = None,
    ):
        self.title = logical_name(title)
        if not principal or not isinstance(principal, str):
            raise ValueError(f"{self.title} - principal must be a non empty string")
        if not managed_policies:
            raise ValueError(f"{self.title} - at least one managed policy is required")
        self.principal = principal
        self.role_name = role_name
        self.managed_policies = [define_iam_policy(policy) for policy in managed_policies]
        self.permissions_boundary = (
            define_iam_policy(permissions_boundary) if permissions_boundary else None
        )
        self.cfn_resource = None

    def __repr__(self):
        return f"{self.title}({self.principal})"

    def define_cfn_resource(self) -> Role:
        """
        Creates the troposphere Role for the binding. Returns the existing one if already defined.
        """
        if self.cfn_resource:
            return self.cfn_resource
        self.cfn_resource = Role(
            self.title,
            RoleName=self.role_name if self.role_name else Ref(AWS_NO_VALUE),
            AssumeRolePolicyDocument=service_role_trust_policy(self.principal),
            ManagedPolicyArns=self.managed_policies,
            PermissionsBoundary=self.permissions_boundary
            if self.permissions_boundary
            else Ref(AWS_NO_VALUE),
        )
        return self.cfn_resource

    @property
    def arn(self) -> GetAtt:
        return GetAtt(self.define_cfn_resource(), "Arn")

    @property
    def name(self) -> Ref:
        return Ref(self.define_cfn_resource())


def define_roles(settings: BatchComposeXSettings) -> dict:
    """
    Defines the role bindings from the defaults, overridden by the x-iam settings.
    ManagedPolicyArns set in x-iam replace the default ones for that role.

    :param settings: The settings for execution
    :return: role bindings, indexed by title
    :rtype: dict[str, RoleBinding]
    """
    iam_config = set_else_none(RES_KEY, settings.compose_content, alt_value={})
    boundary = set_else_none("PermissionsBoundary", iam_config)
    roles = {}
    for title, defaults in DEFAULT_ROLES.items():
        role_config = set_else_none(title, iam_config, alt_value={})
        managed_policies = (
            role_config["ManagedPolicyArns"]
            if keyisset("ManagedPolicyArns", role_config)
            else defaults["ManagedPolicyArns"]
        )
        roles[title] = RoleBinding(
            title,
            defaults["Principal"],
            managed_policies,
            role_name=set_else_none("RoleName", role_config),
            permissions_boundary=boundary,
        )
        LOG.debug(f"{RES_KEY}.{title} - {roles[title].managed_policies}")
    return roles


def add_role(template: Template, role: RoleBinding) -> Role:
    """
    Adds the role to the template, only once.
    """
    iam_role = role.define_cfn_resource()
    if iam_role.title not in template.resources:
        add_resource(template, iam_role)
    return iam_role
