# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Common functions to interact with AWS CloudFormation and S3.
"""

import secrets
from string import ascii_lowercase
from time import sleep

from botocore.exceptions import ClientError
from compose_x_common.aws import get_assume_role_session
from compose_x_common.compose_x_common import keyisset
from tabulate import tabulate

from batch_composex.common.logging import LOG

CAPABILITIES = ["CAPABILITY_NAMED_IAM"]


def get_cross_role_session(session, arn, region_name=None, session_name=None):
    """
    Function to override BatchComposeXSettings session to use the given IAM role

    :param boto3.session.Session session: The original session fetching the credentials for X-Role
    :param str arn:
    :param str region_name: Name of region for session
    :param str session_name: Override name of the session
    :return: boto3 session from lookup settings
    :rtype: boto3.session.Session
    """
    if not session_name:
        session_name = "BatchComposeX@Lookup"
    try:
        return get_assume_role_session(
            session, arn, session_name=session_name, region=region_name
        )
    except ClientError:
        LOG.error(f"Failed to use the Role ARN {arn}")
        raise


def create_bucket(bucket_name, session, no_location=False):
    """
    Function that checks if the S3 bucket exists and if not attempts to create it.

    :param str bucket_name: name of the s3 bucket
    :param boto3.session.Session session: boto3 session to use
    :param bool no_location: Disable location constraint
    """
    client = session.client("s3")
    params = {
        "ACL": "private",
        "Bucket": bucket_name,
        "CreateBucketConfiguration": {"LocationConstraint": session.region_name},
    }
    if no_location or session.region_name == "us-east-1":
        del params["CreateBucketConfiguration"]
    try:
        client.create_bucket(**params)
        LOG.info(f"Bucket {bucket_name} successfully created.")
    except client.exceptions.BucketAlreadyOwnedByYou:
        LOG.debug(f"You already own the bucket {bucket_name}")
    except client.exceptions.BucketAlreadyExists:
        LOG.warning(f"Bucket {bucket_name} already exists.")
    except ClientError as error:
        if error.response["Error"]["Code"] == "InvalidLocationConstraint":
            create_bucket(bucket_name, session, True)
        else:
            LOG.error("Error whilst creating the bucket")
            LOG.error(error)
            raise


def assert_can_create_stack(client, name):
    """
    Checks whether a stack already exists or not
    """
    try:
        stack_r = client.describe_stacks(StackName=name)
        if not keyisset("Stacks", stack_r):
            return True
        stacks = stack_r["Stacks"]
        if len(stacks) != 1:
            raise LookupError("Too many stacks found with machine name", name)
        stack = stacks[0]
        if stack["StackStatus"] == "REVIEW_IN_PROGRESS":
            return stack
        return False
    except ClientError as error:
        if (
            error.response["Error"]["Code"] == "ValidationError"
            and error.response["Error"]["Message"].find("does not exist") > 0
        ):
            return True
        raise error


def assert_can_update_stack(client, name):
    """
    Checks whether the stack is in a status that allows an update
    """
    can_update_statuses = [
        "CREATE_COMPLETE",
        "ROLLBACK_COMPLETE",
        "UPDATE_COMPLETE",
        "UPDATE_ROLLBACK_COMPLETE",
    ]
    res = client.describe_stacks(StackName=name)
    if not res["Stacks"]:
        return False
    stack = res["Stacks"][0]
    LOG.info(stack["StackStatus"])
    if stack["StackStatus"] in can_update_statuses:
        return True
    return False


def validate_stack_availability(settings, root_stack):
    """
    Function to check that the template was uploaded and can be used by CloudFormation

    :param batch_composex.common.settings.BatchComposeXSettings settings:
    :param batch_composex.common.stacks.BatchComposeXStack root_stack:
    """
    if not settings.upload:
        raise RuntimeError(
            "The template was not uploaded to S3, which is required to deploy."
        )
    elif not root_stack.TemplateURL.startswith("https://"):
        raise ValueError(
            f"The URL for the stack is incorrect.: {root_stack.TemplateURL}",
            "TemplateURL must be a s3 URL",
        )


def deploy(settings, root_stack):
    """
    Function to deploy (create or update) the stack to CFN.

    :param batch_composex.common.settings.BatchComposeXSettings settings:
    :param batch_composex.common.stacks.BatchComposeXStack root_stack:
    :return: the stack ID, if created or updated
    """
    validate_stack_availability(settings, root_stack)
    client = settings.session.client("cloudformation")
    if assert_can_create_stack(client, settings.name):
        res = client.create_stack(
            StackName=settings.name,
            Capabilities=CAPABILITIES,
            TemplateURL=root_stack.TemplateURL,
            DisableRollback=settings.disable_rollback,
        )
        LOG.info(f"Stack {settings.name} successfully deployed.")
        LOG.info(res["StackId"])
        return res["StackId"]
    elif assert_can_update_stack(client, settings.name):
        LOG.warning(f"Stack {settings.name} already exists. Updating.")
        res = client.update_stack(
            StackName=settings.name,
            Capabilities=CAPABILITIES,
            TemplateURL=root_stack.TemplateURL,
            DisableRollback=settings.disable_rollback,
        )
        LOG.info(f"Stack {settings.name} successfully updating.")
        LOG.info(res["StackId"])
        return res["StackId"]
    LOG.error(f"Stack {settings.name} can neither be created nor updated.")
    return None


def get_change_set_status(client, change_set_name, settings):
    pending_statuses = [
        "CREATE_PENDING",
        "CREATE_IN_PROGRESS",
        "DELETE_PENDING",
        "DELETE_IN_PROGRESS",
        "REVIEW_IN_PROGRESS",
    ]
    success_statuses = ["CREATE_COMPLETE", "DELETE_COMPLETE"]
    failed_statuses = ["DELETE_FAILED", "FAILED"]
    ready = False
    status = None
    while not ready:
        status = client.describe_change_set(
            ChangeSetName=change_set_name, StackName=settings.name
        )
        if status["Status"] in failed_statuses:
            raise SystemExit(
                "Change set is unsuccessful",
                status["Status"],
                status.get("StatusReason"),
            )
        if status["Status"] in pending_statuses:
            print(
                "ChangeSet creation in progress. Waiting 10 seconds",
                end="\r",
                flush=True,
            )
            sleep(10)
        elif status["Status"] in success_statuses:
            ready = True

    print(
        tabulate(
            [
                [
                    change["ResourceChange"]["LogicalResourceId"],
                    change["ResourceChange"]["ResourceType"],
                    change["ResourceChange"]["Action"],
                ]
                for change in status["Changes"]
            ],
            ["LogicalResourceId", "ResourceType", "Action"],
            tablefmt="rst",
        )
    )
    return status


def plan(settings, root_stack, apply=None, cleanup=None):
    """
    Function to create a change-set, show the diff and optionally apply it.

    :param batch_composex.common.settings.BatchComposeXSettings settings:
    :param batch_composex.common.stacks.BatchComposeXStack root_stack:
    :param bool apply: apply the change set without prompting
    :param bool cleanup: when not applying, delete the change set without prompting
    """
    validate_stack_availability(settings, root_stack)
    client = settings.session.client("cloudformation")
    change_set_name = f"{settings.name}" + "".join(
        secrets.choice(ascii_lowercase) for _ in range(10)
    )
    is_new = assert_can_create_stack(client, settings.name)
    if not is_new and not assert_can_update_stack(client, settings.name):
        LOG.error(f"Stack {settings.name} can neither be created nor updated.")
        return
    client.create_change_set(
        StackName=settings.name,
        Capabilities=CAPABILITIES,
        TemplateURL=root_stack.TemplateURL,
        UsePreviousTemplate=False,
        ChangeSetType="CREATE" if is_new else "UPDATE",
        ChangeSetName=change_set_name,
    )
    status = get_change_set_status(client, change_set_name, settings)
    if not status:
        return
    if apply is None:
        apply = input("Want to apply? [yN]: ") in ["y", "Y", "YES", "Yes", "yes"]
    if apply:
        client.execute_change_set(
            ChangeSetName=change_set_name,
            StackName=settings.name,
            DisableRollback=settings.disable_rollback,
        )
        return
    if cleanup is None:
        cleanup = input("Cleanup ChangeSet ? [yN]: ") in ["y", "Y", "YES", "Yes", "yes"]
    if cleanup and is_new:
        client.delete_stack(StackName=settings.name)
    elif cleanup:
        client.delete_change_set(ChangeSetName=change_set_name, StackName=settings.name)
