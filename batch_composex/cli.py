# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Console script for batch_composex.
"""

import argparse
import sys

from batch_composex import __version__
from batch_composex.batch_composex import generate_full_template
from batch_composex.common.aws import create_bucket, deploy, plan
from batch_composex.common.logging import LOG, set_log_level
from batch_composex.common.settings import BatchComposeXSettings
from batch_composex.ecr.image_publisher import (
    assert_image_published,
    define_image_artifact,
    publish_image,
)


class ArgparseHelper(argparse._HelpAction):
    """
    Used to help print top level '--help' arguments from argparse
    when used with subparsers
    """

    def __call__(self, parser, namespace, values, option_string=None):
        parser.print_help()
        print()
        subparsers_actions = [
            action
            for action in parser._actions
            if isinstance(action, argparse._SubParsersAction)
        ]
        for subparsers_action in subparsers_actions:
            for choice, subparser in list(subparsers_action.choices.items()):
                if choice in [
                    cmd["name"] for cmd in BatchComposeXSettings.active_commands
                ] or choice in [
                    cmd["name"] for cmd in BatchComposeXSettings.validation_commands
                ]:
                    print(f"Command '{choice}'")
                    print(subparser.format_usage())
        parser.exit()


def main_parser():
    """
    Console script for batch_composex.
    """
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument(
        "-h",
        "--help",
        action=ArgparseHelper,
        help="show this help message and exit",
    )

    cmd_parsers = parser.add_subparsers(
        dest=BatchComposeXSettings.command_arg, help="Command to execute."
    )
    base_command_parser = argparse.ArgumentParser(add_help=False)
    files_parser = argparse.ArgumentParser(add_help=False)
    extras_parser = argparse.ArgumentParser(add_help=False)
    files_parser.add_argument(
        "-f",
        "--file",
        dest=BatchComposeXSettings.input_file_arg,
        required=True,
        help="Path to the Batch Compose-X input file",
    )
    files_parser.add_argument(
        "--loglevel", type=str, help="Log level. Defaults to INFO", required=False
    )
    base_command_parser.add_argument(
        "-n",
        "--name",
        help="Name of your stack",
        required=True,
        type=str,
        dest=BatchComposeXSettings.name_arg,
    )
    base_command_parser.add_argument(
        "-d",
        "--output-dir",
        required=False,
        help="Output directory to write the template to.",
        type=str,
        dest=BatchComposeXSettings.output_dir_arg,
        default=BatchComposeXSettings.default_output_dir,
    )
    base_command_parser.add_argument(
        "--format",
        help="Defines the format you want to use.",
        type=str,
        dest=BatchComposeXSettings.format_arg,
        choices=BatchComposeXSettings.allowed_formats,
        default=BatchComposeXSettings.default_format,
    )
    base_command_parser.add_argument(
        "--region",
        required=False,
        dest=BatchComposeXSettings.region_arg,
        help="Specify the region you want to build for"
        "default use default region from config or environment vars",
    )
    base_command_parser.add_argument(
        "-b",
        "--bucket-name",
        type=str,
        required=False,
        help="Bucket name to upload the template to",
        dest=BatchComposeXSettings.bucket_arg,
    )
    base_command_parser.add_argument(
        "--role-arn",
        dest=BatchComposeXSettings.arn_arg,
        help="Allow you to run API calls using a specific IAM role, within same or for cross-account",
        required=False,
    )
    base_command_parser.add_argument(
        "--disable-rollback",
        dest="DisableRollback",
        help="On create/plan, disable stack automatic rollback.",
        required=False,
        action="store_true",
    )
    extras_parser.add_argument(
        "--compute-environment-arn",
        dest=BatchComposeXSettings.compute_arn_arg,
        required=False,
        help="Use an existing compute environment instead of creating a new one",
    )
    extras_parser.add_argument(
        "--image-tag",
        dest=BatchComposeXSettings.image_tag_arg,
        required=False,
        help="Tag to use for the job image. Defaults to the build context digest",
    )
    extras_parser.add_argument(
        "--skip-publish",
        dest=BatchComposeXSettings.skip_publish_arg,
        action="store_true",
        default=False,
        help="Do not build and push the job image. The image must already be in ECR",
    )
    for command in BatchComposeXSettings.active_commands:
        cmd_parsers.add_parser(
            name=command["name"],
            help=command["help"],
            parents=[base_command_parser, files_parser, extras_parser],
        )
    for command in BatchComposeXSettings.validation_commands:
        cmd_parsers.add_parser(
            name=command["name"], help=command["help"], parents=[files_parser]
        )

    for command in BatchComposeXSettings.neutral_commands:
        cmd_parsers.add_parser(name=command["name"], help=command["help"])
    return parser


def main(argv=None):
    """
    Main entry point for CLI
    :return: status code
    """
    parser = main_parser()
    if argv is None:
        argv = sys.argv[1:]
    if not argv:
        parser.print_help()
        return 0
    args = parser.parse_args(argv)
    if args.command == "version":
        print("Batch Compose-X", __version__)
        return 0
    if getattr(args, "loglevel", None) and not set_log_level(args.loglevel):
        LOG.warning(f"Log level value {args.loglevel} is invalid. Keeping INFO")
    LOG.debug(args)
    settings = BatchComposeXSettings(**vars(args))
    if args.command == BatchComposeXSettings.config_render_arg:
        print(settings.render_config())
        return 0
    LOG.debug(settings)

    if settings.upload:
        settings.set_bucket_name_from_account_id()
        if settings.bucket_name:
            create_bucket(settings.bucket_name, settings.session)
    if (settings.deploy or settings.plan) and not settings.upload:
        LOG.error(
            "You must upload the template in order to deploy. We won't be deploying."
        )
        return 1

    image_artifact = define_image_artifact(settings)
    if settings.publish:
        publish_image(image_artifact, settings)
    elif settings.upload:
        assert_image_published(image_artifact, settings)
    if settings.publish_only:
        print(image_artifact.image_uri)
        return 0

    root_stack = generate_full_template(settings, image_artifact)
    root_stack.render(settings)

    if settings.deploy:
        deploy(settings, root_stack)
    elif settings.plan:
        plan(settings, root_stack)
    return 0


if __name__ == "__main__":
    sys.exit(main())  # pragma: no cover
