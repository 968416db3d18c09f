# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>

from os import environ


# -- CLEANUP FUNCTIONS:
def cleanup_settings(context):
    print("CALLED: cleanup_settings")
    if hasattr(context, "settings"):
        delattr(context, "settings")
    if hasattr(context, "root_stack"):
        delattr(context, "root_stack")


# -- HOOKS:
def before_all(context):
    environ.setdefault("AWS_DEFAULT_REGION", "ap-northeast-1")


def before_scenario(context, scenario):
    print("CALLED-HOOK: before_scenario:%s" % scenario.name)


def after_scenario(context, scenario):
    print("CALLED-HOOK: after_scenario:%s" % scenario.name)
    cleanup_settings(context)
