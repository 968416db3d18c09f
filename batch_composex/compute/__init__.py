#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Module to resolve the AWS Batch compute environment, either by using an existing one
or by creating a new managed one with its instance profile.
"""
