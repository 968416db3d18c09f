#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Custom exceptions for batch-compose-x
"""


class BatchComposeXException(Exception):
    """
    Top class for Batch Compose-X Exceptions
    """

    def __init__(self, msg, *args):
        super().__init__(msg, *args)


class IncompatibleOptions(BatchComposeXException):
    """
    Exception when two settings conflict, i.e. when you try to both Use an existing
    compute environment and set Properties to create a new one.
    """


class ImagePublishError(BatchComposeXException):
    """
    Exception when the docker engine reports a failure to build or push the image.
    """
