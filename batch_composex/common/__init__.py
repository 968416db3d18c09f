# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Most commonly used functions and constants shared across all modules.
"""

import re
from datetime import datetime as dt
from uuid import uuid4

FILE_PREFIX = f'{dt.utcnow().strftime("%Y/%m/%d/%H%M")}/{str(uuid4().hex)[:6]}'
NONALPHANUM = re.compile(r"([^a-zA-Z\d]+)")
CFN_EXPORT_DELIMITER = r"::"


def logical_name(name: str) -> str:
    """
    Returns a CloudFormation compatible logical name (alphanumerical only) for the given name

    :param str name:
    :rtype: str
    """
    if not isinstance(name, str):
        raise TypeError("name must be of type", str, "Got", type(name))
    title = NONALPHANUM.sub("", name)
    if not title:
        raise ValueError(f"{name} results in an empty logical name")
    return title
