#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Settings keys and patterns for the image build and ECR repository.
"""

import re

RES_KEY = "x-ecr"

DIRECTORY_KEY = "Directory"
FILE_KEY = "File"
REPOSITORY_NAME_KEY = "RepositoryName"
TAG_KEY = "Tag"
REGISTRY_ID_KEY = "RegistryId"

DEFAULT_FILE = "Dockerfile"
IGNORED_CONTEXT_DIRS = [".git"]

REPOSITORY_NAME_RE = re.compile(
    r"^(?=.{2,256}$)(?:[a-z0-9]+(?:[._-][a-z0-9]+)*/)*[a-z0-9]+(?:[._-][a-z0-9]+)*$"
)
TAG_RE = re.compile(r"^[a-zA-Z0-9_][a-zA-Z0-9_.-]{0,127}$")
REGISTRY_ID_RE = re.compile(r"^\d{12}$")
