#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Builds the docker image from the local build context and publishes it to AWS ECR.

The image tag defaults to the digest of the build context, so the same sources always
produce the same tag, and an image already present in the repository is not rebuilt.
The :class:`ImageArtifact` is passed as-is to the job definition.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from batch_composex.common.settings import BatchComposeXSettings

import hashlib
from base64 import b64decode
from os import path, walk
from urllib.parse import urlparse

import docker
from compose_x_common.compose_x_common import keyisset, set_else_none
from troposphere import Sub

from batch_composex.common.logging import LOG
from batch_composex.ecr.ecr_params import (
    DEFAULT_FILE,
    DIRECTORY_KEY,
    FILE_KEY,
    IGNORED_CONTEXT_DIRS,
    REGISTRY_ID_KEY,
    REGISTRY_ID_RE,
    REPOSITORY_NAME_KEY,
    REPOSITORY_NAME_RE,
    RES_KEY,
    TAG_KEY,
    TAG_RE,
)
from batch_composex.exceptions import ImagePublishError


class ImageArtifact:
    """
    Descriptor of the image once published: the registry location and the tag.

    :ivar str directory: path to the build context
    :ivar str file: path to the build file, relative to the build context
    :ivar str repository_name: name of the ECR repository
    :ivar str tag: the image tag
    :ivar str registry_id: the account ID of the registry, if not the stack account
    :ivar str registry: the registry hostname, once known from ECR
    :ivar bool content_derived: whether the tag is the build context digest
    """

    def __init__(
        self,
        directory: str,
        repository_name: str,
        tag: str,
        file: str = DEFAULT_FILE,
        registry_id: str = None,
        registry: str = None,
        content_derived: bool = False,
    ):
        if not REPOSITORY_NAME_RE.match(repository_name):
            raise ValueError(
                f"{RES_KEY}.{REPOSITORY_NAME_KEY} - {repository_name} is not valid. Must match",
                REPOSITORY_NAME_RE.pattern,
            )
        if not TAG_RE.match(tag):
            raise ValueError(
                f"{RES_KEY}.{TAG_KEY} - {tag} is not valid. Must match", TAG_RE.pattern
            )
        if registry_id and not REGISTRY_ID_RE.match(str(registry_id)):
            raise ValueError(
                f"{RES_KEY}.{REGISTRY_ID_KEY} - {registry_id} is not a valid account ID"
            )
        self.directory = directory
        self.file = file
        self.repository_name = repository_name
        self.tag = tag
        self.registry_id = str(registry_id) if registry_id else None
        self.registry = registry
        self.content_derived = content_derived

    def __repr__(self):
        return f"{self.repository_name}:{self.tag}"

    @property
    def registry_params(self) -> dict:
        """
        Extra parameters for the ECR API calls, to target the registry of another account.
        """
        return {"registryId": self.registry_id} if self.registry_id else {}

    @property
    def repository_uri(self) -> Union[str, Sub]:
        if self.registry:
            return f"{self.registry}/{self.repository_name}"
        account = self.registry_id if self.registry_id else "${AWS::AccountId}"
        return Sub(
            f"{account}.dkr.ecr.${{AWS::Region}}.${{AWS::URLSuffix}}/{self.repository_name}"
        )

    @property
    def image_uri(self) -> Union[str, Sub]:
        """
        The image URI to use in the job definition. When the registry hostname is not known yet,
        it is resolved by CloudFormation from the registry account, the stack region and URL suffix.
        """
        if self.registry:
            return f"{self.registry}/{self.repository_name}:{self.tag}"
        account = self.registry_id if self.registry_id else "${AWS::AccountId}"
        return Sub(
            f"{account}.dkr.ecr.${{AWS::Region}}.${{AWS::URLSuffix}}"
            f"/{self.repository_name}:{self.tag}"
        )


def compute_context_digest(directory: str, file: str = DEFAULT_FILE) -> str:
    """
    Computes the SHA256 of the build context: every file relative path and content, walked in sorted order,
    followed by the build file name.

    :param str directory: path to the build context
    :param str file: the build file, relative to directory
    :return: the hex digest
    :raises FileNotFoundError: if the directory or the build file do not exist
    """
    if not path.isdir(directory):
        raise FileNotFoundError(f"{RES_KEY}.{DIRECTORY_KEY} - {directory} not found")
    if not path.isfile(path.join(directory, file)):
        raise FileNotFoundError(
            f"{RES_KEY}.{FILE_KEY} - {file} not found in {directory}"
        )
    digest = hashlib.sha256()
    for root, dirs, files in walk(directory):
        dirs[:] = sorted(_dir for _dir in dirs if _dir not in IGNORED_CONTEXT_DIRS)
        for file_name in sorted(files):
            file_path = path.join(root, file_name)
            relative_path = path.relpath(file_path, directory).replace(path.sep, "/")
            digest.update(relative_path.encode("utf-8"))
            digest.update(b"\0")
            with open(file_path, "rb") as file_fd:
                for chunk in iter(lambda: file_fd.read(65536), b""):
                    digest.update(chunk)
            digest.update(b"\0")
    digest.update(path.normpath(file).replace(path.sep, "/").encode("utf-8"))
    return digest.hexdigest()


def define_image_artifact(settings: BatchComposeXSettings) -> ImageArtifact:
    """
    Defines the image artifact from x-ecr. The tag is the one set via CLI or x-ecr.Tag,
    or the build context digest.

    :param settings: The settings for execution
    :rtype: ImageArtifact
    """
    ecr_config = set_else_none(RES_KEY, settings.compose_content)
    if not ecr_config:
        raise KeyError(f"{RES_KEY} is required to define the job image")
    for key in (DIRECTORY_KEY, REPOSITORY_NAME_KEY):
        if not keyisset(key, ecr_config):
            raise KeyError(f"{RES_KEY}.{key} is required")
    directory = ecr_config[DIRECTORY_KEY]
    if not path.isabs(directory) and settings.input_dir:
        directory = path.normpath(path.join(settings.input_dir, directory))
    file = set_else_none(FILE_KEY, ecr_config, alt_value=DEFAULT_FILE)
    tag = settings.image_tag or set_else_none(TAG_KEY, ecr_config)
    content_derived = not tag
    if content_derived:
        tag = compute_context_digest(directory, file)
        LOG.info(f"{RES_KEY} - Image tag from build context digest: {tag}")
    return ImageArtifact(
        directory,
        ecr_config[REPOSITORY_NAME_KEY],
        tag,
        file=file,
        registry_id=set_else_none(REGISTRY_ID_KEY, ecr_config),
        content_derived=content_derived,
    )


def ensure_repository(client, artifact: ImageArtifact) -> dict:
    """
    Returns the ECR repository, creating it if it does not exist yet.

    :param client: boto3 ECR client
    :param ImageArtifact artifact:
    :return: the repository description
    """
    try:
        return client.describe_repositories(
            repositoryNames=[artifact.repository_name], **artifact.registry_params
        )["repositories"][0]
    except client.exceptions.RepositoryNotFoundException:
        LOG.info(f"{RES_KEY} - Creating repository {artifact.repository_name}")
        return client.create_repository(
            repositoryName=artifact.repository_name,
            imageScanningConfiguration={"scanOnPush": True},
            **artifact.registry_params,
        )["repository"]


def image_exists(client, artifact: ImageArtifact) -> bool:
    try:
        client.describe_images(
            repositoryName=artifact.repository_name,
            imageIds=[{"imageTag": artifact.tag}],
            **artifact.registry_params,
        )
        return True
    except (
        client.exceptions.ImageNotFoundException,
        client.exceptions.RepositoryNotFoundException,
    ):
        return False


def get_registry_credentials(client, artifact: ImageArtifact) -> tuple:
    """
    Retrieves the registry credentials from the ECR authorization token

    :return: username, password, registry endpoint
    :rtype: tuple
    """
    params = {"registryIds": [artifact.registry_id]} if artifact.registry_id else {}
    auth_data = client.get_authorization_token(**params)["authorizationData"][0]
    username, password = (
        b64decode(auth_data["authorizationToken"]).decode("utf-8").split(":", 1)
    )
    return username, password, auth_data["proxyEndpoint"]


def set_registry(artifact: ImageArtifact, endpoint: str) -> None:
    """
    Sets the artifact registry hostname from the ECR endpoint. When the artifact targets
    a given registry account, the endpoint must belong to it.

    :raises ImagePublishError: if the endpoint is not in the registry account
    """
    registry = urlparse(endpoint).netloc or endpoint
    if artifact.registry_id and not registry.startswith(f"{artifact.registry_id}."):
        raise ImagePublishError(
            f"{RES_KEY} - ECR endpoint {registry} is not in registry {artifact.registry_id}"
        )
    artifact.registry = registry


def push_image(docker_client, artifact: ImageArtifact) -> None:
    """
    Pushes the tagged image and raises if the engine reports an error in the push stream.
    """
    for line in docker_client.images.push(
        artifact.repository_uri, tag=artifact.tag, stream=True, decode=True
    ):
        if keyisset("error", line):
            raise ImagePublishError(
                f"{RES_KEY} - Failed to push {artifact.image_uri}", line["error"]
            )
        if keyisset("status", line):
            LOG.debug(f"{artifact} - {line['status']}")


def publish_image(
    artifact: ImageArtifact, settings: BatchComposeXSettings, docker_client=None
) -> ImageArtifact:
    """
    Builds and pushes the image to ECR. The build is skipped only when the tag is the build
    context digest and an image with that tag already exists: an operator supplied tag
    is always rebuilt and pushed.
    Sets the artifact registry from the ECR endpoint, so the image URI is fully resolved
    before the job definition is composed.

    :param ImageArtifact artifact:
    :param settings: The settings for execution
    :param docker.DockerClient docker_client: override the client from the environment
    :return: the published artifact
    """
    client = settings.session.client("ecr")
    ensure_repository(client, artifact)
    username, password, endpoint = get_registry_credentials(client, artifact)
    set_registry(artifact, endpoint)
    if artifact.content_derived and image_exists(client, artifact):
        LOG.info(f"{RES_KEY} - {artifact.image_uri} already published. Skipping build")
        return artifact
    if docker_client is None:
        docker_client = docker.from_env()
    try:
        docker_client.login(username=username, password=password, registry=endpoint)
        LOG.info(f"{RES_KEY} - Building {artifact.image_uri} from {artifact.directory}")
        docker_client.images.build(
            path=artifact.directory,
            dockerfile=artifact.file,
            tag=artifact.image_uri,
            rm=True,
        )
        push_image(docker_client, artifact)
    except (docker.errors.BuildError, docker.errors.APIError) as error:
        LOG.error(f"{RES_KEY} - Failed to publish {artifact.image_uri}")
        raise ImagePublishError(str(error))
    LOG.info(f"{RES_KEY} - {artifact.image_uri} published successfully")
    return artifact


def assert_image_published(
    artifact: ImageArtifact, settings: BatchComposeXSettings
) -> ImageArtifact:
    """
    When publishing is skipped, the image must already be in ECR with the artifact tag.

    :raises ImagePublishError: if the image tag is not in the repository
    """
    client = settings.session.client("ecr")
    if not image_exists(client, artifact):
        raise ImagePublishError(
            f"{RES_KEY} - {artifact.repository_name}:{artifact.tag} not found in ECR"
            f"{' registry ' + artifact.registry_id if artifact.registry_id else ''}."
            " Publish it first or remove --skip-publish"
        )
    LOG.info(f"{RES_KEY} - Using existing image {artifact}")
    return artifact
