"""Artifact publisher: build the function image and push it to ECR."""

import base64
import logging
import os
import shutil

from botocore.exceptions import ClientError

from lambdadock.provisioning.aws import DeployError, Outcome, call, call_tolerating
from lambdadock.provisioning.shell import run_shell_cmd
from lambdadock.provisioning.state import exists

logger = logging.getLogger(__name__)

# ── Command builders ───────────────────────────────────────────────


def _docker_info_cmd():
    return ["docker", "info"]


def _docker_login_cmd(registry):
    """Build docker login command. The password is fed on stdin."""
    return ["docker", "login", "--username", "AWS", "--password-stdin", registry]


def _docker_build_cmd(local_tag, dockerfile="Dockerfile", context=".", platform="linux/amd64"):
    """Build docker build command for a single-platform image."""
    cmd = ["docker", "build"]
    if platform:
        cmd.extend(["--platform", platform])
    cmd.extend(["-f", dockerfile, "-t", local_tag, context])
    return cmd


def _docker_tag_cmd(local_tag, uri):
    return ["docker", "tag", local_tag, uri]


def _docker_push_cmd(uri):
    return ["docker", "push", uri]


# ── Core logic ─────────────────────────────────────────────────────


def check_prerequisites(dry_run=False):
    """Fail fast when docker is missing or its daemon is not reachable."""
    if dry_run:
        logger.info(f"[dry-run] {' '.join(_docker_info_cmd())}")
        return
    if shutil.which("docker") is None:
        raise DeployError("Docker not found. Please install Docker first.")
    rc, _, stderr = run_shell_cmd(_docker_info_cmd(), timeout=60)
    if rc != 0:
        raise DeployError(f"Docker daemon not running: {stderr.strip()}")


def ensure_repository(clients, repository, dry_run=False) -> bool:
    """Create the ECR repository unless it exists.

    Returns:
        True if the repository was created by this call.
    """
    try:
        if exists(clients, "repository", repository, dry_run=dry_run):
            logger.info(f"ECR repository '{repository}' already exists.")
            return False

        logger.info(f"Creating ECR repository '{repository}'...")
        result = call_tolerating(
            clients.ecr,
            "create_repository",
            tolerate={Outcome.ALREADY_EXISTS},
            dry_run=dry_run,
            repositoryName=repository,
            imageScanningConfiguration={"scanOnPush": True},
            imageTagMutability="MUTABLE",
        )
    except ClientError as e:
        raise DeployError(f"Failed to create ECR repository '{repository}': {e}") from e
    return result.outcome is Outcome.OK


def registry_login(clients, registry, dry_run=False):
    """Log docker in to the ECR registry using a fresh authorization token."""
    logger.info(f"Logging in to {registry}...")
    if dry_run:
        call(clients.ecr, "get_authorization_token", dry_run=True)
        run_shell_cmd(_docker_login_cmd(registry), dry_run=True)
        return

    try:
        auth = clients.ecr.get_authorization_token()["authorizationData"][0]
    except ClientError as e:
        raise DeployError(f"Failed to get ECR authorization token: {e}") from e
    # Token is base64("AWS:<password>")
    password = base64.b64decode(auth["authorizationToken"]).decode().split(":", 1)[1]

    rc, _, stderr = run_shell_cmd(_docker_login_cmd(registry), input=password, timeout=120)
    if rc != 0:
        raise DeployError(f"docker login to {registry} failed: {stderr.strip()}")


def build_image(image, settings, dry_run=False):
    """docker build + docker tag for the registry URI."""
    if not dry_run and not os.path.isfile(settings.dockerfile):
        raise DeployError(f"Dockerfile not found: {settings.dockerfile}")

    logger.info(f"Building image {image.local_tag}...")
    rc, _, stderr = run_shell_cmd(
        _docker_build_cmd(image.local_tag, settings.dockerfile, settings.context, settings.platform),
        dry_run=dry_run,
    )
    if rc != 0:
        raise DeployError(f"docker build failed: {stderr.strip()}")

    rc, _, stderr = run_shell_cmd(_docker_tag_cmd(image.local_tag, image.uri), dry_run=dry_run)
    if rc != 0:
        raise DeployError(f"docker tag failed: {stderr.strip()}")


def push_image(image, dry_run=False):
    logger.info(f"Pushing {image.uri}...")
    rc, _, stderr = run_shell_cmd(_docker_push_cmd(image.uri), dry_run=dry_run)
    if rc != 0:
        raise DeployError(f"docker push failed: {stderr.strip()}")


def publish_image(clients, image, settings, dry_run=False):
    """Ensure repository, log in, build, tag and push. Returns *image* unchanged.

    Steps:
        1. Check docker is installed and running
        2. Create the ECR repository if missing
        3. docker login with an ECR token
        4. docker build + tag
        5. docker push
    """
    check_prerequisites(dry_run=dry_run)
    ensure_repository(clients, image.repository, dry_run=dry_run)
    registry_login(clients, image.registry, dry_run=dry_run)
    build_image(image, settings, dry_run=dry_run)
    push_image(image, dry_run=dry_run)
    logger.info(f"Image published: {image.uri}")
    return image
