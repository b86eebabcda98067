"""Unit tests for provisioning.publish: docker command builders, ECR repository and login."""

import base64
from unittest.mock import patch

import pytest

from lambdadock.config import ImageSettings
from lambdadock.provisioning.aws import DeployError
from lambdadock.provisioning.publish import (
    _docker_build_cmd,
    _docker_login_cmd,
    _docker_push_cmd,
    _docker_tag_cmd,
    build_image,
    ensure_repository,
    publish_image,
    registry_login,
)


# ── Command builders ────────────────────────────────────────────


def test_docker_build_cmd():
    assert _docker_build_cmd("repo:latest") == [
        "docker", "build", "--platform", "linux/amd64", "-f", "Dockerfile", "-t", "repo:latest", ".",
    ]


def test_docker_build_cmd_without_platform():
    cmd = _docker_build_cmd("repo:v1", dockerfile="docker/Lambda", context="app", platform=None)
    assert cmd == ["docker", "build", "-f", "docker/Lambda", "-t", "repo:v1", "app"]


def test_docker_login_cmd_reads_stdin():
    cmd = _docker_login_cmd("1.dkr.ecr.us-east-1.amazonaws.com")
    assert "--password-stdin" in cmd
    assert cmd[-1] == "1.dkr.ecr.us-east-1.amazonaws.com"


def test_docker_tag_and_push_cmds(image):
    assert _docker_tag_cmd("screenshot-api:latest", image.uri) == ["docker", "tag", "screenshot-api:latest", image.uri]
    assert _docker_push_cmd(image.uri) == ["docker", "push", image.uri]


# ── ECR ─────────────────────────────────────────────────────────


def test_ensure_repository_exists(clients):
    clients.ecr.describe_repositories.return_value = {"repositories": [{"repositoryName": "repo"}]}
    assert ensure_repository(clients, "repo") is False
    clients.ecr.create_repository.assert_not_called()


def test_ensure_repository_creates(clients, client_error):
    clients.ecr.describe_repositories.side_effect = client_error("RepositoryNotFoundException")
    assert ensure_repository(clients, "repo") is True
    clients.ecr.create_repository.assert_called_once_with(
        repositoryName="repo",
        imageScanningConfiguration={"scanOnPush": True},
        imageTagMutability="MUTABLE",
    )


def test_ensure_repository_lookup_failure(clients, client_error):
    clients.ecr.describe_repositories.side_effect = client_error("AccessDeniedException")
    with pytest.raises(DeployError, match="repo"):
        ensure_repository(clients, "repo")


def test_registry_login_feeds_password_on_stdin(clients, image):
    token = base64.b64encode(b"AWS:s3cretpassword").decode()
    clients.ecr.get_authorization_token.return_value = {"authorizationData": [{"authorizationToken": token}]}

    with patch("lambdadock.provisioning.publish.run_shell_cmd", return_value=(0, "", "")) as run:
        registry_login(clients, image.registry)

    cmd = run.call_args.args[0]
    assert "s3cretpassword" not in cmd
    assert run.call_args.kwargs["input"] == "s3cretpassword"


def test_registry_login_failure(clients, image):
    token = base64.b64encode(b"AWS:pw").decode()
    clients.ecr.get_authorization_token.return_value = {"authorizationData": [{"authorizationToken": token}]}
    with patch("lambdadock.provisioning.publish.run_shell_cmd", return_value=(1, "", "denied")):
        with pytest.raises(DeployError, match="docker login"):
            registry_login(clients, image.registry)


# ── build / publish ─────────────────────────────────────────────


def test_build_image_missing_dockerfile(tmp_path, image):
    settings = ImageSettings(dockerfile=str(tmp_path / "Dockerfile"))
    with pytest.raises(DeployError, match="Dockerfile not found"):
        build_image(image, settings)


def test_build_image_failure(tmp_path, image):
    dockerfile = tmp_path / "Dockerfile"
    dockerfile.write_text("FROM public.ecr.aws/lambda/nodejs:18\n")
    with patch("lambdadock.provisioning.publish.run_shell_cmd", return_value=(1, "", "no space left")):
        with pytest.raises(DeployError, match="docker build failed"):
            build_image(image, ImageSettings(dockerfile=str(dockerfile)))


def test_publish_image_sequence(tmp_path, clients, image):
    dockerfile = tmp_path / "Dockerfile"
    dockerfile.write_text("FROM public.ecr.aws/lambda/nodejs:18\n")
    token = base64.b64encode(b"AWS:pw").decode()
    clients.ecr.get_authorization_token.return_value = {"authorizationData": [{"authorizationToken": token}]}

    with patch("lambdadock.provisioning.publish.shutil.which", return_value="/usr/bin/docker"), \
         patch("lambdadock.provisioning.publish.run_shell_cmd", return_value=(0, "", "")) as run:
        assert publish_image(clients, image, ImageSettings(dockerfile=str(dockerfile))) is image

    subcommands = [c.args[0][1] for c in run.call_args_list]
    assert subcommands == ["info", "login", "build", "tag", "push"]


def test_publish_image_dry_run(clients, image):
    with patch("lambdadock.provisioning.shell.subprocess.run") as run:
        publish_image(clients, image, ImageSettings(), dry_run=True)
    run.assert_not_called()
    clients.ecr.create_repository.assert_not_called()
    clients.ecr.get_authorization_token.assert_not_called()
