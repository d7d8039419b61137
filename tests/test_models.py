"""Tests for spec validation, command rendering and result models."""

from dataclasses import replace

import pytest

from hostdeploy.exceptions import ErrorKind, InputInvalidError
from hostdeploy.models.command import Command, Script
from hostdeploy.models.project import ProjectKind, detect_project_kind
from hostdeploy.models.results import CommandResult, PipelineReport, StageOutcome
from hostdeploy.models.ssh import RemoteTarget
from hostdeploy.utils import authenticated_url, redact, repo_name_from_url


def test_valid_spec_has_no_errors(spec):
    result = spec.validate()

    assert result.is_valid
    assert result.errors == []
    assert spec.repo_name == "app"
    assert spec.port == 3000


@pytest.mark.parametrize(
    "field_name,label",
    [
        ("repo_url", "Repository URL"),
        ("access_token", "Personal access token"),
        ("host", "Remote host address"),
        ("key_path", "SSH key path"),
    ],
)
def test_empty_field_is_reported(spec, field_name, label):
    result = replace(spec, **{field_name: "  "}).validate()

    assert not result.is_valid
    assert f"{label} is missing or empty" in result.errors


@pytest.mark.parametrize("port", ["abc", "0", "70000"])
def test_bad_port_is_reported(spec, port):
    result = replace(spec, app_port=port).validate()

    assert not result.is_valid
    assert any("Application port" in error for error in result.errors)


@pytest.mark.parametrize("host", ["203.0.113.7; include /etc/passwd", "a b", "host{", "host}", "host\t"])
def test_host_breaking_server_name_is_reported(spec, host):
    result = replace(spec, host=host).validate()

    assert not result.is_valid
    assert any("Remote host address contains" in error for error in result.errors)


def test_hostname_is_accepted(spec):
    assert replace(spec, host="app.example.com").validate().is_valid


def test_require_valid_raises_input_invalid(spec):
    with pytest.raises(InputInvalidError) as exc_info:
        replace(spec, username="", app_port="x").require_valid()

    assert exc_info.value.kind == ErrorKind.INPUT_INVALID
    assert len(exc_info.value.errors) == 2


def test_spec_repr_masks_token(spec):
    assert "ghp_secretTOKEN123" not in repr(spec)
    assert "ghp_secretTOKEN123" not in str(spec)
    assert spec.secrets == ("ghp_secretTOKEN123",)


def test_command_render_quotes_arguments():
    command = Command.of("git", "checkout", "feature/my branch", cwd="/srv/my app")

    assert command.render() == "cd '/srv/my app' && git checkout 'feature/my branch'"


def test_command_render_sudo_and_tolerated():
    command = Command.of("rm", "-f", "/etc/nginx/conf.d/myapp.conf", sudo=True, tolerate_failure=True)

    assert command.full_argv[0] == "sudo"
    assert command.render() == "sudo rm -f /etc/nginx/conf.d/myapp.conf || true"


def test_command_display_masks_secrets():
    command = Command.of("git", "clone", "https://tok@example.com/app.git", secrets=("tok",))

    assert "tok@" not in command.display()
    assert "****@example.com" in command.display()


def test_command_requires_program():
    with pytest.raises(ValueError):
        Command.of()


def test_script_render_fail_fast():
    script = Script.of(Command.of("mkdir", "-p", "deployments"), Command.of("ls"), cwd="/tmp")

    assert script.render() == "set -e\ncd /tmp\nmkdir -p deployments\nls\n"


def test_script_without_fail_fast():
    script = Script.of(Command.of("docker", "--version"), fail_fast=False)

    assert not script.render().startswith("set -e")


def test_script_collects_step_secrets():
    script = Script.of(Command.of("echo", "a", secrets=("s1",)), Command.of("echo", "s2", secrets=("s2",)))

    assert script.secrets == ("s1", "s2")
    assert "s2" not in script.display()


def test_redact_masks_longest_first():
    assert redact("token=abcdef", ["abc", "abcdef"]) == "token=****"
    assert redact(None, ["x"]) == ""
    assert redact("nothing here", []) == "nothing here"


@pytest.mark.parametrize(
    "url,name",
    [
        ("https://github.com/acme/app.git", "app"),
        ("https://github.com/acme/app", "app"),
        ("https://github.com/acme/app/", "app"),
        ("git@github.com:acme/service.git", "service"),
    ],
)
def test_repo_name_from_url(url, name):
    assert repo_name_from_url(url) == name


def test_authenticated_url_embeds_token():
    assert authenticated_url("https://github.com/acme/app.git", "tok") == "https://tok@github.com/acme/app.git"
    assert authenticated_url("https://old@github.com/acme/app.git", "tok") == "https://tok@github.com/acme/app.git"
    assert authenticated_url("git@github.com:acme/app.git", "tok") == "git@github.com:acme/app.git"


def test_detect_project_kind(tmp_path):
    assert detect_project_kind(tmp_path) == ProjectKind.UNRECOGNIZED

    (tmp_path / "docker-compose.yml").write_text("services: {}\n")
    assert detect_project_kind(tmp_path) == ProjectKind.COMPOSITION

    (tmp_path / "Dockerfile").write_text("FROM alpine\n")
    assert detect_project_kind(tmp_path) == ProjectKind.SINGLE_IMAGE


def test_remote_target_ssh_options(target):
    prefix = target.ssh_command_prefix(7)

    assert prefix[:3] == ["ssh", "-p", "22"]
    assert prefix[-1] == "ubuntu@203.0.113.7"
    assert "BatchMode=yes" in prefix
    assert "ConnectTimeout=7" in prefix
    assert target.remote_path("deployments/") == "ubuntu@203.0.113.7:deployments/"


def test_remote_target_for_spec(spec):
    target = RemoteTarget.for_spec(spec)

    assert target.connection_string == "ubuntu@203.0.113.7"
    assert target.key_path == "~/.ssh/id_rsa"


def test_command_result_failure_description():
    result = CommandResult(exit_code=1, stderr="warning\nfatal: branch not found")

    assert result.error_kind == ErrorKind.COMMAND_FAILURE
    assert result.describe_failure() == "exit code 1: fatal: branch not found"

    result = CommandResult(exit_code=255, connection_failed=True)
    assert result.error_kind == ErrorKind.CONNECTIVITY_FAILURE

    result = CommandResult(exit_code=124, duration_seconds=30, timed_out=True)
    assert result.describe_failure() == "timed out after 30s"

    assert CommandResult(exit_code=0).error_kind is None


def test_pipeline_report_tracks_failure_and_warnings():
    report = PipelineReport(mode="forward")
    assert not report.succeeded

    report.append(StageOutcome.succeeded("Deploy", "ok", warnings=["slow start"]))
    assert report.succeeded
    assert report.exit_code == 0

    report.append(StageOutcome.failed("Validate", ErrorKind.COMMAND_FAILURE, "not running"))
    assert not report.succeeded
    assert report.exit_code == 1
    assert report.failed_stage.stage == "Validate"
    assert report.warnings == ["Deploy: slow start"]
    assert report.stage_names == ["Deploy", "Validate"]
    assert report.to_dict()["stages"][1]["error"] == "command_failure"
