"""Shared fakes: a scripted executor and a simulated remote host."""

from pathlib import Path
from types import SimpleNamespace

import pytest

from hostdeploy.models.command import Script
from hostdeploy.models.results import CommandResult
from hostdeploy.models.spec import DeploymentSpec
from hostdeploy.models.ssh import RemoteTarget


class FakeExecutor:
    """Records every call; answers with the last matching scripted result."""

    def __init__(self):
        self.calls = []
        self.rules = []
        self.probe_result = CommandResult(exit_code=0, stdout="SSH_OK")
        self.transfer_result = CommandResult(exit_code=0)
        self.transfers = []
        self.probes = []

    def on(self, fragment, exit_code=0, stdout="", stderr="", connection_failed=False, timed_out=False):
        self.rules.append(
            (
                fragment,
                dict(
                    exit_code=exit_code,
                    stdout=stdout,
                    stderr=stderr,
                    connection_failed=connection_failed,
                    timed_out=timed_out,
                ),
            )
        )

    def run(self, target, command, timeout=None, options=None):
        text = command.render()
        self.calls.append(SimpleNamespace(target=target, command=command, text=text, options=options, timeout=timeout))
        for fragment, values in reversed(self.rules):
            if fragment in text:
                return CommandResult(command=command.display(), **values)
        return CommandResult(exit_code=0, command=command.display())

    def probe(self, target, timeout=None):
        self.probes.append(target)
        return self.probe_result

    def transfer(self, target, source, destination):
        self.transfers.append((target, Path(source), destination))
        return self.transfer_result

    @property
    def texts(self):
        return [call.text for call in self.calls]

    def ran(self, fragment):
        return any(fragment in text for text in self.texts)


class SimulatedHost:
    """
    Executor double that keeps the state of one remote host.

    Understands exactly the commands the services send, so pipeline runs
    can be checked against the resulting containers and nginx files.
    """

    def __init__(self):
        self.reachable = True
        self.packages = set()
        self.services = {"docker": False, "nginx": False}
        self.files = {"/etc/nginx/sites-enabled/default": "server { listen 80 default_server; }"}
        self.dirs = set()
        self.containers = {}
        self.images = set()
        self.loaded_nginx = {}
        self.nginx_syntax_ok = True
        self.build_fails = False
        self.reloads = 0
        self.probes = 0
        self.calls = []

    # executor interface

    def probe(self, target, timeout=None):
        self.probes += 1
        if not self.reachable:
            return CommandResult(exit_code=255, stderr="Permission denied (publickey).", connection_failed=True)
        return CommandResult(exit_code=0, stdout="SSH_OK")

    def transfer(self, target, source, destination):
        if not self.reachable:
            return CommandResult(exit_code=255, connection_failed=True)
        self.dirs.add(destination.rstrip("/") + "/" + Path(source).name)
        return CommandResult(exit_code=0)

    def run(self, target, command, timeout=None, options=None):
        if not self.reachable:
            return CommandResult(exit_code=255, stderr="Connection refused", connection_failed=True)

        stdin = options.input if options else None
        steps = command.steps if isinstance(command, Script) else (command,)
        fail_fast = command.fail_fast if isinstance(command, Script) else True
        stdout, stderr, code = [], [], 0

        for step in steps:
            self.calls.append(step.render())
            step_code, out, err = self._exec(list(step.argv), stdin)
            stdout.append(out)
            stderr.append(err)
            if step_code != 0 and not step.tolerate_failure:
                code = step_code
                if fail_fast:
                    break

        return CommandResult(
            exit_code=code,
            stdout="\n".join(s for s in stdout if s),
            stderr="\n".join(s for s in stderr if s),
            command=command.display(),
        )

    # state helpers

    @property
    def running(self):
        return sorted(name for name, status in self.containers.items() if status == "running")

    def app_rule_files(self, app_name="myapp"):
        return sorted(path for path in self.files if path.endswith(f"/{app_name}.conf"))

    def _exec(self, argv, stdin):
        if argv[0] == "env":
            argv = argv[2:]
        program, args = argv[0], argv[1:]

        if program == "apt-get":
            if args[:2] == ["install", "-y"]:
                self.packages.update(args[2:])
            return 0, "", ""
        if program == "usermod":
            return 0, "", ""
        if program == "systemctl":
            return self._systemctl(args)
        if program == "command":
            return (0, "/usr/sbin/nginx", "") if "nginx" in self.packages else (1, "", "")
        if program == "nginx":
            if args == ["-v"]:
                return 0, "", "nginx version: nginx/1.24.0"
            if self.nginx_syntax_ok:
                return 0, "", "nginx: configuration file /etc/nginx/nginx.conf test is successful"
            return 1, "", "nginx: [emerg] unexpected end of file"
        if program == "rm":
            path = args[-1]
            self.files.pop(path, None)
            self.dirs = {d for d in self.dirs if d != path and not d.startswith(path + "/")}
            return 0, "", ""
        if program == "mkdir":
            self.dirs.add(args[-1])
            return 0, "", ""
        if program == "find":
            root = args[0]
            for path in [p for p in self.files if p.startswith(root + "/")]:
                del self.files[path]
            return 0, "", ""
        if program == "cp":
            src, dst = args[-2], args[-1]
            if src not in self.files:
                return 1, "", f"cp: cannot stat '{src}': No such file or directory"
            self.files[dst] = self.files[src]
            return 0, "", ""
        if program == "tee":
            path = args[-1]
            if args[0] == "-a":
                self.files[path] = self.files.get(path, "") + (stdin or "")
            else:
                self.files[path] = stdin or ""
            return 0, stdin or "", ""
        if program == "docker":
            return self._docker(args)
        if program == "docker-compose":
            return self._compose(args)
        if program == "curl":
            return (0, "HTTP/1.1 200 OK", "") if self.running else (7, "", "curl: (7) Failed to connect")
        return 0, "", ""

    def _systemctl(self, args):
        action = args[0]
        if action in ("enable", "start"):
            for service in args[1:]:
                if service == "docker" and "docker.io" not in self.packages:
                    return 5, "", "Unit docker.service not found."
                if action == "start":
                    self.services[service] = True
            return 0, "", ""
        if action == "reload":
            if not self.services.get(args[1]):
                return 1, "", "nginx.service is not active, cannot reload."
            self.reloads += 1
            self.loaded_nginx = {
                path: content for path, content in self.files.items() if path.startswith("/etc/nginx/")
            }
            return 0, "", ""
        if action == "is-active":
            return (0, "", "") if self.services.get(args[-1]) else (3, "", "")
        return 0, "", ""

    def _docker(self, args):
        action = args[0]
        if action == "--version":
            return 0, "Docker version 24.0.5", ""
        if action == "ps":
            names = self.containers
            if "status=running" in args:
                names = [n for n, s in self.containers.items() if s == "running"]
            name_filter = next((a[5:] for a in args if a.startswith("name=")), None)
            if name_filter:
                names = [n for n in names if name_filter in n]
            return 0, "\n".join(sorted(names)), ""
        if action in ("stop", "rm"):
            missing = [n for n in args[1:] if n not in self.containers]
            for name in args[1:]:
                if name in self.containers:
                    if action == "stop":
                        self.containers[name] = "exited"
                    else:
                        del self.containers[name]
            if missing:
                return 1, "", f"Error response from daemon: No such container: {missing[0]}"
            return 0, "", ""
        if action == "build":
            if self.build_fails:
                return 1, "", "failed to solve: executor failed running [/bin/sh -c npm ci]"
            self.images.add(args[args.index("-t") + 1])
            return 0, "Successfully built", ""
        if action == "run":
            name = args[args.index("--name") + 1]
            if name in self.containers:
                return 125, "", f'Conflict. The container name "/{name}" is already in use'
            self.containers[name] = "running"
            return 0, "abc123", ""
        if action == "logs":
            return 0, "listening on port", ""
        if action == "network":
            return 0, "", ""
        return 0, "", ""

    def _compose(self, args):
        if args[0] == "--version":
            return 0, "docker-compose version 1.29.2", ""
        project = args[args.index("-p") + 1]
        if "down" in args:
            for name in [n for n in self.containers if n.startswith(project + "_")]:
                del self.containers[name]
            return 0, "", ""
        if "up" in args:
            self.containers[f"{project}_web_1"] = "running"
            return 0, "", ""
        return 0, "", ""


class FakeHttp:
    """requests stand-in for the external endpoint check."""

    def __init__(self, status_code=200, error=None):
        self.status_code = status_code
        self.error = error
        self.urls = []

    def get(self, url, timeout=None):
        self.urls.append(url)
        if self.error:
            raise self.error
        return SimpleNamespace(status_code=self.status_code)


@pytest.fixture
def spec():
    return DeploymentSpec(
        repo_url="https://example.com/app.git",
        access_token="ghp_secretTOKEN123",
        branch="main",
        username="ubuntu",
        host="203.0.113.7",
        key_path="~/.ssh/id_rsa",
        app_port="3000",
    )


@pytest.fixture
def target():
    return RemoteTarget(host="203.0.113.7", user="ubuntu", key_path="~/.ssh/id_rsa")


@pytest.fixture
def fake_executor():
    return FakeExecutor()


@pytest.fixture
def host():
    return SimulatedHost()


@pytest.fixture
def fake_http():
    return FakeHttp()


@pytest.fixture
def working_copy(tmp_path):
    """A synchronized working copy with a Dockerfile."""
    path = tmp_path / "work" / "app"
    path.mkdir(parents=True)
    (path / "Dockerfile").write_text("FROM node:20\nCMD [\"node\", \"server.js\"]\n")
    return path
