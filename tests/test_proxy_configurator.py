"""Tests for the nginx proxy rule lifecycle."""

from hostdeploy.exceptions import ErrorKind
from hostdeploy.models.results import StageStatus
from hostdeploy.services.proxy_configurator import ProxyConfigurator, render_server_block

RULE = "/etc/nginx/conf.d/myapp.conf"


def test_server_block_forwards_to_loopback():
    block = render_server_block("203.0.113.7", 3000)

    assert "listen 80;" in block
    assert "server_name 203.0.113.7;" in block
    assert "proxy_pass http://127.0.0.1:3000;" in block
    for header in (
        "proxy_set_header Host $host;",
        "proxy_set_header X-Real-IP $remote_addr;",
        "proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;",
        "proxy_set_header X-Forwarded-Proto $scheme;",
    ):
        assert header in block


def test_rule_locations():
    proxy = ProxyConfigurator(executor=None)

    assert proxy.rule_path == RULE
    assert proxy.rule_paths == [
        "/etc/nginx/sites-available/myapp.conf",
        "/etc/nginx/sites-enabled/myapp.conf",
        RULE,
    ]
    assert proxy.backup_path(RULE) == "/var/backups/hostdeploy/nginx/etc__nginx__conf.d__myapp.conf"


def test_configure_writes_tests_then_reloads(fake_executor, target):
    outcome = ProxyConfigurator(fake_executor).configure(target, "203.0.113.7", 3000)

    assert outcome.status == StageStatus.SUCCEEDED
    texts = fake_executor.texts
    write = texts.index(f"sudo tee {RULE}")
    check = texts.index("sudo nginx -t")
    reload_ = texts.index("sudo systemctl reload nginx")
    assert write < check < reload_

    tee = fake_executor.calls[write]
    assert "proxy_pass http://127.0.0.1:3000;" in tee.options.input


def test_configure_clears_old_rules_and_default_site(fake_executor, target):
    ProxyConfigurator(fake_executor).configure(target, "203.0.113.7", 3000)

    cleanup = next(text for text in fake_executor.texts if text.startswith("set -e"))
    for path in (
        "/etc/nginx/sites-available/myapp.conf",
        "/etc/nginx/sites-enabled/myapp.conf",
        RULE,
        "/etc/nginx/sites-enabled/default",
    ):
        assert f"sudo rm -f {path}" in cleanup


def test_syntax_failure_skips_reload_and_restores(fake_executor, target):
    fake_executor.on("nginx -t", exit_code=1, stderr="nginx: [emerg] unknown directive")

    outcome = ProxyConfigurator(fake_executor).configure(target, "203.0.113.7", 3000)

    assert outcome.is_fatal
    assert outcome.error == ErrorKind.CONFIG_SYNTAX_FAILURE
    assert "reload skipped" in outcome.reason
    assert not fake_executor.ran("systemctl reload")
    assert fake_executor.ran(f"sudo cp -a /var/backups/hostdeploy/nginx/etc__nginx__conf.d__myapp.conf {RULE}")


def test_missing_nginx_is_installed(fake_executor, target):
    fake_executor.on("command -v nginx", exit_code=1)

    outcome = ProxyConfigurator(fake_executor).configure(target, "203.0.113.7", 3000)

    assert outcome.status == StageStatus.SUCCEEDED
    assert fake_executor.ran("sudo apt-get install -y nginx")


def test_lost_connection_is_connectivity_failure(fake_executor, target):
    fake_executor.on("command -v nginx", exit_code=255, connection_failed=True)

    outcome = ProxyConfigurator(fake_executor).configure(target, "203.0.113.7", 3000)

    assert outcome.error == ErrorKind.CONNECTIVITY_FAILURE
    assert not fake_executor.ran("tee")


def test_remove_deletes_rules_and_reloads(fake_executor, target):
    outcome = ProxyConfigurator(fake_executor).remove(target)

    assert outcome.status == StageStatus.SUCCEEDED
    assert outcome.stage == "RemoveProxyRule"
    assert fake_executor.ran(f"sudo rm -f {RULE}")
    assert fake_executor.ran("sudo systemctl reload nginx")


def test_reconfigure_leaves_one_rule(host, target):
    host.packages.add("nginx")
    host.services["nginx"] = True
    host.files["/etc/nginx/sites-enabled/myapp.conf"] = "server { listen 80; }"
    proxy = ProxyConfigurator(host)

    proxy.configure(target, "203.0.113.7", 3000)
    outcome = proxy.configure(target, "203.0.113.7", 3000)

    assert outcome.status == StageStatus.SUCCEEDED
    assert host.app_rule_files() == [RULE]
    assert "/etc/nginx/sites-enabled/default" not in host.files
    assert "127.0.0.1:3000" in host.loaded_nginx[RULE]


def test_rejected_config_keeps_previous_rule(host, target):
    host.packages.add("nginx")
    host.services["nginx"] = True
    proxy = ProxyConfigurator(host)
    proxy.configure(target, "203.0.113.7", 3000)
    reloads = host.reloads

    host.nginx_syntax_ok = False
    outcome = proxy.configure(target, "203.0.113.7", 4000)

    assert outcome.error == ErrorKind.CONFIG_SYNTAX_FAILURE
    assert host.reloads == reloads
    assert "127.0.0.1:3000" in host.files[RULE]
    assert "127.0.0.1:3000" in host.loaded_nginx[RULE]
