from __future__ import annotations

import json

import pytest

from gatewaysync import cli
from gatewaysync.config import Settings
from gatewaysync.services import topology as topology_module
from gatewaysync.services.apigateway import GatewayOperationError


def _run(argv):
    with pytest.raises(SystemExit) as excinfo:
        cli.main(argv)
    return excinfo.value.code


def test_plan_prints_decision(capsys):
    code = _run(
        ["plan", "--prev-path", "a", "--prev-gateway-type", "public", "--path", "/b", "--gateway-type", "public"]
    )

    assert code == 0
    assert json.loads(capsys.readouterr().out) == {"action": "replace", "path": "/b", "prev_path": "/a"}


def test_invalid_gateway_type_is_usage_error(capsys):
    code = _run(["add", "--path", "/a", "--gateway-type", "private"])

    assert code == 2
    assert "invalid gateway type" in capsys.readouterr().err


def test_update_uses_reconciler(monkeypatch, make_reconciler, gateway, capsys):
    monkeypatch.setattr(cli, "_build_reconciler", make_reconciler)

    code = _run(
        ["update", "--prev-path", "/a", "--prev-gateway-type", "none", "--path", "/a", "--gateway-type", "public"]
    )

    assert code == 0
    assert json.loads(capsys.readouterr().out)["action"] == "add"
    assert "/a" in gateway.routes


def test_reconcile_failure_exits_nonzero(monkeypatch, make_reconciler, gateway, capsys):
    monkeypatch.setattr(cli, "_build_reconciler", make_reconciler)
    gateway.fail["get_route"] = GatewayOperationError("apigateway.route.get", "throttled")

    code = _run(["add", "--path", "/a", "--gateway-type", "public"])

    assert code == 1
    assert "error: apigateway.route.get: throttled" in capsys.readouterr().err


@pytest.fixture
def internal_env(monkeypatch, gateway):
    monkeypatch.setenv("API_GATEWAY_ID", "api-123")
    monkeypatch.setenv("API_LOAD_BALANCER_SCHEME", "internal")
    monkeypatch.setenv("VPC_LINK_INTEGRATION_ID", "vpclink-int")
    monkeypatch.setattr(cli, "get_settings", lambda: Settings(_env_file=None))
    monkeypatch.setattr(cli, "configure_logging", lambda *args: None)
    monkeypatch.setattr(cli.APIGatewayClient, "from_settings", lambda settings: gateway)

    def _no_cluster():
        raise RuntimeError("Invalid kube-config file. No configuration found.")

    monkeypatch.setattr(topology_module, "load_kubernetes_config", _no_cluster)


def test_internal_scheme_remove_disabled_needs_no_cluster(internal_env, calls, capsys):
    code = _run(["remove", "--path", "/a", "--gateway-type", "none"])

    assert code == 0
    assert calls == []
    assert json.loads(capsys.readouterr().out) == {"action": "noop", "path": "/a"}


def test_internal_scheme_add_uses_vpc_link(internal_env, gateway, calls, capsys):
    code = _run(["add", "--path", "/a", "--gateway-type", "public"])

    assert code == 0
    assert calls == [
        ("get_route", "api-123", "/a"),
        ("create_route", "api-123", "vpclink-int", "/a"),
    ]
    assert json.loads(capsys.readouterr().out) == {"action": "add", "path": "/a"}


def test_add_disabled_endpoint_reports_noop(monkeypatch, make_reconciler, calls, capsys):
    monkeypatch.setattr(cli, "_build_reconciler", make_reconciler)

    code = _run(["add", "--path", "/a", "--gateway-type", "none"])

    assert code == 0
    assert calls == []
    assert json.loads(capsys.readouterr().out) == {"action": "noop", "path": "/a"}
