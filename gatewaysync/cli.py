from __future__ import annotations

import argparse
import json
import sys
from typing import Any, Dict, Optional

from gatewaysync.config import get_settings
from gatewaysync.logger import configure_logging
from gatewaysync.schemas.gateway import EndpointDescriptor, GatewayType
from gatewaysync.services.annotations import VirtualServiceReader
from gatewaysync.services.apigateway import APIGatewayClient
from gatewaysync.services.gateway import GatewayReconciler, GatewaySettings, plan_update
from gatewaysync.services.topology import LoadBalancerTopology, VirtualServiceSource
from gatewaysync.utils import normalize_path


def _print_json(data: Dict[str, Any]) -> None:
    print(json.dumps(data, indent=2, sort_keys=True))


def _gateway_type(raw: str) -> GatewayType:
    try:
        return GatewayType.parse(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def _descriptor(path: str, gateway_type: GatewayType) -> EndpointDescriptor:
    return EndpointDescriptor(path=normalize_path(path), gateway_type=gateway_type)


def _add_endpoint_args(parser: argparse.ArgumentParser, prefix: str = "") -> None:
    parser.add_argument(f"--{prefix}path", required=True)
    parser.add_argument(f"--{prefix}gateway-type", type=_gateway_type, required=True)


def _build_reconciler() -> GatewayReconciler:
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_file or None)
    return GatewayReconciler(
        GatewaySettings.from_settings(settings),
        adapter=APIGatewayClient.from_settings(settings),
        topology=LoadBalancerTopology.from_settings(settings),
        reader=VirtualServiceReader(settings.gateway_annotation_key),
    )


def cmd_add(args: argparse.Namespace) -> int:
    endpoint = _descriptor(args.path, args.gateway_type)
    action = _build_reconciler().add(endpoint)
    _print_json({"action": action.value, "path": endpoint.path})
    return 0


def cmd_remove(args: argparse.Namespace) -> int:
    endpoint = _descriptor(args.path, args.gateway_type)
    action = _build_reconciler().remove(endpoint)
    _print_json({"action": action.value, "path": endpoint.path})
    return 0


def cmd_update(args: argparse.Namespace) -> int:
    prev = _descriptor(args.prev_path, args.prev_gateway_type)
    new = _descriptor(args.path, args.gateway_type)
    action = _build_reconciler().update(prev, new)
    _print_json({"action": action.value, "prev_path": prev.path, "path": new.path})
    return 0


def cmd_plan(args: argparse.Namespace) -> int:
    prev = _descriptor(args.prev_path, args.prev_gateway_type)
    new = _descriptor(args.path, args.gateway_type)
    _print_json({"action": plan_update(prev, new).value, "prev_path": prev.path, "path": new.path})
    return 0


def cmd_remove_resource(args: argparse.Namespace) -> int:
    reconciler = _build_reconciler()
    resource = VirtualServiceSource.from_cluster().get(args.namespace, args.name)
    action = reconciler.remove_resource(resource)
    _print_json(
        {"action": action.value, "resource": f"{args.namespace}/{args.name}", "found": resource is not None}
    )
    return 0


def cmd_update_resource(args: argparse.Namespace) -> int:
    reconciler = _build_reconciler()
    resource = VirtualServiceSource.from_cluster().get(args.namespace, args.name)
    new = _descriptor(args.path, args.gateway_type)
    action = reconciler.update_resource(resource, new)
    _print_json({"action": action.value, "resource": f"{args.namespace}/{args.name}", "path": new.path})
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gatewaysync",
        description="Reconcile API gateway routes with endpoint exposure",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    add = sub.add_parser("add", help="Expose an endpoint through the API gateway")
    _add_endpoint_args(add)
    add.set_defaults(func=cmd_add)

    remove = sub.add_parser("remove", help="Remove an endpoint from the API gateway")
    _add_endpoint_args(remove)
    remove.set_defaults(func=cmd_remove)

    update = sub.add_parser("update", help="Converge the gateway from a previous to a desired endpoint")
    _add_endpoint_args(update, prefix="prev-")
    _add_endpoint_args(update)
    update.set_defaults(func=cmd_update)

    plan = sub.add_parser("plan", help="Show the action an update would take without applying it")
    _add_endpoint_args(plan, prefix="prev-")
    _add_endpoint_args(plan)
    plan.set_defaults(func=cmd_plan)

    remove_resource = sub.add_parser(
        "remove-resource",
        help="Remove the endpoint described by a deployed VirtualService",
    )
    remove_resource.add_argument("namespace")
    remove_resource.add_argument("name")
    remove_resource.set_defaults(func=cmd_remove_resource)

    update_resource = sub.add_parser(
        "update-resource",
        help="Converge the gateway from a deployed VirtualService to a desired endpoint",
    )
    update_resource.add_argument("namespace")
    update_resource.add_argument("name")
    _add_endpoint_args(update_resource)
    update_resource.set_defaults(func=cmd_update_resource)

    return parser


def main(argv: Optional[list[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        exit_code = args.func(args)
    except Exception as exc:  # noqa: BLE001
        print(f"error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
