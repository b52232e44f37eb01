"""Command line entry point for deploying and tracking contracts."""

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .config import settings
from .core.execution.deployer import ContractDeployer
from .core.execution.events import ProgressEvent
from .core.execution.models import DeploymentRequest
from .core.recovery.errors import DeploymentError
from .logging_config import LOG_FORMATS, setup_logging


logger = logging.getLogger(__name__)


def load_artifact(path: str) -> Tuple[str, List[Dict[str, Any]]]:
    """Read bytecode and ABI from a compiler artifact (Hardhat or Foundry layout)."""
    data = json.loads(Path(path).read_text())
    bytecode = data.get("bytecode")
    if isinstance(bytecode, dict):
        bytecode = bytecode.get("object")
    if not isinstance(bytecode, str) or not isinstance(data.get("abi"), list):
        raise ValueError(f"{path} has no bytecode/abi")
    return bytecode, data["abi"]


def parse_args_json(raw: Optional[str]) -> List[Any]:
    if not raw:
        return []
    params = json.loads(raw)
    if not isinstance(params, list):
        raise ValueError("--args must be a JSON array")
    return params


def print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def log_progress(event: ProgressEvent) -> None:
    logger.info(f"[{event.stage.value}] {event.message}")


async def cli_networks(deployer: ContractDeployer, args: argparse.Namespace) -> int:
    print_json(deployer.get_supported_networks())
    return 0


async def cli_status(deployer: ContractDeployer, args: argparse.Namespace) -> int:
    status = await deployer.check_network_status(args.network)
    print_json(status)
    return 0 if status["status"] == "connected" else 1


async def cli_tx(deployer: ContractDeployer, args: argparse.Namespace) -> int:
    monitor = deployer.monitor
    if args.details:
        details = await monitor.get_transaction_details(args.tx_hash, network=args.network)
        if details is None:
            print(f"❌ Transaction {args.tx_hash} not found on {args.network}", file=sys.stderr)
            return 1
        print_json(details)
        return 0

    status = await monitor.get_transaction_status(args.tx_hash, network=args.network)
    print_json(status.to_dict())
    return 0 if status.found else 1


async def cli_wait(deployer: ContractDeployer, args: argparse.Namespace) -> int:
    status = await deployer.monitor.wait_for_confirmation(
        args.tx_hash,
        args.confirmations,
        lambda update: logger.info(update.message),
        network=args.network,
        timeout=args.timeout,
    )
    print_json(status.to_dict())
    return 0 if status.is_success else 1


async def cli_estimate(deployer: ContractDeployer, args: argparse.Namespace) -> int:
    bytecode, abi = load_artifact(args.artifact)
    estimate = await deployer.estimate_deployment_cost(
        bytecode, abi, args.network, parse_args_json(args.args), args.value
    )
    print_json(estimate)
    return 0 if estimate["success"] else 1


async def cli_deploy(deployer: ContractDeployer, args: argparse.Namespace) -> int:
    credential = os.environ.get(settings.deployer_key_env)
    if not credential:
        print(f"❌ Set {settings.deployer_key_env} to the deployer's private key", file=sys.stderr)
        return 1

    bytecode, abi = load_artifact(args.artifact)
    request = DeploymentRequest(
        bytecode=bytecode,
        abi=abi,
        network=args.network,
        credential=credential,
        constructor_params=parse_args_json(args.args),
        gas_limit=args.gas_limit,
        value=args.value,
        confirmations=args.confirmations,
    )
    result = await deployer.deploy(request, on_progress=log_progress)
    print_json(result.to_dict())
    return 0 if result.success else 1


COMMANDS = {
    "networks": cli_networks,
    "status": cli_status,
    "tx": cli_tx,
    "wait": cli_wait,
    "estimate": cli_estimate,
    "deploy": cli_deploy,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="chaindeploy", description="Deploy and track EVM contracts")
    parser.add_argument("--log-level", help=f"Log level (default: {settings.log_level})")
    parser.add_argument("--log-format", choices=LOG_FORMATS, help="Log renderer")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("networks", help="List supported networks")

    status_parser = subparsers.add_parser("status", help="Check a network's RPC endpoint")
    status_parser.add_argument("network", help="Network key")

    tx_parser = subparsers.add_parser("tx", help="Look up a transaction once")
    tx_parser.add_argument("tx_hash", help="Transaction hash")
    tx_parser.add_argument("--network", default="sepolia", help="Network key (default: sepolia)")
    tx_parser.add_argument("--details", action="store_true", help="Include transaction, receipt and block")

    wait_parser = subparsers.add_parser("wait", help="Wait for a transaction to confirm")
    wait_parser.add_argument("tx_hash", help="Transaction hash")
    wait_parser.add_argument("--network", default="sepolia", help="Network key (default: sepolia)")
    wait_parser.add_argument("--confirmations", type=int, help="Confirmations required")
    wait_parser.add_argument("--timeout", type=float, help="Seconds to wait")

    for name, help_text in (("estimate", "Estimate deployment cost"), ("deploy", "Deploy a contract")):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("artifact", help="Compiler artifact JSON with abi and bytecode")
        sub.add_argument("--network", required=True, help="Network key")
        sub.add_argument("--args", help='Constructor arguments as a JSON array, e.g. \'["Token", 1000]\'')
        sub.add_argument("--value", type=int, default=0, help="Wei sent to the constructor")
        if name == "deploy":
            sub.add_argument("--gas-limit", type=int, help="Gas limit (skips estimation)")
            sub.add_argument("--confirmations", type=int, help="Confirmations to wait for")

    return parser


async def main(argv: Optional[Sequence[str]] = None, deployer: Optional[ContractDeployer] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 2

    setup_logging(args.log_level, args.log_format)
    deployer = deployer if deployer is not None else ContractDeployer()

    try:
        return await COMMANDS[args.command](deployer, args)
    except (DeploymentError, ValueError, OSError) as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        return 1
    finally:
        await deployer.close()


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
