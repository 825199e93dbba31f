"""CLI entry point for WotGraph services.

Provides a unified command-line interface to run any WotGraph service, plus
a one-off ``graph`` command that prints a single graph as JSON. Services can
run in one-shot mode (``--once``) or continuously with a Prometheus metrics
server.

Examples:
    ```bash
    python -m wotgraph <service> [options]
    python -m wotgraph api --log-level DEBUG
    python -m wotgraph api --once
    python -m wotgraph graph --seed npub1... --seed npub1... --second-degree
    ```
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Any, NamedTuple

from wotgraph.core import start_metrics_server
from wotgraph.core.base_service import BaseService
from wotgraph.core.exceptions import WotGraphError
from wotgraph.core.logger import Logger, StructuredFormatter
from wotgraph.core.yaml import load_yaml
from wotgraph.graph import BuildOptions, SocialGraph
from wotgraph.models.constants import ServiceName
from wotgraph.services.api import Api


CONFIG_BASE = Path("config")
ENGINE_CONFIG = CONFIG_BASE / "wotgraph.yaml"
GRAPH_COMMAND = "graph"


class ServiceEntry(NamedTuple):
    """Registry entry mapping a service to its class and default config path."""

    cls: type[BaseService[Any]]
    config_path: Path


SERVICE_REGISTRY: dict[str, ServiceEntry] = {
    ServiceName.API: ServiceEntry(Api, CONFIG_BASE / "services" / "api.yaml"),
}

logger = Logger("cli")


async def run_service(
    service_name: str,
    service_class: type[BaseService[Any]],
    engine: SocialGraph,
    service_dict: dict[str, Any],
    *,
    once: bool,
) -> int:
    """Run a service in one-shot or continuous mode.

    In one-shot mode, the service runs a single cycle and exits.
    In continuous mode, a Prometheus metrics server is started and the
    service runs indefinitely until a shutdown signal is received.

    Args:
        service_name: Service identifier used for logging.
        service_class: The BaseService subclass to instantiate.
        engine: Connected social graph engine.
        service_dict: Parsed service configuration.
        once: If True, run a single cycle and exit. If False, run continuously.

    Returns:
        Exit code: 0 for success, 1 for failure.
    """
    if service_dict:
        service = service_class.from_dict(service_dict, engine=engine)
    else:
        service = service_class(engine=engine)

    # One-shot mode: single cycle, no metrics server
    if once:
        try:
            async with service:
                await service.run()
            logger.info(f"{service_name}_completed")
            return 0
        except Exception as e:  # Intentionally broad: CLI error boundary for one-shot mode
            logger.error(f"{service_name}_failed", error=str(e))
            return 1

    # Continuous mode: metrics server + indefinite operation
    metrics_config = service.config.metrics
    metrics_server = await start_metrics_server(metrics_config)

    if metrics_config.enabled:
        logger.info(
            "metrics_server_started",
            host=metrics_config.host,
            port=metrics_config.port,
            path=metrics_config.path,
        )

    # Signal handling for graceful shutdown
    def handle_signal(sig: signal.Signals) -> None:
        logger.info("shutdown_signal", signal=sig.name)
        service.request_shutdown()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal, sig)

    try:
        async with service:
            await service.run_forever()
        return 0
    except Exception as e:  # Intentionally broad: CLI error boundary for continuous mode
        logger.error(f"{service_name}_failed", error=str(e))
        return 1
    finally:
        await metrics_server.stop()
        if metrics_config.enabled:
            logger.info("metrics_server_stopped")


async def print_graph(engine: SocialGraph, args: argparse.Namespace) -> int:
    """Build one graph and write it to stdout as JSON.

    Returns:
        Exit code: 0 for success, 1 for failure.
    """
    values = engine.config.build.model_dump()
    if args.second_degree:
        values["include_second_degree"] = True
    if args.followers:
        values["include_followers"] = True
    if args.max_connections is not None:
        values["max_connections_per_node"] = args.max_connections

    try:
        options = BuildOptions(**values)
        graph = await engine.get_graph(args.seed or None, options)
    except (WotGraphError, ValueError) as e:
        logger.error("graph_failed", error=str(e), error_type=type(e).__name__)
        return 1

    json.dump(graph.to_dict(), sys.stdout, indent=2)
    sys.stdout.write("\n")
    return 0


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments for the service runner."""
    parser = argparse.ArgumentParser(
        prog="wotgraph",
        description="WotGraph Service Runner",
    )

    parser.add_argument(
        "service",
        choices=[*SERVICE_REGISTRY.keys(), GRAPH_COMMAND],
        help="Service to run, or 'graph' to print one graph as JSON",
    )

    parser.add_argument(
        "--config",
        type=Path,
        help="Service config path (default: config/services/<service>.yaml)",
    )

    parser.add_argument(
        "--engine-config",
        type=Path,
        default=ENGINE_CONFIG,
        help=f"Engine config path (default: {ENGINE_CONFIG})",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Log level (default: INFO)",
    )

    parser.add_argument(
        "--once",
        action="store_true",
        help="Run once and exit (default: run continuously)",
    )

    graph_group = parser.add_argument_group("graph command")
    graph_group.add_argument(
        "--seed",
        action="append",
        default=[],
        help="Core identity (npub or hex); repeatable (default: engine seeds)",
    )
    graph_group.add_argument(
        "--second-degree",
        action="store_true",
        help="Expand the contacts of first-degree nodes",
    )
    graph_group.add_argument(
        "--followers",
        action="store_true",
        help="Also add followers of core identities",
    )
    graph_group.add_argument(
        "--max-connections",
        type=int,
        help="Contacts taken per expanded node",
    )

    return parser.parse_args(argv)


def setup_logging(level: str) -> None:
    """Configure the root logger with structured formatting.

    Installs a ``StructuredFormatter`` on the root handler so that all
    log output -- from both ``Logger`` (with ``structured_kv`` extra) and
    plain ``logging.getLogger()`` calls in models/utils -- is unified as
    ``level name message key=value ...``. Output goes to stderr so the
    ``graph`` command's JSON on stdout stays clean.
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(StructuredFormatter())
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level))


def _load_yaml_dict(path: Path) -> dict[str, Any]:
    """Load a YAML file as a dict, returning ``{}`` if the file does not exist."""
    if not path.exists():
        logger.warning("config_not_found", path=str(path))
        return {}
    return load_yaml(str(path))


async def main(argv: list[str] | None = None) -> int:
    """Main entry point: parse args, build the engine, and run the command."""
    args = parse_args(argv)
    setup_logging(args.log_level)

    engine_dict = _load_yaml_dict(args.engine_config)
    try:
        engine = SocialGraph.from_dict(engine_dict) if engine_dict else SocialGraph()
    except ValueError as e:
        logger.error("engine_config_invalid", path=str(args.engine_config), error=str(e))
        return 1

    try:
        async with engine:
            if args.service == GRAPH_COMMAND:
                return await print_graph(engine, args)

            entry = SERVICE_REGISTRY[args.service]
            service_dict = _load_yaml_dict(args.config or entry.config_path)
            return await run_service(
                service_name=args.service,
                service_class=entry.cls,
                engine=engine,
                service_dict=service_dict,
                once=args.once,
            )
    except KeyboardInterrupt:
        logger.info("interrupted")
        return 130


def cli() -> None:
    """Synchronous entry point for console_scripts."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
