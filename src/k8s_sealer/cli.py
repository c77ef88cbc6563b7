#!/usr/bin/env python
"""Command-line interface for k8s-sealer.

This module provides the CLI entry point that reads the service
configuration, prints it and runs the HTTP server.
"""

import click
import uvicorn
from icecream import ic

from k8s_sealer import __version__, console
from k8s_sealer.api import create_app
from k8s_sealer.config import DEFAULT_CONTROLLER_NAME, DEFAULT_CONTROLLER_NAMESPACE, DOMAIN_SUFFIXES, Settings
from k8s_sealer.models import ClusterName, OutputFormat
from k8s_sealer.service import SealService

DEFAULT_ADDR = ":3000"


def parse_addr(addr: str) -> tuple[str, int]:
    """Split a ``[host]:port`` bind address.

    An empty host binds all interfaces.

    Raises:
        ValueError: If the address has no valid port.

    """
    host, sep, port = addr.rpartition(":")
    if not sep or not port.isdigit() or not 0 <= int(port) <= 65535:
        raise ValueError(f"invalid bind address {addr!r}, expected [host]:port")
    return host.strip("[]") or "0.0.0.0", int(port)


def _validate_addr(ctx: click.Context, param: click.Parameter, value: str) -> tuple[str, int]:
    try:
        return parse_addr(value)
    except ValueError as e:
        raise click.BadParameter(str(e)) from None


def print_settings(settings: Settings, host: str, port: int) -> None:
    """Print the effective configuration as a summary panel."""
    items = {
        "Listen": f"{host}:{port}",
        "Output format": settings.output_format,
        "Registry host": settings.registry_host or "-",
        "Controller": f"{settings.controller_namespace}/{settings.controller_name}",
    }
    for cluster in ClusterName:
        items[f"Cert ({cluster.value})"] = settings.cert_files.get(cluster) or "from cluster"
    for suffix, _ in DOMAIN_SUFFIXES:
        items[f"TLS (*{suffix})"] = settings.tls_files[suffix].cert_file or "-"

    console.summary_panel("k8s-sealer", items)


def warn_unconfigured_clusters(settings: Settings) -> None:
    """Warn about clusters relying on the default kubeconfig or in-cluster access."""
    for cluster in ClusterName:
        if not settings.cert_files.get(cluster) and not settings.kubeconfig_files.get(cluster):
            console.warning(
                f"No cert file or kubeconfig for cluster {cluster.value}, "
                "falling back to the default kubeconfig or in-cluster config"
            )


@click.command(help="Serve an HTTP API sealing Kubernetes secrets")
@click.option("--version", "-v", required=False, is_flag=True, help="print version")
@click.option("--debug", required=False, is_flag=True, help="print debug information")
@click.option(
    "--addr",
    envvar="ADDR",
    default=DEFAULT_ADDR,
    show_default=True,
    callback=_validate_addr,
    help="address to listen on",
)
@click.option(
    "--output-format",
    envvar="OUTPUT_FORMAT",
    type=click.Choice([f.value for f in OutputFormat], case_sensitive=False),
    help="sealed secret output format  [default: json]",
)
@click.option("--registry-host", envvar="REGISTRY_HOST", help="docker registry for dockerconfigjson secrets")
@click.option(
    "--controller-namespace",
    envvar="CONTROLLER_NAMESPACE",
    help=f"namespace of the sealed-secrets controller  [default: {DEFAULT_CONTROLLER_NAMESPACE}]",
)
@click.option(
    "--controller-name",
    envvar="CONTROLLER_NAME",
    help=f"name of the sealed-secrets controller  [default: {DEFAULT_CONTROLLER_NAME}]",
)
def cli(
    debug: bool,
    addr: tuple[str, int],
    output_format: str | None,
    registry_host: str | None,
    controller_namespace: str | None,
    controller_name: str | None,
    version: bool,
) -> None:
    """Process CLI arguments and run the server.

    Args:
        debug: Enable debug output.
        addr: Parsed bind host and port.
        output_format: Output format overriding OUTPUT_FORMAT.
        registry_host: Registry host overriding REGISTRY_HOST.
        controller_namespace: Controller namespace overriding CONTROLLER_NAMESPACE.
        controller_name: Controller name overriding CONTROLLER_NAME.
        version: Print version and exit.

    """
    if not debug:
        ic.disable()

    if version:
        click.echo(__version__)
        return

    settings = Settings.from_env(
        output_format=output_format.lower() if output_format else None,
        registry_host=registry_host,
        controller_namespace=controller_namespace,
        controller_name=controller_name,
    )
    ic(settings)

    host, port = addr
    print_settings(settings, host, port)
    warn_unconfigured_clusters(settings)

    app = create_app(SealService(settings))
    console.action(f"Listening on {console.highlight(f'{host}:{port}')}")
    uvicorn.run(app, host=host, port=port, log_level="debug" if debug else "info")
    console.info("Server stopped")


if __name__ == "__main__":
    cli()
