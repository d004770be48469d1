from typing import Optional

import click

from proxy_deployment.constants import ZERO_ADDRESS
from proxy_deployment.params import InitArgs


def _confirm_deployment(contract_name: str) -> None:
    """Asks the user to confirm the deployment of a single contract."""
    click.confirm(f"Deploy {contract_name}?", abort=True)


def _confirm_zero_address() -> None:
    click.confirm("Zero Address detected for initializer parameter; Continue?", abort=True)


def confirm_initializer_args(contract_name: str, init_args: InitArgs) -> None:
    """Asks the user to confirm the bound initializer parameters of a proxy deployment."""
    click.echo(f"\nInitializer parameters for {contract_name}")
    contains_zero_address = False
    for name, value in init_args.items():
        click.echo(f"\t{name}={value}")
        if not contains_zero_address:
            contains_zero_address = value == ZERO_ADDRESS
    _confirm_deployment(contract_name)
    if contains_zero_address:
        _confirm_zero_address()


def confirm_upgrade(
    contract_name: str,
    proxy_address: str,
    current_implementation: Optional[str],
    new_implementation: Optional[str] = None,
) -> None:
    """
    Asks the user to confirm repointing a proxy, before any new implementation
    is deployed. ``new_implementation`` is only known when it is reused.
    """
    target = new_implementation or "a new deployment"
    click.echo(
        f"\nRepoint proxy {proxy_address}\n"
        f"\tfrom {current_implementation or 'unknown'}\n"
        f"\tto   {target} ({contract_name})"
    )
    click.confirm("Continue?", abort=True)
