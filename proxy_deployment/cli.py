import os
import re
from collections import OrderedDict
from pathlib import Path
from typing import Optional

import click
from dotenv import load_dotenv
from web3 import Web3

from proxy_deployment.artifacts import ContractFactoryResolver
from proxy_deployment.chain import ApeChainClient
from proxy_deployment.confirm import confirm_initializer_args, confirm_upgrade
from proxy_deployment.constants import (
    DEFAULT_INITIALIZER,
    PROXY_ADDRESS_ENVVAR_PREFIX,
    ROLE_PARAMETERS,
    ZERO_ADDRESS,
)
from proxy_deployment.deploy import DeploymentOrchestrator, DeploymentState
from proxy_deployment.exceptions import WorkflowError, WorkflowFailed
from proxy_deployment.networks import NetworkProfile, load_network_profiles, resolve_network
from proxy_deployment.options import (
    autosign_option,
    network_option,
    networks_file_option,
    proxy_address_option,
    proxy_kind_option,
    registry_filepath_option,
)
from proxy_deployment.params import load_initializer_params
from proxy_deployment.registry import proxy_address_from_registry
from proxy_deployment.report import ReportEmitter
from proxy_deployment.signers import SignerResolver
from proxy_deployment.types import ChecksumAddress, MinInt
from proxy_deployment.upgrade import UpgradeOrchestrator, UpgradeState


# collaborators, looked up when a command runs
chain_client_factory = ApeChainClient
signer_resolver_factory = SignerResolver
contract_resolver_factory = ContractFactoryResolver


def _resolve_network(network_name: str, networks_file: Optional[Path]) -> NetworkProfile:
    load_dotenv()
    config = load_network_profiles(networks_file) if networks_file else None
    return resolve_network(network_name, config=config)


def _print_run_info(network: NetworkProfile, signer_address: str) -> None:
    print(
        f"Account: {signer_address}",
        f"Network: {network.name}",
        f"Chain ID: {network.chain_id}",
        f"Signer: {network.signer_source.value}",
        f"Gas Price: {network.gas_policy}",
        sep="\n",
    )


def _fail(emitter: ReportEmitter, workflow: str, reached, error: WorkflowError):
    emitter.emit_failure(WorkflowFailed(workflow, reached, error))
    raise SystemExit(1)


def proxy_address_envvar(name: str) -> str:
    """e.g. 'vehicles' -> PROXY_ADDRESS_VEHICLES"""
    return PROXY_ADDRESS_ENVVAR_PREFIX + re.sub(r"[^A-Za-z0-9]+", "_", name).strip("_").upper()


def find_proxy_address(
    name: str, network: NetworkProfile, registry_filepath: Optional[Path] = None
) -> Optional[str]:
    """Looks up a recorded proxy address: environment first, then the registry."""
    address = os.environ.get(proxy_address_envvar(name))
    if address:
        return address.strip()
    if registry_filepath and registry_filepath.exists():
        return proxy_address_from_registry(registry_filepath, network.chain_id, name)
    return None


@click.group()
def cli():
    """Deploy and upgrade contracts behind transparent proxies."""


@cli.command()
@click.argument("contract_name")
@network_option
@click.option("--manager", type=ChecksumAddress(), help="Manager role holder")
@click.option("--pauser", type=ChecksumAddress(), help="Pauser role holder")
@click.option("--upgrader", type=ChecksumAddress(), help="Upgrader role holder")
@click.option("--royalty-receiver", type=ChecksumAddress(), help="Royalty receiver")
@click.option(
    "--validator",
    type=ChecksumAddress(allow_zero=True),
    default=ZERO_ADDRESS,
    help="Initial validator; the zero address means no validator yet",
)
@click.option("--name", "token_name", type=click.STRING, help="Display name")
@click.option("--symbol", type=click.STRING, help="Symbol")
@click.option("--lock-duration", type=MinInt(0), default=0, help="Lock duration (0 for no lock)")
@click.option(
    "--params-file",
    help="YAML with an 'initializer' mapping of parameter names to values",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
)
@click.option(
    "--positional",
    is_flag=True,
    help="Bind the role options by position instead of by initializer parameter name",
)
@click.option("--initializer", default=DEFAULT_INITIALIZER, show_default=True)
@proxy_kind_option
@registry_filepath_option
@autosign_option
@networks_file_option
def deploy(
    contract_name,
    network_name,
    manager,
    pauser,
    upgrader,
    royalty_receiver,
    validator,
    token_name,
    symbol,
    lock_duration,
    params_file,
    positional,
    initializer,
    kind,
    registry_filepath,
    autosign,
    networks_file,
):
    """Deploy CONTRACT_NAME behind a new, initialized proxy."""
    emitter = ReportEmitter(registry_filepath=registry_filepath)
    try:
        network = _resolve_network(network_name, networks_file)
        signer = signer_resolver_factory().resolve(network)
        signer_address = signer.get_address()
        if params_file:
            values = load_initializer_params(params_file, deployer_address=signer_address)
        else:
            options = OrderedDict(
                zip(
                    ROLE_PARAMETERS,
                    (
                        manager,
                        pauser,
                        upgrader,
                        royalty_receiver,
                        validator,
                        token_name,
                        symbol,
                        lock_duration,
                    ),
                )
            )
            values = OrderedDict((k, v) for k, v in options.items() if v is not None)
            if positional:
                values = list(values.values())
    except WorkflowError as e:
        _fail(emitter, DeploymentOrchestrator.NAME, DeploymentState.INIT, e)

    _print_run_info(network, signer_address)
    orchestrator = DeploymentOrchestrator(
        network=network,
        signer=signer,
        chain_client=chain_client_factory(network),
        resolver=contract_resolver_factory(initializer=initializer),
        emitter=emitter,
        kind=kind,
        confirm=None if autosign else confirm_initializer_args,
    )
    try:
        orchestrator.run(contract_name, values)
    except WorkflowFailed:
        raise SystemExit(1)


@cli.command()
@click.argument("contract_name")
@network_option
@proxy_address_option
@click.option(
    "--proxy-name",
    help=(
        "Name the proxy is recorded under, for the registry and the "
        "PROXY_ADDRESS_<NAME> environment variable (defaults to CONTRACT_NAME)"
    ),
)
@registry_filepath_option
@autosign_option
@networks_file_option
def upgrade(
    contract_name,
    network_name,
    proxy_address,
    proxy_name,
    registry_filepath,
    autosign,
    networks_file,
):
    """Repoint an existing proxy at a new CONTRACT_NAME implementation."""
    emitter = ReportEmitter(registry_filepath=registry_filepath)
    try:
        network = _resolve_network(network_name, networks_file)
        proxy_address = proxy_address or find_proxy_address(
            proxy_name or contract_name, network, registry_filepath
        )
        signer = signer_resolver_factory().resolve(network)
        signer_address = signer.get_address()
    except WorkflowError as e:
        _fail(emitter, UpgradeOrchestrator.NAME, UpgradeState.INIT, e)

    _print_run_info(network, signer_address)
    orchestrator = UpgradeOrchestrator(
        network=network,
        signer=signer,
        chain_client=chain_client_factory(network),
        resolver=contract_resolver_factory(),
        emitter=emitter,
        confirm=None if autosign else confirm_upgrade,
    )
    try:
        orchestrator.run(contract_name, proxy_address)
    except WorkflowFailed:
        raise SystemExit(1)


@cli.command(name="check-balance")
@network_option
@networks_file_option
def check_balance(network_name, networks_file):
    """Print the signer address and its balance."""
    try:
        network = _resolve_network(network_name, networks_file)
        signer = signer_resolver_factory().resolve(network)
        address = signer.get_address()
        chain_client = chain_client_factory(network)
        with chain_client.connect():
            balance = chain_client.get_balance(address)
    except WorkflowError as e:
        click.secho(f"{e.kind}: {e}", fg="red", err=True)
        raise SystemExit(1)

    click.echo(f"Account address: {address}")
    click.echo(f"Balance in wei: {balance}")
    click.echo(f"Balance in ETH: {Web3.from_wei(balance, 'ether')}")


if __name__ == "__main__":
    cli()
