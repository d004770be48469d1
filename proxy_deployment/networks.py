import os
import typing
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Mapping, NamedTuple, Optional, Tuple

from eth_typing import ChecksumAddress
from eth_utils import is_address, to_checksum_address
from web3 import Web3

from proxy_deployment.constants import (
    AUTO_GAS,
    CONFIRMATION_TIMEOUT_ENVVAR,
    DEFAULT_CONFIRMATION_TIMEOUT,
    DEFAULT_DERIVATION_PATH,
    DEPLOYER_ACCOUNT_ENVVAR,
    GAS_PRICE_ENVVAR,
    LEDGER_ACCOUNTS_ENVVAR,
    LEDGER_DERIVATION_PATH_ENVVAR,
    NETWORKS_FILEPATH,
    SignerSource,
)
from proxy_deployment.exceptions import InvalidNetworkConfig, MissingEndpoint, UnknownNetwork
from proxy_deployment.utils import _load_yaml


class GasPolicy(NamedTuple):
    """Either delegate gas pricing to the chain client (auto) or pin a price in wei."""

    gas_price: Optional[int] = None

    @property
    def is_auto(self) -> bool:
        return self.gas_price is None

    def transaction_kwargs(self) -> typing.Dict[str, int]:
        if self.is_auto:
            return {}
        return {"gas_price": self.gas_price}

    def __str__(self) -> str:
        return AUTO_GAS if self.is_auto else f"{self.gas_price} wei"


class NetworkProfile(NamedTuple):
    name: str
    rpc_url: str
    chain_id: int
    signer_source: SignerSource
    gas_policy: GasPolicy = GasPolicy()
    allowed_signers: Tuple[ChecksumAddress, ...] = ()
    derivation_path: Optional[str] = None
    account_alias: Optional[str] = None
    confirmation_timeout: int = DEFAULT_CONFIRMATION_TIMEOUT


def parse_gas_policy(value: typing.Any) -> GasPolicy:
    """
    Parses a gas price setting: 'auto', an integer amount of wei,
    or an amount with a unit such as '30 gwei'.
    """
    if value is None:
        return GasPolicy()
    if isinstance(value, str) and value.strip().lower() == AUTO_GAS:
        return GasPolicy()

    try:
        if isinstance(value, bool):
            raise ValueError(value)
        if isinstance(value, int):
            wei = value
        else:
            amount, *unit = str(value).split()
            if len(unit) > 1:
                raise ValueError(value)
            wei = int(Web3.to_wei(Decimal(amount), unit[0] if unit else "wei"))
    except (ValueError, InvalidOperation):
        raise InvalidNetworkConfig(
            f"Invalid gas price '{value}'; use 'auto', wei, or e.g. '30 gwei'"
        )

    if wei <= 0:
        raise InvalidNetworkConfig(f"Gas price must be positive, got {value}")
    return GasPolicy(gas_price=wei)


def _parse_allowed_signers(value: typing.Any) -> Tuple[ChecksumAddress, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        value = value.split(",")
    addresses = list()
    for entry in value:
        entry = str(entry).strip()
        if not entry:
            continue
        if not is_address(entry):
            raise InvalidNetworkConfig(f"Invalid allowed signer address '{entry}'")
        addresses.append(to_checksum_address(entry))
    return tuple(addresses)


def _parse_positive_int(value: typing.Any, field: str, network_name: str) -> int:
    try:
        result = int(value)
    except (TypeError, ValueError):
        raise InvalidNetworkConfig(f"{field} for network '{network_name}' must be an integer.")
    if result <= 0:
        raise InvalidNetworkConfig(f"{field} for network '{network_name}' must be positive.")
    return result


def load_network_profiles(filepath: Optional[Path] = None) -> typing.Dict[str, dict]:
    """Loads the named network profiles YAML."""
    config = _load_yaml(filepath or NETWORKS_FILEPATH) or dict()
    networks = config.get("networks")
    if not isinstance(networks, dict):
        raise InvalidNetworkConfig("Network profiles file missing 'networks' field.")
    return networks


def resolve_network(
    name: str,
    config: Optional[typing.Dict[str, dict]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> NetworkProfile:
    """
    Resolves a named network profile, applying environment overrides.
    Fails before any network call if the endpoint or chain id is missing.
    """
    environ = os.environ if environ is None else environ
    networks = load_network_profiles() if config is None else config

    profile = networks.get(name)
    if profile is None:
        known = ", ".join(sorted(networks)) or "none"
        raise UnknownNetwork(f"No profile for network '{name}' (known: {known}).")
    if not isinstance(profile, dict):
        raise InvalidNetworkConfig(f"Malformed profile for network '{name}'.")

    rpc_url_env = profile.get("rpc_url_env")
    rpc_url = (environ.get(rpc_url_env) if rpc_url_env else None) or profile.get("rpc_url")
    if not rpc_url or not str(rpc_url).strip():
        hint = f" Set {rpc_url_env}." if rpc_url_env else ""
        raise MissingEndpoint(f"No RPC URL configured for network '{name}'.{hint}")

    if not profile.get("chain_id"):
        raise InvalidNetworkConfig(f"chain_id is not set for network '{name}'.")
    chain_id = _parse_positive_int(profile["chain_id"], "chain_id", name)

    try:
        signer_source = SignerSource(profile.get("signer", SignerSource.LOCAL_KEY.value))
    except ValueError:
        choices = ", ".join(s.value for s in SignerSource)
        raise InvalidNetworkConfig(f"signer for network '{name}' must be one of: {choices}.")

    gas_policy = parse_gas_policy(environ.get(GAS_PRICE_ENVVAR) or profile.get("gas_price"))

    allowed_signers = _parse_allowed_signers(
        environ.get(LEDGER_ACCOUNTS_ENVVAR) or profile.get("allowed_signers")
    )

    derivation_path = environ.get(LEDGER_DERIVATION_PATH_ENVVAR) or profile.get("derivation_path")
    if signer_source == SignerSource.HARDWARE_WALLET and not derivation_path:
        derivation_path = DEFAULT_DERIVATION_PATH

    timeout = environ.get(CONFIRMATION_TIMEOUT_ENVVAR) or profile.get(
        "confirmation_timeout", DEFAULT_CONFIRMATION_TIMEOUT
    )

    return NetworkProfile(
        name=name,
        rpc_url=str(rpc_url).strip(),
        chain_id=chain_id,
        signer_source=signer_source,
        gas_policy=gas_policy,
        allowed_signers=allowed_signers,
        derivation_path=derivation_path,
        account_alias=environ.get(DEPLOYER_ACCOUNT_ENVVAR) or profile.get("account"),
        confirmation_timeout=_parse_positive_int(timeout, "confirmation_timeout", name),
    )
