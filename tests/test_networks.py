import pytest

from proxy_deployment.constants import DEFAULT_CONFIRMATION_TIMEOUT, SignerSource
from proxy_deployment.exceptions import InvalidNetworkConfig, MissingEndpoint, UnknownNetwork
from proxy_deployment.networks import GasPolicy, parse_gas_policy, resolve_network

from tests.conftest import ADDRESS_A, ADDRESS_B

PROFILES = {
    "buildbear": {
        "rpc_url": "https://rpc.buildbear.io/example",
        "rpc_url_env": "SEPOLIA_RPC_URL",
        "chain_id": 26045,
        "signer": "hardware",
        "derivation_path": "m/44'/60'/0'/0/0",
        "gas_price": "auto",
    },
    "mainnet": {
        "rpc_url_env": "MAINNET_RPC_URL",
        "chain_id": 1,
        "signer": "hardware",
        "confirmation_timeout": 600,
    },
    "local": {"rpc_url": "http://127.0.0.1:8545", "chain_id": 31337},
}


def test_resolve_profile():
    network = resolve_network("buildbear", config=PROFILES, environ={})
    assert network.name == "buildbear"
    assert network.rpc_url == "https://rpc.buildbear.io/example"
    assert network.chain_id == 26045
    assert network.signer_source == SignerSource.HARDWARE_WALLET
    assert network.gas_policy.is_auto
    assert network.allowed_signers == ()
    assert network.derivation_path == "m/44'/60'/0'/0/0"
    assert network.confirmation_timeout == DEFAULT_CONFIRMATION_TIMEOUT


def test_local_signer_is_default():
    network = resolve_network("local", config=PROFILES, environ={"DEPLOYER_ACCOUNT": "deployer"})
    assert network.signer_source == SignerSource.LOCAL_KEY
    assert network.account_alias == "deployer"


def test_environment_overrides():
    environ = {
        "SEPOLIA_RPC_URL": "https://sepolia.example",
        "LEDGER_ACCOUNTS": f"{ADDRESS_A.lower()}, {ADDRESS_B}",
        "GAS_PRICE": "30 gwei",
        "CONFIRMATION_TIMEOUT": "42",
        "LEDGER_DERIVATION_PATH": "m/44'/60'/1'/0/0",
    }
    network = resolve_network("buildbear", config=PROFILES, environ=environ)
    assert network.rpc_url == "https://sepolia.example"
    assert network.allowed_signers == (ADDRESS_A, ADDRESS_B)
    assert network.gas_policy == GasPolicy(gas_price=30 * 10**9)
    assert network.confirmation_timeout == 42
    assert network.derivation_path == "m/44'/60'/1'/0/0"


def test_unknown_network():
    with pytest.raises(UnknownNetwork):
        resolve_network("goerli", config=PROFILES, environ={})


def test_missing_endpoint():
    with pytest.raises(MissingEndpoint, match="MAINNET_RPC_URL"):
        resolve_network("mainnet", config=PROFILES, environ={})

    network = resolve_network(
        "mainnet", config=PROFILES, environ={"MAINNET_RPC_URL": "https://mainnet.example"}
    )
    assert network.rpc_url == "https://mainnet.example"
    assert network.confirmation_timeout == 600
    assert network.derivation_path == "m/44'/60'/0'/0/0"


def test_chain_id_required():
    profiles = {"broken": {"rpc_url": "http://127.0.0.1:8545", "chain_id": 0}}
    with pytest.raises(InvalidNetworkConfig):
        resolve_network("broken", config=profiles, environ={})


def test_invalid_signer_source():
    profiles = {"broken": {"rpc_url": "http://127.0.0.1:8545", "chain_id": 1, "signer": "trezor"}}
    with pytest.raises(InvalidNetworkConfig):
        resolve_network("broken", config=profiles, environ={})


def test_invalid_allowed_signer():
    with pytest.raises(InvalidNetworkConfig):
        resolve_network("buildbear", config=PROFILES, environ={"LEDGER_ACCOUNTS": "0x1234"})


def test_configuration_errors_are_value_errors():
    with pytest.raises(ValueError):
        resolve_network("goerli", config=PROFILES, environ={})


def test_bundled_profiles():
    network = resolve_network("hardhat", environ={})
    assert network.chain_id == 31337
    network = resolve_network("buildbear", environ={})
    assert network.chain_id == 26045
    assert network.signer_source == SignerSource.HARDWARE_WALLET
    with pytest.raises(MissingEndpoint):
        resolve_network("mainnet", environ={})


@pytest.mark.parametrize(
    "value,expected",
    [
        (None, None),
        ("auto", None),
        (" AUTO ", None),
        (1000, 1000),
        ("1000", 1000),
        ("30 gwei", 30 * 10**9),
        ("1.5 gwei", 1_500_000_000),
    ],
)
def test_parse_gas_policy(value, expected):
    assert parse_gas_policy(value).gas_price == expected


@pytest.mark.parametrize("value", ["fast", "30 lightyears", "0", -1, "30 gwei please", True])
def test_parse_invalid_gas_policy(value):
    with pytest.raises(InvalidNetworkConfig):
        parse_gas_policy(value)


def test_gas_policy_transaction_kwargs():
    assert GasPolicy().transaction_kwargs() == {}
    assert GasPolicy(gas_price=7).transaction_kwargs() == {"gas_price": 7}
