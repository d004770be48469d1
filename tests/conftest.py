from collections import OrderedDict
from contextlib import contextmanager
from types import SimpleNamespace

import pytest
from eth_abi import decode
from eth_utils import decode_hex, to_checksum_address
from ethpm_types import MethodABI
from ethpm_types.abi import ABIType

from proxy_deployment.artifacts import ContractFactoryResolver
from proxy_deployment.chain import ChainClient, Confirmation, SubmittedTransaction
from proxy_deployment.constants import (
    EIP1967_ADMIN_SLOT,
    EIP1967_IMPLEMENTATION_SLOT,
    SignerSource,
)
from proxy_deployment.exceptions import (
    ChainUnreachable,
    ConfirmationTimeout,
    UnauthorizedUpgrader,
)
from proxy_deployment.networks import NetworkProfile
from proxy_deployment.records import DeploymentRecord
from proxy_deployment.report import ReportEmitter
from proxy_deployment.signers import LocalKeySigner

# Common constants
ADDRESS_A = to_checksum_address("0x" + "a" * 40)
ADDRESS_B = to_checksum_address("0x" + "b" * 40)
ADDRESS_C = to_checksum_address("0x" + "c" * 40)
ADDRESS_D = to_checksum_address("0x" + "d" * 40)

PLOTS_INITIALIZER = [
    ("_manager", "address"),
    ("_pauser", "address"),
    ("_upgrader", "address"),
    ("_royaltyReceiver", "address"),
    ("_validator", "address"),
    ("_name", "string"),
    ("_symbol", "string"),
    ("_lockDuration", "uint256"),
]

PLOTS_RUNTIME = "0x6080604052600a"
PLOTS_V2_RUNTIME = "0x6080604052600b"


# Utility functions
def abi_inputs(parameters):
    return [p if isinstance(p, ABIType) else ABIType(name=p[0], type=p[1]) for p in parameters]


def make_container(
    name,
    initializer=PLOTS_INITIALIZER,
    runtime=PLOTS_RUNTIME,
    bytecode="0x6080",
    initializer_name="initialize",
):
    methods = []
    if initializer is not None:
        methods.append(MethodABI(name=initializer_name, inputs=abi_inputs(initializer)))
    methods.append(MethodABI(name="pause"))
    contract_type = SimpleNamespace(
        name=name,
        abi=[{"type": "function", "name": m.name} for m in methods],
        methods=methods,
        deployment_bytecode=SimpleNamespace(bytecode=bytecode),
        runtime_bytecode=SimpleNamespace(bytecode=runtime),
    )
    return SimpleNamespace(contract_type=contract_type)


def storage_word(address):
    return b"\x00" * 12 + decode_hex(address)


def make_deployment_record(
    name="TCG_World_Plots", proxy=ADDRESS_B, implementation=ADDRESS_C, chain_id=26045
):
    return DeploymentRecord(
        contract_name=name,
        proxy_address=proxy,
        implementation_address=implementation,
        deployment_tx_hash="0x" + "1" * 64,
        network="buildbear",
        chain_id=chain_id,
        signer_address=ADDRESS_A,
        block_number=12,
        initializer_args=dict(),
        timestamp="2024-01-01T00:00:00+00:00",
    )


class FakeAccount:
    def __init__(self, address):
        self.address = address

    def sign_transaction(self, txn):
        return txn


class FakeAccountManager:
    def __init__(self, aliases=None):
        self.aliases = aliases or dict()

    def load(self, alias):
        try:
            return self.aliases[alias]
        except KeyError:
            raise IndexError(f"No account with alias '{alias}'.")

    def __getitem__(self, address):
        for account in self.aliases.values():
            if account.address == address:
                return account
        raise KeyError(address)


class FakeLedgerDevice:
    def __init__(self, address):
        self.address = address
        self.reads = 0

    def get_address(self):
        self.reads += 1
        return self.address


class RecordingEmitter(ReportEmitter):
    def __init__(self, registry_filepath=None):
        super().__init__(registry_filepath=registry_filepath)
        self.records = []
        self.failures = []

    def emit(self, record):
        self.records.append(record)
        super().emit(record)

    def emit_failure(self, failure):
        self.failures.append(failure)
        super().emit_failure(failure)


class FakeChainClient(ChainClient):
    """In-memory chain: transparent proxies, ProxyAdmin owners and initializer state."""

    def __init__(self):
        self.code = dict()
        self.storage = dict()
        self.receipts = dict()
        self.admin_owners = dict()
        self.roles = dict()  # proxy -> initializer arguments as decoded on chain
        self.initializations = dict()  # proxy -> number of initializer calls
        self.calls = []
        self.revert_proxy = False
        self.revert_implementation = False
        self.time_out = False
        self.discrete_upgrade_tx = True
        self.unreachable = False
        self._counter = 0

    @contextmanager
    def connect(self):
        self.calls.append("connect")
        if self.unreachable:
            raise ChainUnreachable("Could not connect to network 'hardhat': connection refused")
        yield self

    def _new_address(self):
        self._counter += 1
        return to_checksum_address("0xc0de" + f"{self._counter:036x}")

    def _mine(self, succeeded, contract_address=None):
        self._counter += 1
        tx_hash = "0x" + f"{self._counter:064x}"
        self.receipts[tx_hash] = Confirmation(
            tx_hash=tx_hash,
            succeeded=succeeded,
            contract_address=contract_address if succeeded else None,
            block_number=self._counter,
        )
        return tx_hash

    def deploy_implementation(self, spec, signer):
        self.calls.append("deploy_implementation")
        if self.revert_implementation:
            return SubmittedTransaction(tx_hash=self._mine(False))
        address = self._new_address()
        self.code[address] = decode_hex(spec.runtime_bytecode)
        return SubmittedTransaction(tx_hash=self._mine(True, address))

    def deploy_proxy_and_initialize(self, spec, init_calldata, signer, kind="transparent"):
        self.calls.append("deploy_proxy_and_initialize")
        implementation = self.receipts[self.deploy_implementation(spec, signer).tx_hash]
        if self.revert_proxy:
            return SubmittedTransaction(
                tx_hash=self._mine(False), implementation_address=implementation.contract_address
            )

        proxy, admin = self._new_address(), self._new_address()
        self.code[proxy] = b"\x60\x80proxy"
        self.code[admin] = b"\x60\x80admin"
        self.admin_owners[admin] = signer.get_address()
        self.storage[(proxy, EIP1967_IMPLEMENTATION_SLOT)] = storage_word(
            implementation.contract_address
        )
        self.storage[(proxy, EIP1967_ADMIN_SLOT)] = storage_word(admin)

        assert init_calldata[:4] == decode_hex(spec.initializer_selector)
        values = decode(list(spec.initializer_arg_types), init_calldata[4:])
        self.roles[proxy] = OrderedDict(zip(spec.initializer_arg_order, values))
        self.initializations[proxy] = 1
        return SubmittedTransaction(
            tx_hash=self._mine(True, proxy), implementation_address=implementation.contract_address
        )

    def wait_for_confirmation(self, tx_hash, timeout):
        self.calls.append("wait_for_confirmation")
        if self.time_out:
            raise ConfirmationTimeout(f"{tx_hash} not confirmed within {timeout}s", tx_hash=tx_hash)
        return self.receipts[tx_hash]

    def upgrade_proxy_to(self, proxy_address, implementation_address, signer):
        self.calls.append("upgrade_proxy_to")
        admin = self.get_proxy_admin(proxy_address)
        owner = self.admin_owners[admin]
        if signer.get_address() != owner:
            raise UnauthorizedUpgrader(f"OwnableUnauthorizedAccount({signer.get_address()})")
        self.storage[(proxy_address, EIP1967_IMPLEMENTATION_SLOT)] = storage_word(
            implementation_address
        )
        if not self.discrete_upgrade_tx:
            return SubmittedTransaction(tx_hash=None)
        return SubmittedTransaction(tx_hash=self._mine(True))

    def get_code(self, address):
        return self.code.get(address, b"")

    def get_storage(self, address, slot):
        return self.storage.get((address, slot), b"\x00" * 32)

    def get_balance(self, address):
        return 10**18


# Fixtures
@pytest.fixture
def network():
    return NetworkProfile(
        name="hardhat",
        rpc_url="http://127.0.0.1:8545",
        chain_id=31337,
        signer_source=SignerSource.LOCAL_KEY,
        account_alias="deployer",
        confirmation_timeout=5,
    )


@pytest.fixture
def deployer_account():
    return FakeAccount(ADDRESS_A)


@pytest.fixture
def signer(deployer_account):
    return LocalKeySigner(deployer_account)


@pytest.fixture
def containers():
    return {
        "TCG_World_Plots": make_container("TCG_World_Plots"),
        "TCG_World_Plots_Updated": make_container(
            "TCG_World_Plots_Updated", initializer=None, runtime=PLOTS_V2_RUNTIME
        ),
        "IPlots": make_container("IPlots", bytecode=None),
        "NoInitializer": make_container("NoInitializer", initializer=None),
    }


@pytest.fixture
def resolver(containers):
    def lookup(name):
        try:
            return containers[name]
        except KeyError:
            raise AttributeError(name)

    return ContractFactoryResolver(container_lookup=lookup)


@pytest.fixture
def chain_client():
    return FakeChainClient()


@pytest.fixture
def emitter():
    return RecordingEmitter()


@pytest.fixture
def plots_args():
    # manager, pauser, upgrader, royalty receiver, validator, name, symbol, lock duration
    return [ADDRESS_A, ADDRESS_A, ADDRESS_A, ADDRESS_A, "0x0", "Plots", "PLT", 0]
