from abc import ABC, abstractmethod
from contextlib import ExitStack, contextmanager
from typing import NamedTuple, Optional

from ape import networks
from ape.exceptions import ApeException, ContractLogicError
from eth_typing import ChecksumAddress
from eth_utils import to_hex
from web3.exceptions import TimeExhausted

from proxy_deployment.artifacts import ContractSpec
from proxy_deployment.constants import (
    EIP1967_ADMIN_SLOT,
    EIP1967_IMPLEMENTATION_SLOT,
    TRANSPARENT_PROXY_KIND,
)
from proxy_deployment.exceptions import (
    ChainUnreachable,
    ConfirmationTimeout,
    DeploymentReverted,
    InvalidNetworkConfig,
    ProxyNotFound,
    SignerUnavailable,
    UnauthorizedUpgrader,
)
from proxy_deployment.networks import NetworkProfile
from proxy_deployment.signers import Signer
from proxy_deployment.utils import address_from_storage, checksum_or_none, get_oz_dependency


class SubmittedTransaction(NamedTuple):
    """A transaction handed to the chain but not yet confirmed."""

    tx_hash: Optional[str]
    implementation_address: Optional[ChecksumAddress] = None


class Confirmation(NamedTuple):
    tx_hash: str
    succeeded: bool
    contract_address: Optional[ChecksumAddress] = None
    block_number: Optional[int] = None


class ChainClient(ABC):
    """The chain-facing operations the orchestrators rely on."""

    @contextmanager
    def connect(self):
        """Opened by an orchestrator right before its first chain step."""
        yield self

    @abstractmethod
    def deploy_proxy_and_initialize(
        self,
        spec: ContractSpec,
        init_calldata: bytes,
        signer: Signer,
        kind: str = TRANSPARENT_PROXY_KIND,
    ) -> SubmittedTransaction:
        """
        Deploys the implementation, then submits the proxy deployment whose
        constructor calls the initializer. Returns the (unconfirmed) proxy transaction.
        """
        raise NotImplementedError

    @abstractmethod
    def deploy_implementation(self, spec: ContractSpec, signer: Signer) -> SubmittedTransaction:
        raise NotImplementedError

    @abstractmethod
    def wait_for_confirmation(self, tx_hash: str, timeout: int) -> Confirmation:
        """Blocks until the transaction is mined; raises ConfirmationTimeout."""
        raise NotImplementedError

    @abstractmethod
    def upgrade_proxy_to(
        self,
        proxy_address: ChecksumAddress,
        implementation_address: ChecksumAddress,
        signer: Signer,
    ) -> SubmittedTransaction:
        """Repoints the proxy without calling into the new implementation."""
        raise NotImplementedError

    @abstractmethod
    def get_code(self, address: ChecksumAddress) -> bytes:
        raise NotImplementedError

    @abstractmethod
    def get_storage(self, address: ChecksumAddress, slot: int) -> bytes:
        raise NotImplementedError

    @abstractmethod
    def get_balance(self, address: ChecksumAddress) -> int:
        raise NotImplementedError

    def get_proxy_implementation(self, proxy_address: ChecksumAddress) -> Optional[ChecksumAddress]:
        slot = self.get_storage(proxy_address, EIP1967_IMPLEMENTATION_SLOT)
        return address_from_storage(slot)

    def get_proxy_admin(self, proxy_address: ChecksumAddress) -> Optional[ChecksumAddress]:
        slot = self.get_storage(proxy_address, EIP1967_ADMIN_SLOT)
        return address_from_storage(slot)


class ApeChainClient(ChainClient):
    """
    ChainClient over an ape provider connection.

    Transactions are prepared and signed through ape accounts, then sent and
    awaited with the provider's web3 instance so that submission and
    confirmation remain separate steps.
    """

    def __init__(self, network: NetworkProfile):
        self.network = network
        self._provider = None

    @contextmanager
    def connect(self):
        with ExitStack() as stack:
            try:
                provider = stack.enter_context(
                    networks.parse_network_choice(self.network.rpc_url)
                )
                chain_id = provider.chain_id
            except (ApeException, OSError) as e:
                raise ChainUnreachable(
                    f"Could not connect to network '{self.network.name}' at "
                    f"{self.network.rpc_url}: {e}"
                ) from e
            if chain_id != self.network.chain_id:
                raise InvalidNetworkConfig(
                    f"chain_id of network '{self.network.name}' ({self.network.chain_id}) does not "
                    f"match chain_id of {self.network.rpc_url} ({chain_id})."
                )
            self._provider = provider
            try:
                yield self
            finally:
                self._provider = None

    @property
    def web3(self):
        if self._provider is None:
            raise RuntimeError("ApeChainClient is not connected.")
        return self._provider.web3

    def _transaction_kwargs(self, signer: Signer) -> dict:
        kwargs = {"sender": signer.get_address()}
        kwargs.update(self.network.gas_policy.transaction_kwargs())
        return kwargs

    def _submit(self, txn, signer: Signer) -> str:
        txn = signer.account.prepare_transaction(txn)
        signed = signer.sign_transaction(txn)
        if signed is None:
            raise SignerUnavailable("Transaction was not signed.")
        tx_hash = self.web3.eth.send_raw_transaction(signed.serialize_transaction())
        return to_hex(tx_hash)

    def deploy_implementation(self, spec: ContractSpec, signer: Signer) -> SubmittedTransaction:
        print(f"\nDeploying {spec.name} implementation...")
        txn = spec.container.constructor.serialize_transaction(**self._transaction_kwargs(signer))
        return SubmittedTransaction(tx_hash=self._submit(txn, signer))

    def deploy_proxy_and_initialize(
        self,
        spec: ContractSpec,
        init_calldata: bytes,
        signer: Signer,
        kind: str = TRANSPARENT_PROXY_KIND,
    ) -> SubmittedTransaction:
        if kind != TRANSPARENT_PROXY_KIND:
            raise ValueError(f"Unsupported proxy kind '{kind}'")

        implementation_tx = self.deploy_implementation(spec, signer)
        confirmation = self.wait_for_confirmation(
            implementation_tx.tx_hash, timeout=self.network.confirmation_timeout
        )
        if not confirmation.succeeded or not confirmation.contract_address:
            raise DeploymentReverted(
                f"{spec.name} implementation deployment {confirmation.tx_hash} reverted."
            )
        implementation = confirmation.contract_address

        proxy_container = get_oz_dependency().TransparentUpgradeableProxy
        print(
            f"\nDeploying {proxy_container.contract_type.name} for {spec.name} "
            f"(implementation {implementation}), calling {spec.initializer} on construction."
        )
        txn = proxy_container.constructor.serialize_transaction(
            implementation,
            signer.get_address(),  # initial owner of the ProxyAdmin
            init_calldata,
            **self._transaction_kwargs(signer),
        )
        return SubmittedTransaction(
            tx_hash=self._submit(txn, signer), implementation_address=implementation
        )

    def wait_for_confirmation(self, tx_hash: str, timeout: int) -> Confirmation:
        print(f"Waiting up to {timeout}s for {tx_hash}...")
        try:
            receipt = self.web3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
        except TimeExhausted:
            raise ConfirmationTimeout(
                f"Transaction {tx_hash} was not confirmed within {timeout}s; "
                "it may still be mined.",
                tx_hash=tx_hash,
            )
        return Confirmation(
            tx_hash=tx_hash,
            succeeded=receipt["status"] == 1,
            contract_address=checksum_or_none(receipt.get("contractAddress")),
            block_number=receipt["blockNumber"],
        )

    def upgrade_proxy_to(
        self,
        proxy_address: ChecksumAddress,
        implementation_address: ChecksumAddress,
        signer: Signer,
    ) -> SubmittedTransaction:
        admin_address = self.get_proxy_admin(proxy_address)
        if admin_address is None:
            raise ProxyNotFound(
                f"Admin slot for contract at {proxy_address} is empty. "
                "Are you sure this is an EIP1967-compatible proxy?"
            )
        proxy_admin = get_oz_dependency().ProxyAdmin.at(admin_address)
        print(
            f"\nRepointing {proxy_address} to {implementation_address} "
            f"via ProxyAdmin {admin_address}"
        )
        try:
            txn = proxy_admin.upgradeAndCall.as_transaction(
                proxy_address,
                implementation_address,
                b"",  # no call into the new implementation
                **self._transaction_kwargs(signer),
            )
            tx_hash = self._submit(txn, signer)
        except ContractLogicError as e:
            raise UnauthorizedUpgrader(str(e)) from e
        return SubmittedTransaction(tx_hash=tx_hash)

    def get_code(self, address: ChecksumAddress) -> bytes:
        return bytes(self.web3.eth.get_code(address))

    def get_storage(self, address: ChecksumAddress, slot: int) -> bytes:
        return bytes(self.web3.eth.get_storage_at(address, slot))

    def get_balance(self, address: ChecksumAddress) -> int:
        return self.web3.eth.get_balance(address)
