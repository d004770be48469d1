from abc import ABC, abstractmethod
from typing import Callable, Optional

from ape import accounts
from ape.api import AccountAPI, TransactionAPI
from eth_typing import ChecksumAddress
from eth_utils import is_address, to_checksum_address

from proxy_deployment.constants import SignerSource
from proxy_deployment.exceptions import SignerMismatch, SignerUnavailable
from proxy_deployment.networks import NetworkProfile


class Signer(ABC):
    """
    A transaction-signing identity.

    Orchestrators depend only on this capability, never on the kind of key
    behind it. The address is always read back from the key or device.
    """

    derivation_path: Optional[str] = None

    @abstractmethod
    def get_address(self) -> ChecksumAddress:
        raise NotImplementedError

    @abstractmethod
    def sign_transaction(self, txn: TransactionAPI) -> Optional[TransactionAPI]:
        raise NotImplementedError

    @property
    @abstractmethod
    def account(self) -> AccountAPI:
        """The ape account used to prepare (nonce, gas) transactions for this signer."""
        raise NotImplementedError


class LocalKeySigner(Signer):
    """Signs with a key held in the local ape account store."""

    def __init__(self, account: AccountAPI):
        self._account = account

    @property
    def account(self) -> AccountAPI:
        return self._account

    def get_address(self) -> ChecksumAddress:
        return to_checksum_address(self._account.address)

    def sign_transaction(self, txn: TransactionAPI) -> Optional[TransactionAPI]:
        return self._account.sign_transaction(txn)


class HardwareWalletSigner(Signer):
    """Signs on a ledger device at a fixed derivation path."""

    def __init__(self, device, derivation_path: str, account_lookup: Callable[[str], AccountAPI]):
        self._device = device
        self._account_lookup = account_lookup
        self.derivation_path = derivation_path

    @property
    def account(self) -> AccountAPI:
        return self._account_lookup(self.get_address())

    def get_address(self) -> ChecksumAddress:
        # live round trip: never trust a cached address
        try:
            address = self._device.get_address()
        except Exception as e:
            raise SignerUnavailable(
                f"Could not read address from hardware wallet at {self.derivation_path}: {e}"
            ) from e
        if not is_address(address):
            raise SignerUnavailable(f"Hardware wallet returned malformed address '{address}'")
        return to_checksum_address(address)

    def sign_transaction(self, txn: TransactionAPI) -> Optional[TransactionAPI]:
        return self.account.sign_transaction(txn)


def _ledger_device(derivation_path: str):
    """Opens a ledger device client for the derivation path (requires ape-ledger)."""
    try:
        from ape_ledger.client import get_device
        from ape_ledger.hdpath import HDAccountPath
    except ImportError:
        raise SignerUnavailable(
            "Please install the ape-ledger plugin to sign with a hardware wallet."
        )
    return get_device(HDAccountPath(derivation_path))


class SignerResolver:
    """Produces the signer for a network profile."""

    def __init__(self, account_manager=None, device_factory: Optional[Callable] = None):
        self._accounts = account_manager if account_manager is not None else accounts
        self._device_factory = device_factory or _ledger_device

    def resolve(self, network: NetworkProfile) -> Signer:
        if network.signer_source == SignerSource.HARDWARE_WALLET:
            signer = self._resolve_hardware(network)
        else:
            signer = self._resolve_local(network)

        address = signer.get_address()
        if network.allowed_signers and address not in network.allowed_signers:
            allowed = ", ".join(network.allowed_signers)
            raise SignerMismatch(
                f"Signer {address} is not allowed on network '{network.name}' (allowed: {allowed})."
            )
        return signer

    def _resolve_local(self, network: NetworkProfile) -> LocalKeySigner:
        if not network.account_alias:
            raise SignerUnavailable(
                f"No local account configured for network '{network.name}'; set DEPLOYER_ACCOUNT."
            )
        try:
            account = self._accounts.load(network.account_alias)
        except (IndexError, KeyError) as e:
            raise SignerUnavailable(f"No local account named '{network.account_alias}'.") from e
        return LocalKeySigner(account)

    def _resolve_hardware(self, network: NetworkProfile) -> HardwareWalletSigner:
        if not network.derivation_path:
            raise SignerUnavailable(
                f"No hardware wallet derivation path configured for network '{network.name}'."
            )
        try:
            device = self._device_factory(network.derivation_path)
        except SignerUnavailable:
            raise
        except Exception as e:
            raise SignerUnavailable(f"Could not connect to hardware wallet: {e}") from e
        return HardwareWalletSigner(
            device=device,
            derivation_path=network.derivation_path,
            account_lookup=self._lookup_account,
        )

    def _lookup_account(self, address: ChecksumAddress) -> AccountAPI:
        try:
            return self._accounts[address]
        except (IndexError, KeyError) as e:
            raise SignerUnavailable(
                f"Hardware wallet account {address} is not registered with ape; "
                "add it with 'ape ledger add'."
            ) from e
