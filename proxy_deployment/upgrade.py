from enum import IntEnum
from typing import Callable, Optional

from eth_typing import ChecksumAddress
from eth_utils import decode_hex, is_address, to_checksum_address

from proxy_deployment.artifacts import ContractSpec
from proxy_deployment.exceptions import (
    ImplementationDeployFailed,
    InvalidAddress,
    MissingProxyAddress,
    ProxyNotFound,
    StorageLayoutIncompatible,
    UnauthorizedUpgrader,
)
from proxy_deployment.layout import StorageLayoutValidator, UncheckedLayout
from proxy_deployment.records import UpgradeRecord, utc_timestamp
from proxy_deployment.workflow import Workflow


class UpgradeState(IntEnum):
    FAILED = -1
    INIT = 0
    PROXY_VALIDATED = 1
    IMPLEMENTATION_DEPLOYED = 2
    REPOINTED = 3
    REPORTED = 4


class UpgradeOrchestrator(Workflow):
    """
    Repoints an existing proxy at a new implementation.

    Never creates a proxy and never runs an initializer: the proxy address
    must come from a prior deployment and the repoint carries no calldata.
    """

    NAME = "upgrade"
    States = UpgradeState

    def __init__(
        self,
        network,
        signer,
        chain_client,
        resolver,
        emitter,
        layout_validator: Optional[StorageLayoutValidator] = None,
        confirm: Optional[Callable[..., None]] = None,
    ):
        super().__init__(network, signer, chain_client, resolver, emitter)
        self.layout_validator = layout_validator or UncheckedLayout()
        self.confirm = confirm

    def run(self, contract_name: str, proxy_address: Optional[str]) -> UpgradeRecord:
        return self._execute(contract_name, proxy_address)

    def _run(self, contract_name, proxy_address) -> UpgradeRecord:
        if not proxy_address:
            raise MissingProxyAddress(
                f"No proxy address supplied for {contract_name}; upgrades only repoint "
                "proxies recorded by a prior deployment."
            )
        if not is_address(proxy_address):
            raise InvalidAddress(f"Proxy address '{proxy_address}' is not a valid address.")
        proxy_address = to_checksum_address(proxy_address)
        self.details["proxy"] = proxy_address
        spec = self.resolver.resolve(contract_name, require_initializer=False)

        with self.chain.connect():
            return self._upgrade(spec, proxy_address)

    def _upgrade(self, spec: ContractSpec, proxy_address: ChecksumAddress) -> UpgradeRecord:
        current = self._validate_proxy(proxy_address)
        self.details["previous_implementation"] = current
        self._advance(UpgradeState.PROXY_VALIDATED)

        with self._step(StorageLayoutIncompatible):
            self.layout_validator.validate(proxy_address, current, spec)
        with self._step(ProxyNotFound):
            reused = self._is_current_implementation(spec, current)
        if self.confirm:
            self.confirm(spec.name, proxy_address, current, current if reused else None)

        signer_address = self.signer.get_address()
        if reused:
            print(f"(i) {current} already runs {spec.name}; reusing it.")
            implementation = current
        else:
            implementation = self._deploy_implementation(spec)
        self.details["implementation"] = implementation
        self._advance(UpgradeState.IMPLEMENTATION_DEPLOYED)

        with self._step(UnauthorizedUpgrader):
            submitted = self.chain.upgrade_proxy_to(proxy_address, implementation, self.signer)
        if submitted.tx_hash:
            self.details["tx_hash"] = submitted.tx_hash
            with self._step(UnauthorizedUpgrader):
                confirmation = self.chain.wait_for_confirmation(
                    submitted.tx_hash, timeout=self.network.confirmation_timeout
                )
            if not confirmation.succeeded:
                raise UnauthorizedUpgrader(
                    f"Repoint of {proxy_address} ({submitted.tx_hash}) reverted; "
                    f"is {signer_address} the upgrader?"
                )
        else:
            print("(i) The chain layer exposed no discrete transaction for the repoint.")
        self._advance(UpgradeState.REPOINTED)

        record = UpgradeRecord(
            contract_name=spec.name,
            proxy_address=proxy_address,
            previous_implementation_address=current,
            new_implementation_address=implementation,
            implementation_reused=reused,
            upgrade_tx_hash=submitted.tx_hash,
            network=self.network.name,
            chain_id=self.network.chain_id,
            signer_address=signer_address,
            timestamp=utc_timestamp(),
        )
        self.emitter.emit(record)
        self._advance(UpgradeState.REPORTED)
        return record

    def _validate_proxy(self, proxy_address: ChecksumAddress) -> ChecksumAddress:
        with self._step(ProxyNotFound):
            code = self.chain.get_code(proxy_address)
            current = self.chain.get_proxy_implementation(proxy_address) if code else None
        if not code:
            raise ProxyNotFound(f"No contract code at {proxy_address}.")
        if current is None:
            raise ProxyNotFound(
                f"Implementation slot for contract at {proxy_address} is empty. "
                "Are you sure this is an EIP1967-compatible proxy?"
            )
        return current

    def _deploy_implementation(self, spec: ContractSpec) -> ChecksumAddress:
        with self._step(ImplementationDeployFailed):
            submitted = self.chain.deploy_implementation(spec, self.signer)
            if not submitted.tx_hash:
                raise ImplementationDeployFailed(f"No transaction was returned for {spec.name}.")
            confirmation = self.chain.wait_for_confirmation(
                submitted.tx_hash, timeout=self.network.confirmation_timeout
            )
        if not confirmation.succeeded or not confirmation.contract_address:
            raise ImplementationDeployFailed(
                f"{spec.name} implementation deployment {submitted.tx_hash} reverted."
            )
        return confirmation.contract_address

    def _is_current_implementation(self, spec: ContractSpec, current: ChecksumAddress) -> bool:
        if not spec.runtime_bytecode:
            return False
        return self.chain.get_code(current) == decode_hex(spec.runtime_bytecode)
