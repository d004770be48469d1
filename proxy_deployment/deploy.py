from enum import IntEnum
from typing import Any, Callable, Mapping, Optional, Sequence, Union

from eth_typing import ChecksumAddress

from proxy_deployment.constants import TRANSPARENT_PROXY_KIND
from proxy_deployment.exceptions import DeploymentReverted
from proxy_deployment.params import (
    InitArgs,
    bind_initializer_args,
    encode_initializer_call,
    format_init_args,
)
from proxy_deployment.records import DeploymentRecord, utc_timestamp
from proxy_deployment.workflow import Workflow


class DeploymentState(IntEnum):
    FAILED = -1
    INIT = 0
    ARGS_ASSEMBLED = 1
    PROXY_SUBMITTED = 2
    CONFIRMED = 3
    REPORTED = 4


class DeploymentOrchestrator(Workflow):
    """
    First-time deployment of an initialized proxy + implementation pair.

    There are no automatic retries: running again after a failure deploys a
    new proxy, it never resumes a previous one.
    """

    NAME = "deploy"
    States = DeploymentState

    def __init__(
        self,
        network,
        signer,
        chain_client,
        resolver,
        emitter,
        kind: str = TRANSPARENT_PROXY_KIND,
        confirm: Optional[Callable[[str, InitArgs], None]] = None,
    ):
        super().__init__(network, signer, chain_client, resolver, emitter)
        self.kind = kind
        self.confirm = confirm

    def run(
        self, contract_name: str, values: Union[Mapping[str, Any], Sequence[Any]]
    ) -> DeploymentRecord:
        return self._execute(contract_name, values)

    def _run(self, contract_name, values) -> DeploymentRecord:
        spec = self.resolver.resolve(contract_name, require_initializer=True)
        init_args = bind_initializer_args(spec, values)
        init_calldata = encode_initializer_call(spec, init_args)
        if self.confirm:
            self.confirm(spec.name, init_args)
        self._advance(DeploymentState.ARGS_ASSEMBLED)

        with self.chain.connect():
            return self._deploy(spec, init_args, init_calldata)

    def _deploy(self, spec, init_args, init_calldata) -> DeploymentRecord:
        signer_address = self.signer.get_address()
        with self._step(DeploymentReverted):
            submitted = self.chain.deploy_proxy_and_initialize(
                spec, init_calldata, self.signer, kind=self.kind
            )
        if submitted.implementation_address:
            self.details["implementation"] = submitted.implementation_address
        if not submitted.tx_hash:
            raise DeploymentReverted(f"No transaction was returned for the {spec.name} proxy.")
        self.details["tx_hash"] = submitted.tx_hash
        self._advance(DeploymentState.PROXY_SUBMITTED)

        with self._step(DeploymentReverted):
            confirmation = self.chain.wait_for_confirmation(
                submitted.tx_hash, timeout=self.network.confirmation_timeout
            )
        if not confirmation.succeeded:
            raise DeploymentReverted(f"Proxy deployment {submitted.tx_hash} reverted.")
        proxy_address = confirmation.contract_address
        if not proxy_address:
            raise DeploymentReverted(
                f"Proxy deployment {submitted.tx_hash} was confirmed without a contract address."
            )
        with self._step(DeploymentReverted):
            code = self.chain.get_code(proxy_address)
        if not code:
            raise DeploymentReverted(f"No code at proxy address {proxy_address}.")
        self.details["proxy"] = proxy_address
        self._advance(DeploymentState.CONFIRMED)

        implementation = (
            self._read_implementation(proxy_address) or submitted.implementation_address
        )
        record = DeploymentRecord(
            contract_name=spec.name,
            proxy_address=proxy_address,
            implementation_address=implementation,
            deployment_tx_hash=submitted.tx_hash,
            network=self.network.name,
            chain_id=self.network.chain_id,
            signer_address=signer_address,
            block_number=confirmation.block_number,
            initializer_args=format_init_args(init_args),
            timestamp=utc_timestamp(),
        )
        self.emitter.emit(record)
        self._advance(DeploymentState.REPORTED)
        return record

    def _read_implementation(self, proxy_address: ChecksumAddress) -> Optional[ChecksumAddress]:
        # best effort; a missing implementation address is not fatal
        try:
            return self.chain.get_proxy_implementation(proxy_address)
        except Exception as e:
            print(f"(!) Could not read implementation of {proxy_address}: {e}")
            return None
