from abc import ABC, abstractmethod
from typing import Optional

from eth_typing import ChecksumAddress

from proxy_deployment.artifacts import ContractSpec


class StorageLayoutValidator(ABC):
    """
    Checks that a new implementation keeps the storage layout of the current one.
    Invoked before an upgrade is submitted; raises StorageLayoutIncompatible.
    """

    @abstractmethod
    def validate(
        self,
        proxy_address: ChecksumAddress,
        current_implementation: Optional[ChecksumAddress],
        spec: ContractSpec,
    ) -> None:
        raise NotImplementedError


class UncheckedLayout(StorageLayoutValidator):
    """Accepts every upgrade; used when no layout checker is configured."""

    def validate(self, proxy_address, current_implementation, spec) -> None:
        print(
            f"WARNING: storage layout of {spec.name} was not checked against "
            f"{current_implementation or 'the current implementation'} of {proxy_address}."
        )
