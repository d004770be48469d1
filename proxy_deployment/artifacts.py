import typing
from typing import Callable, List, NamedTuple, Optional, Tuple

from ape.contracts import ContractContainer
from eth_utils import encode_hex, function_signature_to_4byte_selector
from ethpm_types import MethodABI

from proxy_deployment.constants import DEFAULT_INITIALIZER
from proxy_deployment.exceptions import InitializerSignatureMissing, UnknownContract
from proxy_deployment.utils import get_contract_container


class ContractSpec(NamedTuple):
    """A deployable unit resolved from the artifact store."""

    name: str
    abi: List[typing.Any]
    bytecode: Optional[str]
    runtime_bytecode: Optional[str]
    initializer: Optional[str]
    initializer_selector: Optional[str]
    initializer_arg_order: Tuple[str, ...]
    initializer_arg_types: Tuple[str, ...]
    initializer_abi: Optional[MethodABI]
    container: typing.Any

    @property
    def has_initializer(self) -> bool:
        return self.initializer is not None


def _bytecode(bytecode) -> Optional[str]:
    if bytecode is None or not bytecode.bytecode:
        return None
    return bytecode.bytecode


def _find_initializer(container: ContractContainer, name: str) -> Optional[MethodABI]:
    candidates = [abi for abi in container.contract_type.methods if abi.name == name]
    if len(candidates) > 1:
        raise InitializerSignatureMissing(
            f"Initializer '{name}' of {container.contract_type.name} is overloaded; "
            "cannot bind arguments unambiguously."
        )
    return candidates[0] if candidates else None


class ContractFactoryResolver:
    """Resolves contract names to ContractSpecs; read-only over the artifact store."""

    def __init__(
        self,
        container_lookup: Callable[[str], ContractContainer] = get_contract_container,
        initializer: str = DEFAULT_INITIALIZER,
    ):
        self._lookup = container_lookup
        self.initializer = initializer

    def resolve(self, name: str, require_initializer: bool = True) -> ContractSpec:
        try:
            container = self._lookup(name)
        except (AttributeError, ValueError) as e:
            raise UnknownContract(f"No compiled artifact for contract '{name}'.") from e

        contract_type = container.contract_type
        bytecode = _bytecode(contract_type.deployment_bytecode)
        if bytecode is None:
            # interfaces and abstract contracts have nothing to deploy
            raise UnknownContract(f"Artifact for '{name}' has no deployment bytecode.")

        method = _find_initializer(container, self.initializer)
        if method is None and require_initializer:
            raise InitializerSignatureMissing(
                f"{name} declares no '{self.initializer}' initializer; "
                "cannot deploy it behind a proxy."
            )

        arg_order, arg_types, selector = (), (), None
        if method is not None:
            arg_order = tuple(abi_input.name for abi_input in method.inputs)
            # structs are encoded as tuples of their component types
            arg_types = tuple(abi_input.canonical_type for abi_input in method.inputs)
            selector = encode_hex(function_signature_to_4byte_selector(method.selector))

        return ContractSpec(
            name=name,
            abi=list(contract_type.abi),
            bytecode=bytecode,
            runtime_bytecode=_bytecode(contract_type.runtime_bytecode),
            initializer=method.name if method is not None else None,
            initializer_selector=selector,
            initializer_arg_order=arg_order,
            initializer_arg_types=arg_types,
            initializer_abi=method,
            container=container,
        )
