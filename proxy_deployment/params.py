import typing
from collections import OrderedDict
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence, Union

from ape import networks
from eth_utils import decode_hex, encode_hex, is_address, to_checksum_address
from web3.auto import w3

from proxy_deployment.artifacts import ContractSpec
from proxy_deployment.constants import (
    ZERO_ADDRESS,
    ZERO_ADDRESS_PERMITTED_SLOTS,
    ZERO_ADDRESS_SHORTHANDS,
)
from proxy_deployment.exceptions import (
    ArgumentArityMismatch,
    ArgumentNameMismatch,
    InvalidAddress,
    InvalidArgumentValue,
)
from proxy_deployment.utils import _load_yaml, normalize_parameter_name

INITIALIZER_PARAMETER_KEY = "initializer"

InitArgs = typing.OrderedDict[str, Any]


class Variable:
    VARIABLE_PREFIX = "$"
    DEPLOYER_INDICATOR = "deployer"

    @classmethod
    def is_variable(cls, param: Any) -> bool:
        """Returns True if the param is a variable."""
        return isinstance(param, str) and param.startswith(cls.VARIABLE_PREFIX)

    @classmethod
    def is_deployer(cls, value: str) -> bool:
        return value.strip(cls.VARIABLE_PREFIX) == cls.DEPLOYER_INDICATOR


def _resolve_param(value: Any, deployer_address: Optional[str]) -> Any:
    if isinstance(value, list):
        return [_resolve_param(v, deployer_address) for v in value]
    if not Variable.is_variable(value):
        return value  # literally a value
    if Variable.is_deployer(value):
        if not deployer_address:
            raise InvalidArgumentValue(f"Cannot resolve {value} without a signer.")
        return deployer_address
    raise InvalidArgumentValue(f"Unknown variable {value}.")


def load_initializer_params(
    filepath: Path, deployer_address: Optional[str] = None
) -> typing.Dict[str, Any]:
    """Loads named initializer values from a params YAML, resolving '$deployer'."""
    config = _load_yaml(filepath) or dict()
    parameters = config.get(INITIALIZER_PARAMETER_KEY)
    if not isinstance(parameters, dict):
        raise ArgumentNameMismatch(
            f"Params file {filepath} missing '{INITIALIZER_PARAMETER_KEY}' mapping."
        )
    return OrderedDict(
        (name, _resolve_param(value, deployer_address)) for name, value in parameters.items()
    )


def _zero_address_permitted(name: str) -> bool:
    normalized = normalize_parameter_name(name)
    return any(slot in normalized for slot in ZERO_ADDRESS_PERMITTED_SLOTS)


def _validate_address(contract_name: str, name: str, position: int, value: Any) -> str:
    if _zero_address_permitted(name) and (
        value in ZERO_ADDRESS_SHORTHANDS or (isinstance(value, int) and value == 0)
    ):
        return ZERO_ADDRESS

    if not isinstance(value, str) or not is_address(value):
        raise InvalidAddress(
            f"{contract_name} initializer parameter '{name}' at position {position} "
            f"is not a valid address: '{value}'."
        )
    address = to_checksum_address(value)
    if address == ZERO_ADDRESS and not _zero_address_permitted(name):
        raise InvalidAddress(
            f"{contract_name} initializer parameter '{name}' at position {position} "
            "cannot be the zero address."
        )
    return address


def _validate_value(contract_name: str, name: str, abi_type: str, position: int, value: Any) -> Any:
    if abi_type == "address":
        return _validate_address(contract_name, name, position, value)
    if abi_type.startswith("uint") or abi_type.startswith("int"):
        # values from CLI options and YAML may arrive as strings
        if isinstance(value, str) and value.strip().lstrip("-").isdigit():
            value = int(value)
    if abi_type.startswith("("):
        # structs are checked when encoded
        return value
    if not w3.is_encodable(abi_type, value):
        raise InvalidArgumentValue(
            f"{contract_name} initializer parameter '{name}' at position {position} has a value "
            f"'{value}' whose type does not match expected ABI type '{abi_type}'."
        )
    return value


def _order_by_name(spec: ContractSpec, values: Mapping[str, Any]) -> typing.List[Any]:
    by_normalized = OrderedDict()
    for name, value in values.items():
        normalized = normalize_parameter_name(name)
        if normalized in by_normalized:
            raise ArgumentNameMismatch(f"Initializer parameter '{name}' given more than once.")
        by_normalized[normalized] = value

    expected = [normalize_parameter_name(name) for name in spec.initializer_arg_order]
    missing = [n for n, e in zip(spec.initializer_arg_order, expected) if e not in by_normalized]
    unexpected = [name for name in values if normalize_parameter_name(name) not in expected]
    if missing or unexpected:
        raise ArgumentNameMismatch(
            f"{spec.name} initializer parameters do not match its ABI "
            f"{list(spec.initializer_arg_order)}; missing {missing}, unexpected {unexpected}."
        )
    return [by_normalized[normalized] for normalized in expected]


def bind_initializer_args(
    spec: ContractSpec, values: Union[Mapping[str, Any], Sequence[Any]]
) -> InitArgs:
    """
    Binds caller values to the initializer's parameters, in ABI order.

    Mappings bind by (normalized) parameter name; sequences bind by position.
    Either way the result is ordered exactly as the initializer declares it.
    """
    if isinstance(values, (str, bytes)):
        raise ArgumentArityMismatch("Initializer values must be a mapping or a sequence.")

    expected = len(spec.initializer_arg_order)
    if len(values) != expected:
        raise ArgumentArityMismatch(
            f"{spec.name}.{spec.initializer} requires {expected} argument(s), got {len(values)}."
        )

    if isinstance(values, Mapping):
        ordered_values = _order_by_name(spec, values)
    else:
        ordered_values = list(values)

    init_args = OrderedDict()
    codex = zip(spec.initializer_arg_order, spec.initializer_arg_types, ordered_values)
    for position, (name, abi_type, value) in enumerate(codex):
        init_args[name] = _validate_value(spec.name, name, abi_type, position, value)
    return init_args


def encode_initializer_call(spec: ContractSpec, init_args: InitArgs) -> bytes:
    """Returns the initializer calldata (selector + ABI-encoded arguments)."""
    if list(init_args) != list(spec.initializer_arg_order):
        raise ArgumentNameMismatch(f"Arguments are not bound to {spec.name}.{spec.initializer}.")
    try:
        encoded_args = networks.ethereum.encode_calldata(
            spec.initializer_abi, *init_args.values()
        )
    except Exception as e:
        raise InvalidArgumentValue(
            f"Could not encode {spec.name}.{spec.initializer} arguments: {e}"
        ) from e
    return decode_hex(spec.initializer_selector) + bytes(encoded_args)


def format_init_args(init_args: InitArgs) -> typing.Dict[str, Any]:
    """JSON-friendly copy of bound arguments."""
    return OrderedDict(
        (name, encode_hex(value) if isinstance(value, bytes) else value)
        for name, value in init_args.items()
    )
