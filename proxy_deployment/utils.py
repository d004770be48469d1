import json
from pathlib import Path
from typing import Any, Optional

import yaml
from ape import project
from ape.contracts import ContractContainer
from eth_utils import encode_hex, is_address, to_checksum_address

from proxy_deployment.constants import OZ_DEPENDENCY_NAME, OZ_DEPENDENCY_VERSION, ZERO_ADDRESS


def _load_yaml(filepath: Path) -> dict:
    """Loads a YAML file."""
    with open(filepath, "r") as file:
        return yaml.safe_load(file)


def _load_json(filepath: Path) -> dict:
    """Loads a JSON file."""
    with open(filepath, "r") as file:
        return json.load(file)


def normalize_parameter_name(name: str) -> str:
    """'_royaltyReceiver', 'royalty_receiver' and 'RoyaltyReceiver' all normalize alike."""
    return name.strip("_").replace("_", "").lower()


def checksum_or_none(value: Any) -> Optional[str]:
    """Returns the checksum form of a non-zero address, or None."""
    if not value or not is_address(value):
        return None
    address = to_checksum_address(value)
    if address == ZERO_ADDRESS:
        return None
    return address


def address_from_storage(value: bytes) -> Optional[str]:
    """Decodes an address held in the low 20 bytes of a storage word."""
    if not value:
        return None
    return checksum_or_none(encode_hex(bytes(value)[-20:]))


def _get_dependency_contract_container(contract: str) -> ContractContainer:
    for dependency_name, dependency_versions in project.dependencies.items():
        if len(dependency_versions) > 1:
            raise ValueError(f"Ambiguous {dependency_name} dependency for {contract}")
        try:
            dependency_api = list(dependency_versions.values())[0]
            contract_container = getattr(dependency_api, contract)
            return contract_container
        except AttributeError:
            continue
    raise ValueError(f"No contract found with name '{contract}'.")


def get_contract_container(contract: str) -> ContractContainer:
    try:
        contract_container = getattr(project, contract)
    except AttributeError:
        # not in root project; check dependencies
        contract_container = _get_dependency_contract_container(contract)

    return contract_container


def get_oz_dependency():
    return project.dependencies[OZ_DEPENDENCY_NAME][OZ_DEPENDENCY_VERSION]
