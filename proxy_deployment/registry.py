import json
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, NamedTuple, Optional, Tuple

from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

from proxy_deployment.records import DeploymentRecord, UpgradeRecord
from proxy_deployment.utils import _load_json

ChainId = int
ContractName = str


STANDARD_REGISTRY_JSON_FORMAT = {"indent": 4, "separators": (",", ": ")}


class RegistryEntry(NamedTuple):
    """A deployed proxy, as recorded in a deployment registry."""

    chain_id: ChainId
    name: ContractName
    address: ChecksumAddress
    implementation: Optional[ChecksumAddress]
    tx_hash: str
    block_number: Optional[int]
    deployer: str
    upgrades: Tuple[dict, ...] = ()


def entry_from_record(record: DeploymentRecord) -> RegistryEntry:
    return RegistryEntry(
        chain_id=record.chain_id,
        name=record.contract_name,
        address=record.proxy_address,
        implementation=record.implementation_address,
        tx_hash=record.deployment_tx_hash,
        block_number=record.block_number,
        deployer=record.signer_address,
    )


def read_registry(filepath: Path) -> List[RegistryEntry]:
    data = _load_json(filepath)
    registry_entries = list()
    for chain_id, entries in data.items():
        for contract_name, artifacts in entries.items():
            registry_entry = RegistryEntry(
                chain_id=int(chain_id),
                name=contract_name,
                address=artifacts["address"],
                implementation=artifacts.get("implementation"),
                tx_hash=artifacts["tx_hash"],
                block_number=artifacts.get("block_number"),
                deployer=artifacts["deployer"],
                upgrades=tuple(artifacts.get("upgrades", ())),
            )
            registry_entries.append(registry_entry)
    return registry_entries


def _serialize(entries: List[RegistryEntry]) -> Dict[str, dict]:
    # Sort registry entries to enforce common order
    entries = sorted(entries, key=lambda entry: (str(entry.chain_id), entry.name))
    data = defaultdict(dict)
    for entry in entries:
        data[str(entry.chain_id)][entry.name] = {
            "address": entry.address,
            "implementation": entry.implementation,
            "tx_hash": entry.tx_hash,
            "block_number": entry.block_number,
            "deployer": entry.deployer,
            "upgrades": list(entry.upgrades),
        }
    return data


def _dump(data: Dict[str, dict], filepath: Path) -> None:
    filepath.parent.mkdir(parents=True, exist_ok=True)
    with open(filepath, "w") as file:
        json.dump(data, file, **STANDARD_REGISTRY_JSON_FORMAT)


def write_registry(entries: List[RegistryEntry], filepath: Path) -> Path:
    """
    Adds entries to a registry file, creating it if needed.

    An entry whose name is already registered for the same chain at a different
    address is never overwritten; the result goes to a '.unmerged.json' file instead.
    """
    if not entries:
        print("No entries provided.")
        return filepath

    existing = dict()
    if filepath.exists():
        existing = {(e.chain_id, e.name): e for e in read_registry(filepath)}
    conflicts = [
        entry
        for entry in entries
        if (entry.chain_id, entry.name) in existing
        and existing[(entry.chain_id, entry.name)].address != entry.address
    ]
    if conflicts:
        filepath = filepath.with_suffix(".unmerged.json")
        names = ", ".join(entry.name for entry in conflicts)
        print(
            f"Registry already holds different deployments of {names}.\n"
            f"Writing to {filepath} to avoid overwriting existing data."
        )
        _dump(_serialize(entries), filepath)
        return filepath

    merged = dict(existing)
    for entry in entries:
        merged[(entry.chain_id, entry.name)] = entry
    _dump(_serialize(list(merged.values())), filepath)
    return filepath


def record_deployment(record: DeploymentRecord, filepath: Path) -> Path:
    output_filepath = write_registry(entries=[entry_from_record(record)], filepath=filepath)
    print(f"(i) Registry written to {output_filepath}!")
    return output_filepath


def record_upgrade(record: UpgradeRecord, filepath: Path) -> Optional[Path]:
    """Points the registry entry of the upgraded proxy at its new implementation."""
    if not filepath.exists():
        print(f"(i) No registry at {filepath}; upgrade not recorded.")
        return None

    entries = read_registry(filepath)
    for index, entry in enumerate(entries):
        if entry.chain_id == record.chain_id and entry.address == record.proxy_address:
            upgrade = {
                "implementation": record.new_implementation_address,
                "tx_hash": record.upgrade_tx_hash,
                "upgrader": record.signer_address,
                "timestamp": record.timestamp,
            }
            entries[index] = entry._replace(
                implementation=record.new_implementation_address,
                upgrades=entry.upgrades + (upgrade,),
            )
            break
    else:
        print(f"(i) {record.proxy_address} is not in registry {filepath}; upgrade not recorded.")
        return None

    _dump(_serialize(entries), filepath)
    print(f"(i) Registry updated at {filepath}!")
    return filepath


def proxy_address_from_registry(
    filepath: Path, chain_id: ChainId, name: ContractName
) -> Optional[ChecksumAddress]:
    """Returns the registered proxy address for a contract name on a chain, if any."""
    for entry in read_registry(filepath):
        if entry.chain_id == chain_id and entry.name == name:
            return to_checksum_address(entry.address)
    return None
