import typing
from datetime import datetime, timezone
from typing import Any, NamedTuple, Optional

from eth_typing import ChecksumAddress


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class DeploymentRecord(NamedTuple):
    """Proof of a confirmed proxy deployment; re-derivable from the proxy address."""

    contract_name: str
    proxy_address: ChecksumAddress
    implementation_address: Optional[ChecksumAddress]
    deployment_tx_hash: str
    network: str
    chain_id: int
    signer_address: ChecksumAddress
    block_number: Optional[int]
    initializer_args: typing.Dict[str, Any]
    timestamp: str

    kind = "deployment"

    def to_dict(self) -> typing.Dict[str, Any]:
        return {"kind": self.kind, **self._asdict()}


class UpgradeRecord(NamedTuple):
    """Proof of a proxy repoint. upgrade_tx_hash is None when no discrete transaction exists."""

    contract_name: str
    proxy_address: ChecksumAddress
    previous_implementation_address: Optional[ChecksumAddress]
    new_implementation_address: ChecksumAddress
    implementation_reused: bool
    upgrade_tx_hash: Optional[str]
    network: str
    chain_id: int
    signer_address: ChecksumAddress
    timestamp: str

    kind = "upgrade"

    def to_dict(self) -> typing.Dict[str, Any]:
        return {"kind": self.kind, **self._asdict()}
