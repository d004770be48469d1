"""Failures that terminate a deployment or upgrade workflow."""

from typing import Optional


class WorkflowError(Exception):
    """Base exception for workflow failures."""

    @property
    def kind(self) -> str:
        return type(self).__name__


#
# Configuration
#


class ConfigurationError(WorkflowError, ValueError):
    """Raised before any signer or network interaction; fixed by correcting input."""


class UnknownNetwork(ConfigurationError):
    """Raised when a network name has no profile."""


class MissingEndpoint(ConfigurationError):
    """Raised when no RPC URL resolves from configuration or environment."""


class InvalidNetworkConfig(ConfigurationError):
    """Raised when a network profile is malformed (e.g. missing chain id)."""


class UnknownContract(ConfigurationError):
    """Raised when no compiled artifact matches a contract name."""


class InitializerSignatureMissing(ConfigurationError):
    """Raised when a contract to be proxied declares no initializer."""


#
# Signer
#


class SignerError(WorkflowError):
    pass


class SignerUnavailable(SignerError):
    """Raised when neither a local key nor a hardware device is usable."""


class SignerMismatch(SignerError):
    """Raised when the resolved signer is not in the network allow-list."""


#
# Arguments
#


class ArgumentError(WorkflowError, ValueError):
    pass


class ArgumentArityMismatch(ArgumentError):
    pass


class ArgumentNameMismatch(ArgumentError):
    pass


class InvalidAddress(ArgumentError):
    pass


class InvalidArgumentValue(ArgumentError):
    pass


class MissingProxyAddress(ArgumentError):
    pass


#
# On-chain execution
#


class ChainExecutionError(WorkflowError):
    """Surfaced verbatim from the chain or the layout validator; never retried."""


class DeploymentReverted(ChainExecutionError):
    pass


class ImplementationDeployFailed(ChainExecutionError):
    pass


class UnauthorizedUpgrader(ChainExecutionError):
    pass


class StorageLayoutIncompatible(ChainExecutionError):
    pass


class ProxyNotFound(ChainExecutionError):
    pass


#
# Transport
#


class TransportError(WorkflowError):
    pass


class ChainUnreachable(TransportError):
    """Raised when the RPC endpoint cannot be reached or answers unexpectedly."""


class ConfirmationTimeout(TransportError):
    """
    Raised when a submitted transaction is not confirmed in time.

    The transaction may still be mined; the chain must be re-queried
    for ``tx_hash`` before deciding whether to run the workflow again.
    """

    def __init__(self, message: str, tx_hash: Optional[str] = None):
        super().__init__(message)
        self.tx_hash = tx_hash


class WorkflowFailed(Exception):
    """Raised by an orchestrator once its state machine has entered FAILED."""

    def __init__(
        self, workflow: str, reached, error: BaseException, details: Optional[dict] = None
    ):
        self.workflow = workflow
        self.reached = reached
        self.error = error
        self.details = details or dict()
        super().__init__(f"{workflow} failed after {reached.name}: {self.kind}: {error}")

    @property
    def kind(self) -> str:
        return type(self.error).__name__
