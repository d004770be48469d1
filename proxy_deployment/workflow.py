from collections import OrderedDict
from contextlib import contextmanager
from enum import IntEnum
from typing import Type

from proxy_deployment.exceptions import WorkflowError, WorkflowFailed


class Workflow:
    """
    A strictly sequential state machine.

    Every step either advances the state or terminates the run in FAILED;
    unexpected collaborator errors are wrapped in the step's named error.
    """

    NAME = "workflow"
    States: Type[IntEnum]

    def __init__(self, network, signer, chain_client, resolver, emitter):
        self.network = network
        self.signer = signer
        self.chain = chain_client
        self.resolver = resolver
        self.emitter = emitter
        self.state = self.States.INIT
        self.reached = self.States.INIT
        self.details = OrderedDict()

    def _advance(self, state: IntEnum) -> None:
        print(f"[{self.NAME}] {self.state.name} -> {state.name}")
        self.state = state
        self.reached = state

    @contextmanager
    def _step(self, failure: Type[WorkflowError]):
        try:
            yield
        except WorkflowError:
            raise
        except Exception as e:
            raise failure(f"{type(e).__name__}: {e}") from e

    def _fail(self, error: BaseException) -> WorkflowFailed:
        self.state = self.States.FAILED
        failure = WorkflowFailed(self.NAME, self.reached, error, details=dict(self.details))
        self.emitter.emit_failure(failure)
        return failure

    def _execute(self, *args, **kwargs):
        if self.state != self.States.INIT:
            raise RuntimeError(f"{self.NAME} workflows run once; start a new one.")
        try:
            return self._run(*args, **kwargs)
        except WorkflowError as e:
            raise self._fail(e) from e
        except (Exception, KeyboardInterrupt) as e:
            # a declined prompt or an unexpected error still ends the run in FAILED
            self._fail(e)
            raise

    def _run(self, *args, **kwargs):
        raise NotImplementedError
