import json
from pathlib import Path
from typing import Optional, Union

import click

from proxy_deployment.exceptions import ConfirmationTimeout, WorkflowFailed
from proxy_deployment.records import DeploymentRecord, UpgradeRecord
from proxy_deployment.registry import record_deployment, record_upgrade

Record = Union[DeploymentRecord, UpgradeRecord]


class ReportEmitter:
    """
    Renders workflow outcomes: records to stdout, failures to stderr.

    Never raises; a rendering problem must not hide an on-chain action
    that already happened.
    """

    def __init__(self, registry_filepath: Optional[Path] = None):
        self.registry_filepath = registry_filepath

    def emit(self, record: Record) -> None:
        try:
            self._print_record(record)
        except Exception as e:
            click.echo(f"(!) Could not render report ({e!r}); raw record: {record!r}", err=True)

        if self.registry_filepath:
            try:
                self._write_registry(record)
            except Exception as e:
                click.echo(
                    f"(!) Could not update registry {self.registry_filepath}: {e!r}", err=True
                )

    def emit_failure(self, failure: WorkflowFailed) -> None:
        try:
            self._print_failure(failure)
        except Exception as e:
            click.echo(f"(!) Could not render failure ({e!r}): {failure}", err=True)

    def _print_record(self, record: Record) -> None:
        fields = record.to_dict()
        click.secho(f"\n{record.contract_name} {record.kind} complete", fg="green")
        for name, value in fields.items():
            if name == "initializer_args":
                click.echo(f"\t{name}:")
                for arg_name, arg_value in value.items():
                    click.echo(f"\t\t{arg_name}={arg_value}")
                continue
            if value is None:
                value = "N/A"
            click.echo(f"\t{name:<32}: {value}")
        click.echo(json.dumps(fields))

    def _print_failure(self, failure: WorkflowFailed) -> None:
        error = failure.error
        click.secho(f"\n{failure.workflow} FAILED", fg="red", err=True)
        click.echo(f"\tReached state : {failure.reached.name}", err=True)
        click.echo(f"\tFailure       : {failure.kind}", err=True)
        click.echo(f"\tCause         : {error}", err=True)
        for name, value in failure.details.items():
            click.echo(f"\t{name:<14}: {value}", err=True)

        payload = {
            "workflow": failure.workflow,
            "state": "FAILED",
            "reached": failure.reached.name,
            "error": failure.kind,
            "cause": str(error),
            **failure.details,
        }
        if isinstance(error, ConfirmationTimeout):
            payload["tx_hash"] = error.tx_hash
            click.secho(
                f"\t(!) Outcome unknown: query the chain for {error.tx_hash} "
                "before running again to avoid a double deployment.",
                fg="yellow",
                err=True,
            )
        click.echo(json.dumps(payload), err=True)

    def _write_registry(self, record: Record) -> None:
        if isinstance(record, DeploymentRecord):
            record_deployment(record, self.registry_filepath)
        else:
            record_upgrade(record, self.registry_filepath)
