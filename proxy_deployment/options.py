from pathlib import Path

import click

from proxy_deployment.constants import SUPPORTED_PROXY_KINDS, TRANSPARENT_PROXY_KIND
from proxy_deployment.types import ChecksumAddress

network_option = click.option(
    "--network",
    "-n",
    "network_name",
    help="Name of the network profile",
    type=click.STRING,
    required=True,
)

networks_file_option = click.option(
    "--networks-file",
    help="Network profiles YAML (defaults to the bundled networks.yml)",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    required=False,
)

registry_filepath_option = click.option(
    "--registry-filepath",
    "-f",
    help="Deployment registry JSON to record into and read proxy addresses from",
    type=click.Path(dir_okay=False, path_type=Path),
    required=False,
)

autosign_option = click.option(
    "--autosign",
    help="Do not ask for confirmation before submitting transactions",
    is_flag=True,
    default=False,
)

proxy_kind_option = click.option(
    "--kind",
    help="Proxy kind",
    type=click.Choice(SUPPORTED_PROXY_KINDS),
    default=TRANSPARENT_PROXY_KIND,
    show_default=True,
)

proxy_address_option = click.option(
    "--proxy-address",
    "-p",
    help="Address of the deployed proxy to upgrade",
    type=ChecksumAddress(),
    required=False,
)
