#!/usr/bin/python3
# Usage:
#  > ape run deploy_proxy --help

from proxy_deployment.cli import deploy as cli

if __name__ == "__main__":
    cli()
