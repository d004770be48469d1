#!/usr/bin/python3
# Usage:
#  > ape run upgrade_proxy --help

from proxy_deployment.cli import upgrade as cli

if __name__ == "__main__":
    cli()
