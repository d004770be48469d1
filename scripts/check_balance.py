#!/usr/bin/python3
# Usage:
#  > ape run check_balance --help

from proxy_deployment.cli import check_balance as cli

if __name__ == "__main__":
    cli()
