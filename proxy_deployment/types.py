import click
from eth_utils import to_checksum_address

from proxy_deployment.constants import ZERO_ADDRESS, ZERO_ADDRESS_SHORTHANDS


class MinInt(click.ParamType):
    name = "minint"

    def __init__(self, min_value):
        self.min_value = min_value

    def convert(self, value, param, ctx):
        try:
            ivalue = int(value)
        except ValueError:
            self.fail(f"{value} is not a valid integer", param, ctx)
        if ivalue < self.min_value:
            self.fail(
                f"{value} is less than the minimum allowed value of {self.min_value}", param, ctx
            )
        return ivalue


class ChecksumAddress(click.ParamType):
    name = "checksum_address"

    def __init__(self, allow_zero: bool = False):
        self.allow_zero = allow_zero

    def convert(self, value, param, ctx):
        if self.allow_zero and value in ZERO_ADDRESS_SHORTHANDS:
            return ZERO_ADDRESS
        try:
            value = to_checksum_address(value=value)
        except ValueError:
            self.fail(f"{value} is not a valid ethereum address", param, ctx)
        if value == ZERO_ADDRESS and not self.allow_zero:
            self.fail("The zero address is not allowed here", param, ctx)
        return value
