from enum import Enum
from pathlib import Path

import proxy_deployment

#
# Filesystem
#

PACKAGE_DIR = Path(proxy_deployment.__file__).parent
NETWORKS_FILEPATH = PACKAGE_DIR / "networks.yml"

#
# Networks
#


class SignerSource(Enum):
    LOCAL_KEY = "local"
    HARDWARE_WALLET = "hardware"


AUTO_GAS = "auto"

DEFAULT_CONFIRMATION_TIMEOUT = 300  # seconds
DEFAULT_DERIVATION_PATH = "m/44'/60'/0'/0/0"

# Environment overrides
LEDGER_ACCOUNTS_ENVVAR = "LEDGER_ACCOUNTS"
LEDGER_DERIVATION_PATH_ENVVAR = "LEDGER_DERIVATION_PATH"
DEPLOYER_ACCOUNT_ENVVAR = "DEPLOYER_ACCOUNT"
GAS_PRICE_ENVVAR = "GAS_PRICE"
CONFIRMATION_TIMEOUT_ENVVAR = "CONFIRMATION_TIMEOUT"
PROXY_ADDRESS_ENVVAR_PREFIX = "PROXY_ADDRESS_"

#
# Contracts
#

OZ_DEPENDENCY_NAME = "openzeppelin"
OZ_DEPENDENCY_VERSION = "5.0.0"

TRANSPARENT_PROXY_KIND = "transparent"
SUPPORTED_PROXY_KINDS = [TRANSPARENT_PROXY_KIND]

DEFAULT_INITIALIZER = "initialize"

# EIP1967 Admin slot - https://eips.ethereum.org/EIPS/eip-1967#admin-address
EIP1967_ADMIN_SLOT = 0xB53127684A568B3173AE13B9F8A6016E243E63B6E8EE1178D6A717850B5D6103
# EIP1967 Implementation slot - https://eips.ethereum.org/EIPS/eip-1967#logic-contract-address
EIP1967_IMPLEMENTATION_SLOT = 0x360894A13BA1A3210667C828492DB98DCA3E2076CC3735A920A3CA505D382BBC

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# shorthand accepted for the "no validator yet" sentinel
ZERO_ADDRESS_SHORTHANDS = ("0", "0x0", "0x00", ZERO_ADDRESS)

# initializer slots that may hold the zero sentinel, matched against normalized names
ZERO_ADDRESS_PERMITTED_SLOTS = ("validator",)

# initializer parameter order of the plots/vehicles contracts; used by the deploy command
ROLE_PARAMETERS = (
    "manager",
    "pauser",
    "upgrader",
    "royaltyReceiver",
    "validator",
    "name",
    "symbol",
    "lockDuration",
)
