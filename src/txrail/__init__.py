__all__ = [
    # Errors
    "TxRailError",
    "UnsupportedTransportError",
    "NoSignerAvailableError",
    "ContractNotBoundError",
    "TransactionRejectedError",
    "RpcError",
    "GasEstimationDegraded",
    # Config
    "Settings",
    "load_settings",
    # Wire
    "HttpTransport",
    "ProviderRouter",
    "DEFAULT_WRITE_METHODS",
    "ContractInterface",
    "load_contract_json",
    # Submit
    "GasPriceEstimator",
    "GasPriceSample",
    "TransactionDispatcher",
    "TransactionRequest",
    "PendingSubmission",
    "SubmissionEvents",
    "ContractHandle",
    "DEPLOY_GAS_LIMIT",
    "SEND_GAS_LIMIT",
    # Signer
    "LocalSigner",
    "generate_eoa",
    "load_private_key",
    "save_private_key",
]

from .config import Settings, load_settings
from .errors import (
    ContractNotBoundError,
    GasEstimationDegraded,
    NoSignerAvailableError,
    RpcError,
    TransactionRejectedError,
    TxRailError,
    UnsupportedTransportError,
)
from .signer import LocalSigner, generate_eoa, load_private_key, save_private_key
from .submit.contract import ContractHandle
from .submit.dispatch import (
    DEPLOY_GAS_LIMIT,
    SEND_GAS_LIMIT,
    TransactionDispatcher,
    TransactionRequest,
)
from .submit.events import PendingSubmission, SubmissionEvents
from .submit.gas import GasPriceEstimator, GasPriceSample
from .wire.abi import ContractInterface, load_contract_json
from .wire.router import DEFAULT_WRITE_METHODS, ProviderRouter
from .wire.rpc import HttpTransport
