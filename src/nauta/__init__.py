__all__ = [
    # Configuration
    "TransferConfig",
    "resolve",
    "ConfigError",
    "MissingFieldError",
    "InvalidAddressError",
    "InvalidAmountError",
    "InvalidSigningKeyError",
    "InvalidChainIdError",
    "InvalidEndpointError",
    # Fees
    "GasFeeParameters",
    "compute_fees",
    "DEFAULT_PRIORITY_FEE",
    "FeeOverflowError",
    # Chain access
    "ChainClient",
    "ConfirmationTimeout",
    "ConfirmationCancelled",
    "NetworkUnavailable",
    "MalformedResponse",
    "RpcError",
    # Signing
    "Signer",
    "SigningError",
    # Models
    "ProbeTransaction",
    "FinalTransaction",
    "SignedTransaction",
    "Block",
    "Receipt",
    # Pipeline
    "TransferPipeline",
    "TransferState",
    "TransferEvent",
    "TransferError",
    "EstimationFailed",
    "FeeDataUnavailable",
    "SigningFailed",
    "BroadcastRejected",
    "execute_transfer",
    # Base
    "NautaError",
]

import logging

from .errors import MalformedResponse, NautaError, NetworkUnavailable, RpcError
from .fees import DEFAULT_PRIORITY_FEE, FeeOverflowError, GasFeeParameters, compute_fees
from .models import Block, FinalTransaction, ProbeTransaction, Receipt, SignedTransaction
from .chain.client import ChainClient, ConfirmationCancelled, ConfirmationTimeout
from .keys.signer import Signer, SigningError
from .config import (
    ConfigError,
    InvalidAddressError,
    InvalidAmountError,
    InvalidChainIdError,
    InvalidEndpointError,
    InvalidSigningKeyError,
    MissingFieldError,
    TransferConfig,
    resolve,
)
from .transfer import (
    BroadcastRejected,
    EstimationFailed,
    FeeDataUnavailable,
    SigningFailed,
    TransferError,
    TransferEvent,
    TransferPipeline,
    TransferState,
    execute_transfer,
)

# Silent unless the application (or configure_logging) adds a handler
logging.getLogger(__name__).addHandler(logging.NullHandler())
