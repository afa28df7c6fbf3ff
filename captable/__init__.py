"""
captable - On-Ledger Cap Table

Records share classes, issues shares to investors who pay with an external
fungible token, and transfers shares between holders, gated by a compliance
oracle for restricted classes.

Usage:
    from captable import Ledger, InMemoryToken

    usdc = InMemoryToken("USDC")
    ledger = Ledger("acme", owner="founder")
    seed = ledger.create_share_class("founder", "Seed", 1_000_000, 10_000)

    usdc.mint("alice", 500_000_000)
    usdc.approve("alice", 500_000_000)
    shares = ledger.invest("alice", seed, 500_000_000, usdc)     # 500

    ledger.transfer_shares("alice", "bob", seed, 200)
"""

# Core types
from .core import (
    LedgerView,
    ShareClass,
    Move,
    Payment,
    PendingTransaction,
    Transaction,
    ShareClassChange,
    OwnerChange,
    OracleChange,
    build_transaction,
    ShareClassCreated,
    ShareClassUpdated,
    Invested,
    TransferShares,
    OwnershipTransferred,
    ComplianceOracleUpdated,
    event_name,
    LedgerError,
    AuthorizationError,
    NotFoundError,
    ValidationError,
    InsufficientBalanceError,
    ComplianceRejectedError,
    ExternalTransferFailure,
    StaleStateError,
    NULL_ADDRESS,
    ISSUANCE_WALLET,
)

# Ledger
from .ledger import Ledger

# External collaborators
from .compliance import (
    ComplianceOracle,
    AlwaysApproveOracle,
    WhitelistOracle,
    check_compliance,
)
from .payment_token import TokenService, InMemoryToken, check_funds

# Operations (pure computations)
from .access import require_owner, compute_ownership_transfer, compute_oracle_update
from .share_class import (
    require_share_class,
    compute_create_share_class,
    compute_update_share_class,
)
from .investment import compute_shares_issued, compute_investment
from .transfer import compute_share_transfer

# Reporting
from .summary import Holding, cap_table, format_cap_table

__all__ = [
    # Core
    'LedgerView', 'ShareClass', 'Move', 'Payment', 'PendingTransaction', 'Transaction',
    'ShareClassChange', 'OwnerChange', 'OracleChange', 'build_transaction',
    'NULL_ADDRESS', 'ISSUANCE_WALLET',
    # Events
    'ShareClassCreated', 'ShareClassUpdated', 'Invested', 'TransferShares',
    'OwnershipTransferred', 'ComplianceOracleUpdated', 'event_name',
    # Errors
    'LedgerError', 'AuthorizationError', 'NotFoundError', 'ValidationError',
    'InsufficientBalanceError', 'ComplianceRejectedError', 'ExternalTransferFailure',
    'StaleStateError',
    # Ledger
    'Ledger',
    # Collaborators
    'ComplianceOracle', 'AlwaysApproveOracle', 'WhitelistOracle', 'check_compliance',
    'TokenService', 'InMemoryToken', 'check_funds',
    # Operations
    'require_owner', 'compute_ownership_transfer', 'compute_oracle_update',
    'require_share_class', 'compute_create_share_class', 'compute_update_share_class',
    'compute_shares_issued', 'compute_investment', 'compute_share_transfer',
    # Reporting
    'Holding', 'cap_table', 'format_cap_table',
]

__version__ = '1.0.0'
