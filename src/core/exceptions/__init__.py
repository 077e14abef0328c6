from src.core.exceptions.base import (
    AppException,
    NotFoundError,
    ValidationError,
    SettlementRejectedError,
    SettlementNotAllowedError,
    UnresolvedSterilizationMismatchError,
    InvalidInvoiceAmountError,
    B2BBuyerTinRequiredError,
    InvoiceAlreadyPaidError,
    AmountExceedsUnpaidError,
    AllocationRequiredError,
    BranchRequiredError,
    SettlementConflictError,
    InvalidBenefitCodeError,
    InsufficientBenefitBalanceError,
    FiscalReceiptAlreadyIssuedError,
)

__all__ = [
    "AppException",
    "NotFoundError",
    "ValidationError",
    "SettlementRejectedError",
    "SettlementNotAllowedError",
    "UnresolvedSterilizationMismatchError",
    "InvalidInvoiceAmountError",
    "B2BBuyerTinRequiredError",
    "InvoiceAlreadyPaidError",
    "AmountExceedsUnpaidError",
    "AllocationRequiredError",
    "BranchRequiredError",
    "SettlementConflictError",
    "InvalidBenefitCodeError",
    "InsufficientBenefitBalanceError",
    "FiscalReceiptAlreadyIssuedError",
]
