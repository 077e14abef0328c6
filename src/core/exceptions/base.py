from typing import Any


class AppException(Exception):
    """Base application exception."""

    code: str | None = None

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        details: dict[str, Any] | None = None,
        code: str | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        if code is not None:
            self.code = code
        super().__init__(self.message)


class NotFoundError(AppException):
    """Resource not found."""

    code = "NOT_FOUND"

    def __init__(self, resource: str, identifier: Any = None):
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} with id={identifier} not found"
        super().__init__(message=message, status_code=404)


class ValidationError(AppException):
    """Validation error."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None, code: str | None = None):
        details = {"field": field} if field else {}
        super().__init__(message=message, status_code=422, details=details, code=code)


# --- Settlement ---


class SettlementRejectedError(AppException):
    """Settlement refused by a gating check; nothing was written."""

    code = "SETTLEMENT_REJECTED"

    def __init__(
        self,
        message: str,
        status_code: int = 409,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message=message, status_code=status_code, details=details)


class SettlementNotAllowedError(SettlementRejectedError):
    code = "SETTLEMENT_NOT_ALLOWED"

    def __init__(self, appointment_status: str):
        super().__init__(
            f"Settlement not allowed for current appointment status '{appointment_status}'. "
            "Appointment must be ready_to_pay or partial_paid.",
            details={"appointment_status": appointment_status},
        )


class UnresolvedSterilizationMismatchError(SettlementRejectedError):
    code = "UNRESOLVED_STERILIZATION_MISMATCH"

    def __init__(self, encounter_id: int):
        super().__init__(
            "Encounter has unresolved sterilization mismatches. "
            "Resolve them before taking payment.",
            details={"encounter_id": encounter_id},
        )


class InvalidInvoiceAmountError(SettlementRejectedError):
    code = "INVALID_INVOICE_AMOUNT"

    def __init__(self, invoice_id: int):
        super().__init__(
            "Invoice has no positive final/total amount. Please verify invoice structure first.",
            details={"invoice_id": invoice_id},
        )


class B2BBuyerTinRequiredError(SettlementRejectedError):
    code = "B2B_BUYER_TIN_REQUIRED"

    def __init__(self):
        super().__init__(
            "buyerTin is required for B2B buyer type.",
            status_code=422,
            details={"field": "buyer_tin"},
        )


class InvoiceAlreadyPaidError(SettlementRejectedError):
    code = "INVOICE_ALREADY_PAID"

    def __init__(self, invoice_id: int):
        super().__init__(
            "Invoice is already fully paid. Additional settlement is not allowed.",
            details={"invoice_id": invoice_id},
        )


class AmountExceedsUnpaidError(SettlementRejectedError):
    code = "AMOUNT_EXCEEDS_UNPAID"

    def __init__(self, requested: Any, unpaid: Any):
        super().__init__(
            f"Payment amount {requested} exceeds unpaid amount {unpaid}.",
            details={"field": "amount", "requested": str(requested), "unpaid": str(unpaid)},
        )


class AllocationRequiredError(SettlementRejectedError):
    code = "ALLOCATION_REQUIRED"

    def __init__(self, invoice_id: int):
        super().__init__(
            "Invoice has split-payment allocations. Use the batch settlement endpoint instead.",
            details={"invoice_id": invoice_id},
        )


class BranchRequiredError(AppException):
    """Invoice has product lines but no branch to move stock from."""

    code = "BRANCH_REQUIRED"

    def __init__(self, invoice_id: int):
        super().__init__(
            "Cannot determine branch for stock movement.",
            status_code=500,
            details={"invoice_id": invoice_id},
        )


class SettlementConflictError(AppException):
    """Concurrent settlement collided with this one; safe to retry."""

    code = "SETTLEMENT_CONFLICT"

    def __init__(self, invoice_id: int):
        super().__init__(
            "Invoice was modified by another settlement. Please retry.",
            status_code=409,
            details={"invoice_id": invoice_id},
        )


# --- Employee benefits ---


class InvalidBenefitCodeError(AppException):
    code = "INVALID_BENEFIT_CODE"

    def __init__(self, code_value: str):
        super().__init__(
            "Employee benefit code is invalid or inactive.",
            status_code=400,
            details={"field": "employee_code", "employee_code": code_value},
        )


class InsufficientBenefitBalanceError(AppException):
    code = "INSUFFICIENT_BENEFIT_BALANCE"

    def __init__(self, requested: Any, available: Any):
        super().__init__(
            f"Insufficient employee benefit balance: requested {requested}, available {available}.",
            status_code=400,
            details={"requested": str(requested), "available": str(available)},
        )


# --- Invoices ---


class FiscalReceiptAlreadyIssuedError(AppException):
    code = "FISCAL_RECEIPT_ALREADY_ISSUED"

    def __init__(self, invoice_id: int):
        super().__init__(
            "Invoice already has a fiscal receipt.",
            status_code=409,
            details={"invoice_id": invoice_id},
        )
