from src.core.documents.models import ReceiptSequence
from src.core.documents.number_generator import ReceiptNumberGenerator, get_receipt_number

__all__ = ["ReceiptSequence", "ReceiptNumberGenerator", "get_receipt_number"]
