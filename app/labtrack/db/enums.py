from enum import Enum


class RequestStatus(str, Enum):
    PENDING = "Pending"
    QUOTE_REQUESTED = "Quote Requested"
    PO_REQUESTED = "PO Requested"
    ORDERED = "Ordered"
    RECEIVED = "Received"
    DENIED = "Denied"
    CANCELLED = "Cancelled"


class MovementReason(str, Enum):
    RECEIVE = "RECEIVE"
    CORRECT = "CORRECT"
    REVERT = "REVERT"
