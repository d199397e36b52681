from .bases import CanonicalModel, TransactionStatus, TransactionKind, TransactionHandle, TransactionReceipt, TxObservation
from .mint import UserContext, AnalysisResult, MintRequest, AllowanceSnapshot
from .metadata import MetadataAttribute, EmployeeProperties, EmployeeMetadata, EmployeeRecord

__all__ = [
    "CanonicalModel",
    "TransactionStatus",
    "TransactionKind",
    "TransactionHandle",
    "TransactionReceipt",
    "TxObservation",
    "UserContext",
    "AnalysisResult",
    "MintRequest",
    "AllowanceSnapshot",
    "MetadataAttribute",
    "EmployeeProperties",
    "EmployeeMetadata",
    "EmployeeRecord",
]
