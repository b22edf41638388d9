from .record_repository import ProductionRecordRepository

__all__ = [
    "ProductionRecordRepository",
]
