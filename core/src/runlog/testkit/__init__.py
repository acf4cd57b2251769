from .capture import RecordCollector, collect_records

__all__ = ["RecordCollector", "collect_records"]
