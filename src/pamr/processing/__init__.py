"""Processing functions applied to decoded binary records."""

from pamr.processing.module_data import calculate_module_data, process_record

__all__ = ["calculate_module_data", "process_record"]
