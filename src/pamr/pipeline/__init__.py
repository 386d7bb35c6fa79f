"""Detection loading and event assembly."""

from pamr.pipeline.assembler import assemble_all_event, assemble_db_events
from pamr.pipeline.loader import load_detections, load_detections_all, load_detections_db

__all__ = [
    "assemble_all_event",
    "assemble_db_events",
    "load_detections",
    "load_detections_all",
    "load_detections_db",
]
