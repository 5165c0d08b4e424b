"""
Pipelines: per-document and batch drivers over the processing stages.
"""
from .order_pipeline import process_document, process_documents, process_sheet

__all__ = ["process_document", "process_documents", "process_sheet"]
