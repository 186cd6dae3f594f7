"""
importer_config -- operation and page definitions.

Responsibility:
    Compiles dict/YAML page definitions into frozen FieldDefinition,
    OperationDefinition and ImporterPage objects and keeps them in a
    PageRegistry for the orchestrator to look up.

Architecture position:
    Sits above importer_kernel and importer_ingestion, below importer_batch.
"""

from importer_config.loader import (
    compile_field,
    compile_operation,
    compile_page,
    load_page_file,
    load_pages,
    resolve_callback,
)
from importer_config.registry import PageRegistry
from importer_config.schema import ImporterPage

__all__ = [
    "ImporterPage",
    "PageRegistry",
    "compile_field",
    "compile_operation",
    "compile_page",
    "load_page_file",
    "load_pages",
    "resolve_callback",
]
