"""
importer_ingestion -- Declarative field pipeline for tabular imports.

Turns raw spreadsheet rows into typed, validated, entity-resolved rows:
value coercion, field rule validation, duplicate detection, row mapping,
entity resolution, source adapters, sample generation and dry runs.

Architecture:
    importer_ingestion/ imports only from importer_kernel/. The batch
    orchestrator in importer_batch/ drives it; nothing here holds run state.
"""
