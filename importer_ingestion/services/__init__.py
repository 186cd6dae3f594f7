"""Ingestion services: preview, dry run and sample generation."""

from importer_ingestion.services.import_service import ImportService
from importer_ingestion.services.sample import example_value, generate_sample, sample_filename

__all__ = ["ImportService", "example_value", "generate_sample", "sample_filename"]
