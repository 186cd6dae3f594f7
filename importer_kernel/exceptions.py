"""
Typed exception hierarchy for the importer packages.

===============================================================================
WHAT RAISES AND WHAT RETURNS
===============================================================================

Field and row failures are *values*: the coercion, validation and resolution
functions return ``Ok`` / ``Fail`` and never raise. Exceptions are reserved
for conditions that must stop a whole operation:

  - Configuration mistakes (bad field type, meta match without a meta key,
    import operation without a row processor).
  - Run lifecycle refusals (before_import hook said no).
  - Upstream I/O failures (source file missing or unreadable).

Entity repositories raise ``EntityError`` subclasses; the resolver translates
them into ``Fail`` values (or, for a concurrent-create race, into success).

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ImporterError (base)
    |
    +-- ConfigurationError
    |   +-- FieldConfigurationError
    |   +-- MissingMetaKeyError
    |   +-- MissingRowProcessorError
    |   +-- MissingDataCallbackError
    |   +-- CallbackResolutionError
    |
    +-- RegistryError
    |   +-- PageNotFoundError
    |   +-- OperationNotFoundError
    |
    +-- RunError
    |   +-- ImportAbortedError
    |   +-- RunNotStartedError
    |
    +-- SourceError
    |   +-- SourceNotFoundError
    |   +-- SourceReadError
    |   +-- UnsupportedSourceFormatError
    |
    +-- EntityError
        +-- EntityExistsError
        +-- EntityCreateError
        +-- SideloadError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Configuration   | FIELD_CONFIGURATION_ERROR   | Unknown type, conflicting transforms
                | MISSING_META_KEY            | match_by=meta without meta_key
                | MISSING_ROW_PROCESSOR       | Import operation has no process_callback
                | MISSING_DATA_CALLBACK       | Sync operation has no data_callback
                | CALLBACK_RESOLUTION_ERROR   | "module:attr" reference cannot be imported
----------------|-----------------------------|-----------------------------------------
Registry        | PAGE_NOT_FOUND              | Unknown page id
                | OPERATION_NOT_FOUND         | Unknown operation id on a page
----------------|-----------------------------|-----------------------------------------
Run             | IMPORT_ABORTED              | before_import hook reported failure
                | RUN_NOT_STARTED             | Batch requested for a key with no run
----------------|-----------------------------|-----------------------------------------
Source          | SOURCE_NOT_FOUND            | File handle points nowhere
                | SOURCE_READ_ERROR           | File could not be parsed
                | UNSUPPORTED_SOURCE_FORMAT   | No adapter for the file extension
----------------|-----------------------------|-----------------------------------------
Entity          | ENTITY_EXISTS               | Create raced with a concurrent create
                | ENTITY_CREATE_FAILED        | Backend refused to create the entity
                | SIDELOAD_FAILED             | Remote media could not be fetched
"""


class ImporterError(Exception):
    """
    Base exception for all importer errors.

    Every subclass carries a ``code`` class attribute for machine-readable
    identification.
    """

    code: str = "IMPORTER_ERROR"


# Configuration exceptions


class ConfigurationError(ImporterError):
    """Base exception for operation/field definition errors."""

    code: str = "CONFIGURATION_ERROR"


class FieldConfigurationError(ConfigurationError):
    """A field definition is internally inconsistent."""

    code: str = "FIELD_CONFIGURATION_ERROR"

    def __init__(self, field_key: str, reason: str):
        self.field_key = field_key
        self.reason = reason
        super().__init__(f"Field '{field_key}' is misconfigured: {reason}")


class MissingMetaKeyError(ConfigurationError):
    """A post field matches by meta but names no meta key."""

    code: str = "MISSING_META_KEY"

    def __init__(self, field_key: str):
        self.field_key = field_key
        super().__init__(
            f"Field '{field_key}' uses match_by 'meta' but no meta_key is set"
        )


class MissingRowProcessorError(ConfigurationError):
    """An import operation was run without a row processor."""

    code: str = "MISSING_ROW_PROCESSOR"

    def __init__(self, operation_id: str):
        self.operation_id = operation_id
        super().__init__(
            f"No process_callback defined for operation '{operation_id}'"
        )


class MissingDataCallbackError(ConfigurationError):
    """A sync operation was run without a data callback."""

    code: str = "MISSING_DATA_CALLBACK"

    def __init__(self, operation_id: str):
        self.operation_id = operation_id
        super().__init__(
            f"No data_callback defined for sync operation '{operation_id}'"
        )


class CallbackResolutionError(ConfigurationError):
    """A dotted callback reference could not be imported."""

    code: str = "CALLBACK_RESOLUTION_ERROR"

    def __init__(self, reference: str, reason: str):
        self.reference = reference
        self.reason = reason
        super().__init__(f"Cannot resolve callback '{reference}': {reason}")


# Registry exceptions


class RegistryError(ImporterError):
    """Base exception for page registry lookups."""

    code: str = "REGISTRY_ERROR"


class PageNotFoundError(RegistryError):
    """No page registered under the given id."""

    code: str = "PAGE_NOT_FOUND"

    def __init__(self, page_id: str):
        self.page_id = page_id
        super().__init__(f"Importer page not found: {page_id}")


class OperationNotFoundError(RegistryError):
    """The page has no operation with the given id."""

    code: str = "OPERATION_NOT_FOUND"

    def __init__(self, page_id: str, operation_id: str):
        self.page_id = page_id
        self.operation_id = operation_id
        super().__init__(
            f"Operation '{operation_id}' not found on page '{page_id}'"
        )


# Run lifecycle exceptions


class RunError(ImporterError):
    """Base exception for run lifecycle errors."""

    code: str = "RUN_ERROR"


class ImportAbortedError(RunError):
    """The before_import hook refused to start the run."""

    code: str = "IMPORT_ABORTED"

    def __init__(self, operation_id: str, reason: str):
        self.operation_id = operation_id
        self.reason = reason
        super().__init__(f"Import '{operation_id}' aborted: {reason}")


class RunNotStartedError(RunError):
    """A batch was requested for a key that has no initialised run."""

    code: str = "RUN_NOT_STARTED"

    def __init__(self, page_id: str, operation_id: str):
        self.page_id = page_id
        self.operation_id = operation_id
        super().__init__(
            f"No run has been started for {page_id}/{operation_id}"
        )


# Source exceptions


class SourceError(ImporterError):
    """Base exception for source file errors."""

    code: str = "SOURCE_ERROR"


class SourceNotFoundError(SourceError):
    """The source file does not exist."""

    code: str = "SOURCE_NOT_FOUND"

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Source file not found: {path}")


class SourceReadError(SourceError):
    """The source file exists but could not be read."""

    code: str = "SOURCE_READ_ERROR"

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot read source file {path}: {reason}")


class UnsupportedSourceFormatError(SourceError):
    """No adapter is registered for the source format."""

    code: str = "UNSUPPORTED_SOURCE_FORMAT"

    def __init__(self, source_format: str):
        self.source_format = source_format
        super().__init__(f"Unsupported source format: {source_format}")


# Entity backend exceptions


class EntityError(ImporterError):
    """Base exception raised by entity repositories."""

    code: str = "ENTITY_ERROR"


class EntityExistsError(EntityError):
    """
    Create lost a race: the entity now exists.

    Carries the identifier of the existing entity so callers can treat the
    race as success.
    """

    code: str = "ENTITY_EXISTS"

    def __init__(self, kind: str, value: str, existing_id: int):
        self.kind = kind
        self.value = value
        self.existing_id = existing_id
        super().__init__(f"{kind} '{value}' already exists (id {existing_id})")


class EntityCreateError(EntityError):
    """The backend refused to create an entity."""

    code: str = "ENTITY_CREATE_FAILED"

    def __init__(self, kind: str, value: str, reason: str):
        self.kind = kind
        self.value = value
        self.reason = reason
        super().__init__(f"Cannot create {kind} '{value}': {reason}")


class SideloadError(EntityError):
    """Remote media could not be fetched into storage."""

    code: str = "SIDELOAD_FAILED"

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Cannot sideload {url}: {reason}")
