"""Error types raised by the storage layer and the lifecycle services."""


class NavdashError(Exception):
    """Base class for all navdash errors."""

    status_code = 500

    def __init__(self, message=''):
        super().__init__(message)
        self.message = message


class ValidationError(NavdashError):
    """Input rejected before anything was written."""

    BAD_URL = 'bad_url'
    DUPLICATE_NAME = 'duplicate_name'
    DUPLICATE_UPLOAD_DIR = 'duplicate_upload_dir'
    UNKNOWN_CATEGORY = 'unknown_category'
    MISSING_FIELD = 'missing_field'
    OUT_OF_RANGE = 'out_of_range'
    BAD_UPLOAD = 'bad_upload'
    BAD_UPLOAD_DIR = 'bad_upload_dir'

    status_code = 400

    def __init__(self, reason, message=''):
        super().__init__(message or reason)
        self.reason = reason


class NotFound(NavdashError):
    status_code = 404

    def __init__(self, entity_kind, entity_id):
        super().__init__(f'{entity_kind} not found: {entity_id}')
        self.entity_kind = entity_kind
        self.entity_id = entity_id


class Forbidden(NavdashError):
    # The dashboard has always answered this one with a 400.
    status_code = 400

    def __init__(self, reason):
        super().__init__(reason)
        self.reason = reason


class StorageError(NavdashError):
    """A data file could not be read, parsed or written."""

    def __init__(self, path, detail):
        super().__init__(f'{path}: {detail}')
        self.path = path
        self.detail = detail


class AssetError(NavdashError):
    """Icon housekeeping failed. Never leaves navdash.assets."""
