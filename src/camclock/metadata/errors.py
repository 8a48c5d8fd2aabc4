"""Exceptions raised while reading and reconciling capture-time metadata."""


class MetadataError(Exception):
    """Base class for metadata-related errors."""


class InvalidRationalError(MetadataError):
    """A rational value has a zero denominator or cannot be read as a rational."""


class MissingFieldError(MetadataError):
    """A required metadata field is absent."""


class NoGpsError(MissingFieldError):
    """Exception raised for missing GPS coordinates in metadata."""


class MalformedDateError(MetadataError):
    """A date field does not match the YYYY:MM:DD layout."""


class MalformedDateTimeError(MetadataError):
    """A date/time field does not match the YYYY:MM:DD hh:mm:ss layout."""


class UnsupportedFormatError(MetadataError):
    """A field is not stored in the representation the reader expects."""


class DecodeFailedError(MetadataError):
    """The decoder reported a critical error; nothing can be read from the file."""


class NoTimeAvailableError(MetadataError):
    """Neither a camera-local time nor a GPS time could be read."""
