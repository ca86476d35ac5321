"""Exceptions raised while building a label command stream"""


class LabelPrintingError(Exception):
    """Base class for every label building error"""


class SessionNotInitialized(LabelPrintingError):
    """A primitive was added before new_label() was called"""

    def __init__(self, message="You need to call new_label() before you can start adding content to the label."):
        super().__init__(message)


class InvalidFontForBackend(LabelPrintingError):
    """The font type cannot be expressed in the active printer language"""


class StructuredFontRequiresSynchronousChannel(LabelPrintingError):
    """Printer/Windows fonts are only available over the synchronous driver channel"""


class UnsupportedPrimitive(LabelPrintingError):
    """The active printer language has no rendering for this primitive"""


class ImageUnavailable(LabelPrintingError):
    """The image does not exist or could not be decoded"""


class InvalidPrimitiveParameter(LabelPrintingError, ValueError):
    """A primitive parameter is outside the values the printer accepts"""
