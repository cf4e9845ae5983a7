# apps/image_digger/errors.py
#
# Per-article scan failures. The transformer drops the item and moves on.

class ScanError(Exception):
    """An article could not produce an image. Local to one feed item."""


class NoCandidatesError(ScanError):
    pass


class NoUsableImageError(ScanError):
    pass
