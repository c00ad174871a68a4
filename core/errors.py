"""Error taxonomy shared by the pipeline, resolver and web service."""


class Jukebox78Error(Exception):
    pass


class InvalidImageError(Jukebox78Error):
    """Source image is empty, undecodable or has a zero dimension."""


class DetectionEmpty(Jukebox78Error):
    """No label circle was found. Triggers the placeholder path."""


class FetchError(Jukebox78Error):
    """Record metadata or image could not be retrieved."""


class ColorExtractionError(Jukebox78Error):
    """Dominant color sampling failed; callers keep their current colors."""


__all__ = [
    "Jukebox78Error",
    "InvalidImageError",
    "DetectionEmpty",
    "FetchError",
    "ColorExtractionError",
]
