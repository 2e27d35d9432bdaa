"""Exception hierarchy for the sprite pipeline."""


class SpritePipelineError(Exception):
    """Base class for every error raised by the sprite pipeline."""


class InputError(SpritePipelineError, ValueError):
    """The source buffer is malformed (zero size, bad channels, bad length)."""


class NoContentError(SpritePipelineError):
    """No pixel is opaque enough to define a content bounding box.

    Soft failure: the cropper catches it and keeps the full frame so that
    validation reports the deficiency instead of the pipeline aborting.
    """


class StageInvariantViolation(SpritePipelineError, IndexError):
    """A stage tried to address a pixel outside the buffer."""


class SourceError(SpritePipelineError):
    """An input adapter could not fetch or decode an image."""
