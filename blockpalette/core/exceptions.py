"""blockpalette Exception Hierarchy.

All custom exceptions inherit from BlockPaletteError.
They are raised inside the engine and caught at its isolation
boundaries: a failing source or resolver step degrades to
"empty" or "fallback label" and never escapes evaluate().

Exception Hierarchy:
    BlockPaletteError (base)
    ├── ConfigurationError
    ├── HostError
    │   └── HostUnavailableError
    ├── ResolutionError
    │   └── TemplateParseError
    └── CandidateError
        └── DuplicateCandidateError
"""


class BlockPaletteError(Exception):
    """Base exception for all blockpalette errors.

    All custom exceptions in blockpalette inherit from this class,
    allowing for broad exception handling when needed.
    """

    pass


class ConfigurationError(BlockPaletteError):
    """Configuration is invalid or missing.

    Raised when:
        - A numeric environment variable cannot be parsed
        - Configuration file is malformed
    """

    pass


class HostError(BlockPaletteError):
    """A host editor collaborator failed.

    Base class for workspace and message catalog failures.
    """

    pass


class HostUnavailableError(HostError):
    """The workspace or message catalog accessor is not available.

    Raised when:
        - No workspace accessor was supplied
        - The accessor reports it is not ready (editor still loading)
    """

    pass


class ResolutionError(BlockPaletteError):
    """A label or category name could not be resolved.

    Never reaches the caller: the resolver falls through to the
    next step of its priority chain.
    """

    pass


class TemplateParseError(ResolutionError):
    """Block instance data could not be parsed as XML.

    Raised when:
        - Instance data is not well-formed XML
        - Instance data is of an unsupported type
    """

    pass


class CandidateError(BlockPaletteError):
    """A candidate could not be built or violates the candidate contract."""

    pass


class DuplicateCandidateError(CandidateError):
    """Two candidates in one evaluation share an id.

    Duplicate ids corrupt history matching, so in strict mode the
    catalog builder raises this instead of disambiguating.
    """

    def __init__(self, candidate_id: str, message: str = ""):
        self.candidate_id = candidate_id
        super().__init__(message or f"Duplicate candidate id: {candidate_id}")
