"""Error kinds raised by the network inference and post-processing steps.

Structural problems (malformed tables, empty filters, missing TFs, merge
conflicts, incomplete partial sets) are raised as one of the classes below.
Numeric degeneracies (NaN correlations, constant vectors, degenerate
contingency tables) are never raised; they are resolved where they occur.
"""


class MrGrnError(Exception):
    """Base class for all mr_grn errors."""


class MalformedInputError(MrGrnError):
    """A tabular input is unparsable or internally inconsistent."""


class EmptyResultError(MrGrnError):
    """Filtering removed every gene or every TF."""


class NotFoundError(MrGrnError):
    """A named TF or gene is absent where it is required."""


class ConflictError(MrGrnError):
    """The same TF–target pair carries different scores in two partial results."""

    def __init__(self, tf: str, target: str, scores: list[float]):
        self.tf = tf
        self.target = target
        self.scores = scores
        super().__init__(
            f"Conflicting MI scores for edge ({tf}, {target}): {scores}"
        )


class IncompleteInputError(MrGrnError):
    """Merge was requested before every expected TF partial exists."""

    def __init__(self, missing: list[str], n_expected: int):
        self.missing = missing
        self.n_expected = n_expected
        preview = ", ".join(missing[:10])
        if len(missing) > 10:
            preview += ", ..."
        super().__init__(
            f"{len(missing)} of {n_expected} TF partial results are missing: {preview}"
        )
