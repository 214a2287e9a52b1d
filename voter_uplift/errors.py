"""
voter_uplift/errors.py
======================
Error taxonomy for the voter-persuasion uplift pipeline.

Every failure is fatal to the current run; nothing is retried.  Each class
also derives from the matching built-in exception so callers that only know
about ``ValueError`` / ``FileNotFoundError`` still catch it.

  UpliftPipelineError
    ├── InputError            malformed / missing dataset, schema mismatch
    │     ├── DatasetNotFound
    │     ├── DatasetParseError
    │     └── SchemaMismatch
    ├── InvalidParameter      out-of-range fraction, cost, effect size ...
    │     ├── InvalidFraction
    │     └── InvalidEffect
    ├── EmptyCollection       empty dataset / holdout / experiment group
    │     ├── EmptyDataset
    │     ├── EmptyHoldout
    │     └── EmptyGroup
    └── ExternalServiceError  classifier or loader failure, propagated
          └── ClassifierError
"""


class UpliftPipelineError(Exception):
    """Base class for all pipeline errors."""


# ── Input ─────────────────────────────────────────────────────────────────────
class InputError(UpliftPipelineError):
    pass


class DatasetNotFound(InputError, FileNotFoundError):
    pass


class DatasetParseError(InputError, ValueError):
    pass


class SchemaMismatch(InputError, ValueError):
    pass


# ── Parameters ────────────────────────────────────────────────────────────────
class InvalidParameter(UpliftPipelineError, ValueError):
    pass


class InvalidFraction(InvalidParameter):
    pass


class InvalidEffect(InvalidParameter, ZeroDivisionError):
    """Effect size of zero (or non-finite) passed to the cost-per-vote formula."""


# ── Empty collections ─────────────────────────────────────────────────────────
class EmptyCollection(UpliftPipelineError, ValueError):
    pass


class EmptyDataset(EmptyCollection):
    pass


class EmptyHoldout(EmptyCollection):
    pass


class EmptyGroup(EmptyCollection):
    pass


# ── External collaborators ────────────────────────────────────────────────────
class ExternalServiceError(UpliftPipelineError, RuntimeError):
    pass


class ClassifierError(ExternalServiceError):
    pass
