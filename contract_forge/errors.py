"""Error taxonomy for the contract synthesis and compilation pipeline."""

from typing import List, Optional


class ContractForgeError(Exception):
    """Base class for every error raised by the pipeline."""


class UnknownFamily(ContractForgeError):
    """The requested contract family has no base template."""

    def __init__(self, family: object):
        self.family = family
        super().__init__(f"Unknown contract family: {family}")


class ValidationFailed(ContractForgeError):
    """Pre-compilation structural checks rejected the source."""

    def __init__(self, problems: List[str]):
        self.problems = list(problems)
        super().__init__(f"Validation failed: {', '.join(self.problems)}")


class EngineUnavailable(ContractForgeError):
    """The Solidity compiler engine could not be initialized."""


class CompilationFailed(ContractForgeError):
    """The compiler reported at least one fatal diagnostic."""

    def __init__(self, errors: List[str], warnings: Optional[List[str]] = None):
        self.errors = list(errors)
        self.warnings = list(warnings or [])
        first = self.errors[0] if self.errors else "Unknown compilation error"
        super().__init__(first)


class ContractNotFound(ContractForgeError):
    """The requested contract is absent from the compiler output."""


class InterpretationFailed(ContractForgeError):
    """The model tier produced no usable suggestion.

    Never leaves the request interpreter: it always falls back to the
    heuristic tier.
    """
