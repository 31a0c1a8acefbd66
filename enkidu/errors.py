from typing import Optional


class EnkiduError(Exception):
    ...


class BuilderError(EnkiduError):
    def __init__(self, message: str, address: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.address = address

    def __str__(self) -> str:
        if self.address is None:
            return self.message
        return f"${self.address:06X}: {self.message}"


class MalformedEffectError(BuilderError):
    ...


class DuplicateBlockStartError(BuilderError):
    def __init__(self, address: int):
        super().__init__("A block already starts at this address.", address)


class EffectMismatchError(BuilderError):
    def __init__(self, address: int, recorded, observed):
        super().__init__(
            f"Recorded {recorded!r}, but observed {observed!r}.", address
        )
        self.recorded = recorded
        self.observed = observed


class SplitAlignmentError(BuilderError):
    ...


class MissingBlockError(EnkiduError):
    def __init__(self, address: int):
        super().__init__(f"No block starts at ${address:06X}.")
        self.address = address


class StaleViewError(EnkiduError):
    ...
