"""Exception hierarchy for the pool watcher."""


class PoolWatcherError(Exception):
    pass


class DecodeError(PoolWatcherError):
    """Raw account bytes could not be turned into a PoolRecord."""


class ShortPayload(DecodeError):
    def __init__(self, program_kind: str, size: int, minimum: int) -> None:
        self.program_kind = program_kind
        self.size = size
        self.minimum = minimum
        super().__init__(f"{program_kind}: payload {size} bytes < minimum {minimum}")


class UnrecognizedLayout(DecodeError):
    def __init__(self, program_kind: str, discriminator: bytes) -> None:
        self.program_kind = program_kind
        self.discriminator = discriminator
        super().__init__(f"{program_kind}: unexpected discriminator {discriminator.hex()}")


class UnsupportedProgram(DecodeError):
    """Configuration error: no decoder exists for the program kind."""

    def __init__(self, program_kind: object) -> None:
        self.program_kind = program_kind
        super().__init__(f"no decoder registered for program kind {program_kind!r}")


class TransportError(PoolWatcherError):
    pass


class RpcError(TransportError):
    def __init__(self, method: str, message: str, code: int | None = None) -> None:
        self.method = method
        self.code = code
        super().__init__(f"{method} failed: {message}" + (f" (code {code})" if code is not None else ""))


class SubscriptionError(TransportError):
    pass


class BusClosed(PoolWatcherError):
    pass


class BusLagged(PoolWatcherError):
    """The subscriber fell behind and ``count`` events were dropped for it."""

    def __init__(self, count: int) -> None:
        self.count = count
        super().__init__(f"subscriber lagged, {count} events dropped")
