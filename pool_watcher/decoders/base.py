"""Common shape of a pool account decoder."""

from pool_watcher.decoders.layout import (
    discriminator_filter,
    require_discriminator,
    require_length,
)
from pool_watcher.models.pool import PoolRecord, ProgramKind


class PoolDecoder:
    """Validates size and discriminator, then hands off to ``_decode``.

    Subclasses declare ``kind``, ``discriminator`` and ``min_size`` (the end
    offset of the last field they read) and implement ``_decode``.
    """

    kind: ProgramKind
    discriminator: bytes
    min_size: int

    def decode(
        self, address: str, data: bytes, *, program_id: str, slot: int = 0
    ) -> PoolRecord:
        require_length(self.kind.value, data, self.min_size)
        require_discriminator(self.kind.value, data, self.discriminator)
        return self._decode(address, data, program_id=program_id, slot=slot)

    def _decode(
        self, address: str, data: bytes, *, program_id: str, slot: int
    ) -> PoolRecord:
        raise NotImplementedError

    def account_filters(self) -> list[dict]:
        return [discriminator_filter(self.discriminator)]
