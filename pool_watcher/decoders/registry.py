"""Program kind -> decoder dispatch.

Adding an AMM family means writing one PoolDecoder subclass and one entry in
DECODERS; callers only ever go through ``decode``.
"""

from collections.abc import Iterable

from loguru import logger

from pool_watcher.decoders.base import PoolDecoder
from pool_watcher.decoders.orca_whirlpool import WhirlpoolDecoder
from pool_watcher.decoders.raydium_clmm import RaydiumClmmDecoder
from pool_watcher.decoders.raydium_cpmm import RaydiumCpmmDecoder
from pool_watcher.exceptions import UnsupportedProgram
from pool_watcher.models.pool import (
    PoolRecord,
    ProgramKind,
    RawAccountUpdate,
    WatchedProgram,
)

DECODERS: dict[ProgramKind, PoolDecoder] = {
    ProgramKind.ORCA_WHIRLPOOL: WhirlpoolDecoder(),
    ProgramKind.RAYDIUM_CLMM: RaydiumClmmDecoder(),
    ProgramKind.RAYDIUM_CPMM: RaydiumCpmmDecoder(),
}


def supported_kinds() -> frozenset[ProgramKind]:
    return frozenset(DECODERS)


def get_decoder(program_kind: ProgramKind | str) -> PoolDecoder:
    try:
        return DECODERS[ProgramKind(program_kind)]
    except (KeyError, ValueError):
        raise UnsupportedProgram(program_kind) from None


def decode(
    program_kind: ProgramKind | str,
    address: str,
    data: bytes,
    *,
    program_id: str,
    slot: int = 0,
) -> PoolRecord:
    """Decode one pool account. Raises a DecodeError subclass on bad input."""
    return get_decoder(program_kind).decode(address, data, program_id=program_id, slot=slot)


def decode_update(program_kind: ProgramKind | str, update: RawAccountUpdate) -> PoolRecord:
    return decode(
        program_kind,
        update.address,
        update.data,
        program_id=update.program_id,
        slot=update.slot,
    )


def account_filters(program_kind: ProgramKind | str) -> list[dict]:
    return get_decoder(program_kind).account_filters()


def validate_programs(programs: Iterable[WatchedProgram]) -> None:
    """Fail fast on configured programs we cannot decode.

    Each offending program is logged once; the first one is raised.
    """
    unsupported = [p for p in programs if p.kind not in DECODERS]
    for program in unsupported:
        logger.error(
            f"[DECODE] No decoder for {program.kind!r} (program {program.program_id})"
        )
    if unsupported:
        raise UnsupportedProgram(unsupported[0].kind)
