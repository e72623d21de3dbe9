"""Async Solana JSON-RPC client (getProgramAccounts, getAccountInfo)."""

import base64
from typing import Any

import httpx
from loguru import logger

from pool_watcher.exceptions import RpcError
from pool_watcher.models.pool import RawAccountUpdate, ScanResult, UpdateSource


def decode_account_data(data: Any) -> bytes:
    """Account ``data`` as returned with base64 encoding: ``[b64, "base64"]``."""
    if isinstance(data, list):
        if len(data) < 2 or data[1] != "base64":
            raise ValueError(f"unexpected account data encoding: {data[1:]!r}")
        data = data[0]
    if not isinstance(data, str):
        raise ValueError(f"unexpected account data type: {type(data).__name__}")
    return base64.b64decode(data, validate=True)


class SolanaRpcClient:
    def __init__(
        self,
        rpc_url: str,
        *,
        timeout: float = 30.0,
        commitment: str = "confirmed",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._rpc_url = rpc_url
        self._commitment = commitment
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._request_id = 0

    @property
    def rpc_url(self) -> str:
        return self._rpc_url

    async def call(self, method: str, params: list) -> Any:
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params,
        }
        try:
            resp = await self._client.post(self._rpc_url, json=payload)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPError as e:
            raise RpcError(method, f"{type(e).__name__}: {e}") from e
        except ValueError as e:
            raise RpcError(method, f"invalid JSON response: {e}") from e

        if not isinstance(data, dict):
            raise RpcError(method, f"unexpected response shape: {type(data).__name__}")
        error = data.get("error")
        if isinstance(error, dict):
            raise RpcError(method, error.get("message", str(error)), error.get("code"))
        if error:
            raise RpcError(method, str(error))
        if "result" not in data:
            raise RpcError(method, "response has no result")
        return data["result"]

    async def get_program_accounts(
        self,
        program_id: str,
        *,
        filters: list[dict] | None = None,
        data_length: int | None = None,
    ) -> ScanResult:
        """Every account owned by ``program_id`` matching ``filters``.

        ``data_length`` trims each account body to its first N bytes.

        Accounts whose data cannot be read are skipped; the call itself
        raises RpcError on transport or RPC failure.
        """
        config: dict[str, Any] = {
            "encoding": "base64",
            "commitment": self._commitment,
            "withContext": True,
        }
        if filters:
            config["filters"] = filters
        if data_length is not None:
            config["dataSlice"] = {"offset": 0, "length": data_length}
        result = await self.call("getProgramAccounts", [program_id, config])

        if isinstance(result, dict):
            slot = int((result.get("context") or {}).get("slot") or 0)
            accounts = result.get("value") or []
        else:
            slot, accounts = 0, result or []

        updates: list[RawAccountUpdate] = []
        for item in accounts:
            try:
                updates.append(
                    RawAccountUpdate(
                        address=item["pubkey"],
                        program_id=program_id,
                        data=decode_account_data(item["account"]["data"]),
                        slot=slot,
                        source=UpdateSource.PULL,
                    )
                )
            except (KeyError, TypeError, ValueError) as e:
                logger.debug(f"[RPC] Skipping unreadable account in {program_id[:8]} scan: {e}")
        return ScanResult(slot=slot, updates=updates)

    async def get_account_info(self, address: str) -> dict | None:
        """``{"owner", "lamports", "data": bytes}`` or None when the account does not exist."""
        result = await self.call(
            "getAccountInfo",
            [address, {"encoding": "base64", "commitment": self._commitment}],
        )
        value = (result or {}).get("value")
        if not value:
            return None
        try:
            data = decode_account_data(value.get("data"))
        except ValueError as e:
            raise RpcError("getAccountInfo", f"unreadable data for {address}: {e}") from e
        return {
            "owner": value.get("owner"),
            "lamports": value.get("lamports", 0),
            "data": data,
        }

    async def close(self) -> None:
        await self._client.aclose()
