"""
Token Metadata Enrichment
=========================
Best-effort display names/symbols/images for scanned sub-accounts.

Lookup per mint:
1. Derive the Metaplex metadata PDA and read name/symbol/uri on-chain
2. If a uri is present, fetch the off-chain JSON (ipfs:// via gateway);
   its name/symbol override the on-chain values, image comes from
   `image` or `logo`
3. Cache successful lookups by mint

Nothing here raises to the caller: a failed lookup yields an empty
TokenMeta. Enrichment runs off the critical path with a bounded worker
pool; workers hand results to a single merger that writes into the
ScanResultSet.
"""

import asyncio
import struct
from typing import Dict, Optional, Tuple

import httpx
from solders.pubkey import Pubkey

from solclaimer.modules.reclaimer.config import ReclaimerConfig
from solclaimer.modules.reclaimer.errors import MetadataFailure
from solclaimer.modules.reclaimer.models import ScanResultSet, TokenMeta
from solclaimer.shared.infrastructure.ledger_client import LedgerRpc
from solclaimer.shared.system.logging import Logger

METADATA_PROGRAM_ID = Pubkey.from_string("metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s")

# key (1) + update_authority (32) + mint (32)
_STRINGS_OFFSET = 65


class MetadataCache:
    """Mint → TokenMeta. Construct one per process, or per test."""

    def __init__(self):
        self._entries: Dict[str, TokenMeta] = {}

    def get(self, mint: str) -> Optional[TokenMeta]:
        return self._entries.get(mint)

    def put(self, mint: str, meta: TokenMeta) -> None:
        self._entries[mint] = meta

    def __contains__(self, mint: str) -> bool:
        return mint in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()


def clean_str(value) -> Optional[str]:
    """Strip NUL padding and whitespace; empty → None."""
    if not isinstance(value, str):
        return None
    return value.rstrip("\x00").strip() or None


def derive_metadata_pda(mint: Pubkey) -> Pubkey:
    seeds = [b"metadata", bytes(METADATA_PROGRAM_ID), bytes(mint)]
    pda, _ = Pubkey.find_program_address(seeds, METADATA_PROGRAM_ID)
    return pda


def _read_borsh_string(data: bytes, offset: int) -> Tuple[str, int]:
    (length,) = struct.unpack_from("<I", data, offset)
    start = offset + 4
    end = start + length
    if end > len(data):
        raise ValueError("string runs past account data")
    return data[start:end].decode("utf-8", errors="replace"), end


def parse_onchain_metadata(data: bytes) -> Tuple[Optional[str], Optional[str], Optional[str]]:
    """(name, symbol, uri) from a Metaplex metadata account."""
    name, offset = _read_borsh_string(data, _STRINGS_OFFSET)
    symbol, offset = _read_borsh_string(data, offset)
    uri, _ = _read_borsh_string(data, offset)
    return clean_str(name), clean_str(symbol), clean_str(uri)


class TokenMetadataFetcher:

    def __init__(
        self,
        ledger: LedgerRpc,
        cache: MetadataCache,
        config: ReclaimerConfig = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.ledger = ledger
        self.cache = cache
        self.config = config or ReclaimerConfig()
        self._transport = transport

    def gateway_url(self, uri: str) -> str:
        if uri.startswith("ipfs://"):
            return f"{self.config.IPFS_GATEWAY}{uri[len('ipfs://'):]}"
        return uri

    async def fetch(self, mint: str) -> TokenMeta:
        cached = self.cache.get(mint)
        if cached is not None:
            return cached
        try:
            meta = await asyncio.wait_for(self._lookup(mint), timeout=self.config.METADATA_TIMEOUT_S)
        except Exception as e:
            Logger.debug(f"[META] lookup for {mint[:8]}… abandoned: {e!r}")
            return TokenMeta()
        if meta is not None:
            self.cache.put(mint, meta)
            return meta
        return TokenMeta()

    async def _lookup(self, mint: str) -> Optional[TokenMeta]:
        data = await self.ledger.get_account_data(derive_metadata_pda(Pubkey.from_string(mint)))
        if not data:
            return None

        try:
            name, symbol, uri = parse_onchain_metadata(data)
        except (struct.error, ValueError) as e:
            raise MetadataFailure(f"malformed metadata account for {mint}: {e}") from e
        image = None
        if uri:
            offchain = await self._fetch_offchain(uri)
            if offchain:
                name = clean_str(offchain.get("name")) or name
                symbol = clean_str(offchain.get("symbol")) or symbol
                image = clean_str(offchain.get("image")) or clean_str(offchain.get("logo"))
                if image:
                    image = self.gateway_url(image)

        return TokenMeta(name=name, symbol=symbol, image=image)

    async def _fetch_offchain(self, uri: str) -> Optional[dict]:
        try:
            async with httpx.AsyncClient(
                timeout=self.config.METADATA_TIMEOUT_S,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                response = await client.get(self.gateway_url(uri))
                if response.status_code != 200:
                    return None
                body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            Logger.debug(f"[META] off-chain JSON {uri[:48]} failed: {e}")
            return None
        return body if isinstance(body, dict) else None


class MetadataEnricher:
    """
    Bounded worker pool over a scan result.

    Usage:
        enricher = MetadataEnricher(fetcher)
        task = asyncio.create_task(enricher.enrich(result))   # off the critical path
    """

    def __init__(self, fetcher: TokenMetadataFetcher, concurrency: Optional[int] = None):
        self.fetcher = fetcher
        self.concurrency = concurrency or fetcher.config.METADATA_CONCURRENCY

    async def enrich(self, results: ScanResultSet) -> int:
        """Attach metadata to every account it can; returns how many were attached."""
        work: asyncio.Queue = asyncio.Queue()
        for account in results.accounts:
            work.put_nowait((account.address, account.mint))
        merged: asyncio.Queue = asyncio.Queue()

        async def worker():
            while True:
                try:
                    address, mint = work.get_nowait()
                except asyncio.QueueEmpty:
                    return
                try:
                    meta = await self.fetcher.fetch(mint)
                except Exception as e:
                    Logger.debug(f"[META] worker skipped {mint[:8]}…: {e}")
                    continue
                if not meta.is_empty:
                    await merged.put((address, meta))

        async def merger():
            attached = 0
            while True:
                item = await merged.get()
                if item is None:
                    return attached
                if results.attach_metadata(*item):
                    attached += 1

        merge_task = asyncio.create_task(merger())
        try:
            await asyncio.gather(*(worker() for _ in range(max(1, self.concurrency))))
        finally:
            await merged.put(None)
        attached = await merge_task
        Logger.debug(f"[META] Attached metadata to {attached}/{len(results)} sub-accounts")
        return attached
