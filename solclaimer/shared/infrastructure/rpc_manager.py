"""
RPC Failover Manager
====================
Tracks a pool of RPC providers, their health stats, and the active one.
The ledger client asks for the active URL and reports each call's outcome;
a transport failure rotates to the next provider for the NEXT call.
"""

import time
from typing import Dict, List, Optional

from config.settings import Settings
from solclaimer.shared.system.logging import Logger


class RpcEndpointPool:
    """
    Manages RPC endpoint health tracking and failover.
    """

    def __init__(self, rpc_urls: Optional[List[str]] = None):
        urls = rpc_urls or Settings.rpc_urls()

        # Deduplicate and filter empty
        self.rpc_urls = list(dict.fromkeys([u for u in urls if u]))
        if not self.rpc_urls:
            raise ValueError("At least one RPC URL is required")

        self.current_index = 0
        self.stats: Dict[str, Dict] = {
            url: {
                "success": 0,
                "errors": 0,
                "avg_latency": 0.0,
                "last_error_time": 0,
                "last_error": "",
            }
            for url in self.rpc_urls
        }

        Logger.debug(f"[RPC] Endpoint pool initialized with {len(self.rpc_urls)} providers")

    def get_active_url(self) -> str:
        return self.rpc_urls[self.current_index]

    def record_success(self, url: str, latency_ms: float):
        s = self.stats[url]
        s["success"] += 1
        # Exponential moving average for latency
        if s["avg_latency"] == 0:
            s["avg_latency"] = latency_ms
        else:
            s["avg_latency"] = 0.9 * s["avg_latency"] + 0.1 * latency_ms

    def record_error(self, url: str, error_msg: str):
        s = self.stats[url]
        s["errors"] += 1
        s["last_error_time"] = time.time()
        s["last_error"] = error_msg[:200]

    def switch_provider(self, reason: str = "Unknown") -> str:
        """Force rotation to next provider."""
        old_url = self.get_active_url()
        self.current_index = (self.current_index + 1) % len(self.rpc_urls)
        new_url = self.get_active_url()

        if new_url != old_url:
            Logger.warning(f"🔄 [RPC] Switching Provider: {old_url} -> {new_url} (Reason: {reason})")
        return new_url

    def get_stats(self):
        return {"active_provider": self.get_active_url(), "providers": self.stats}
