"""
Solana JSON-RPC client.

The ledger is the only part of the system that blocks.  A
:class:`LedgerClient` is built from an explicit :class:`LedgerConfig`;
nothing is process-wide, so two clients on different clusters can be
used side by side.

Environment Variables
---------------------
- SOLANA_TSS_NETWORK: ``mainnet-beta``, ``devnet`` or ``testnet``
  (default: devnet), read by :meth:`LedgerConfig.from_env`.
- SOLANA_TSS_RPC_URL: RPC endpoint overriding the cluster default.
"""

from __future__ import annotations

import base64
import itertools
import logging
import os
import time
from dataclasses import dataclass
from typing import Any, List, Optional, Union

import requests

from .errors import FaucetUnavailable, LedgerError
from .keys import Keypair, PublicKey
from .signing import CompleteSignature, sign_single
from .transaction import Network, TransactionDetails

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerConfig:
    """Connection settings for one cluster."""

    network: Network = Network.DEV
    rpc_url: Optional[str] = None
    commitment: str = "confirmed"
    timeout: float = 10.0
    confirm_attempts: int = 30
    confirm_interval: float = 1.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "network", Network.parse(self.network))

    @property
    def endpoint(self) -> str:
        return self.rpc_url or self.network.default_rpc_url

    @classmethod
    def from_env(cls, **overrides: Any) -> LedgerConfig:
        values: dict = {
            "network": os.getenv("SOLANA_TSS_NETWORK", Network.DEV.value),
            "rpc_url": os.getenv("SOLANA_TSS_RPC_URL") or None,
        }
        values.update(overrides)
        return cls(**values)


class LedgerClient:
    """
    Blockhash, balance, faucet, submission and confirmation.

    Parameters
    ----------
    config : LedgerConfig
        Cluster and timing settings.
    session : requests.Session or None
        HTTP session to reuse; one is created when omitted.
    """

    def __init__(
        self,
        config: Optional[LedgerConfig] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.config = config or LedgerConfig()
        self._http = session or requests.Session()
        self._ids = itertools.count(1)

    @property
    def network(self) -> Network:
        return self.config.network

    # ── RPC ────────────────────────────────────────────────────────────

    def _call(self, method: str, params: Optional[List[Any]] = None) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }
        logger.debug("rpc %s -> %s", method, self.config.endpoint)
        try:
            r = self._http.post(
                self.config.endpoint, json=payload, timeout=self.config.timeout,
            )
            r.raise_for_status()
            body = r.json()
        except (requests.RequestException, ValueError) as exc:
            raise LedgerError(f"{method}: {exc}") from exc
        if body.get("error"):
            err = body["error"]
            raise LedgerError(f"{method}: {err.get('message', err)}")
        return body.get("result")

    # ── queries ────────────────────────────────────────────────────────

    def get_recent_block_reference(self) -> str:
        """Latest blockhash (base58)."""
        result = self._call(
            "getLatestBlockhash", [{"commitment": self.config.commitment}],
        )
        return result["value"]["blockhash"]

    def get_balance(self, key: Union[PublicKey, str]) -> int:
        """Balance in lamports."""
        result = self._call(
            "getBalance",
            [str(PublicKey.coerce(key)), {"commitment": self.config.commitment}],
        )
        return int(result["value"])

    def request_faucet_funds(self, key: Union[PublicKey, str], amount: int) -> str:
        """Airdrop *amount* lamports; unavailable on mainnet."""
        if self.network is Network.MAIN:
            raise FaucetUnavailable()
        return self._call("requestAirdrop", [str(PublicKey.coerce(key)), int(amount)])

    # ── submission ─────────────────────────────────────────────────────

    def submit(self, transaction_bytes: bytes) -> str:
        """Send a signed wire transaction; returns its id (first signature)."""
        encoded = base64.b64encode(transaction_bytes).decode("ascii")
        txid = self._call("sendTransaction", [encoded, {
            "encoding": "base64",
            "preflightCommitment": self.config.commitment,
        }])
        logger.info("submitted transaction %s", txid)
        return txid

    def confirm(self, transaction_id: str) -> bool:
        """
        Poll until the transaction reaches the configured commitment.

        Returns False when it failed on chain or did not land within
        ``confirm_attempts`` polls.
        """
        if self.config.commitment == "finalized":
            wanted = ("finalized",)
        else:
            wanted = ("confirmed", "finalized")
        for attempt in range(self.config.confirm_attempts):
            result = self._call(
                "getSignatureStatuses",
                [[transaction_id], {"searchTransactionHistory": True}],
            )
            status = (result or {}).get("value", [None])[0]
            if status is not None:
                if status.get("err") is not None:
                    logger.warning("transaction %s failed: %s",
                                   transaction_id, status["err"])
                    return False
                if status.get("confirmationStatus") in wanted:
                    return True
            if attempt + 1 < self.config.confirm_attempts:
                time.sleep(self.config.confirm_interval)
        logger.warning("transaction %s not confirmed after %d polls",
                       transaction_id, self.config.confirm_attempts)
        return False

    def send_and_confirm(self, complete: CompleteSignature) -> str:
        """Broadcast an aggregated signature's transaction and wait for it."""
        txid = self.submit(complete.transaction_bytes)
        if not self.confirm(txid):
            raise LedgerError(f"transaction {txid} was not confirmed")
        return txid

    def send_single(
        self,
        keypair: Keypair,
        to: Union[PublicKey, str],
        amount: int,
        memo: Optional[str] = None,
    ) -> str:
        """Transfer from an ordinary single-key account."""
        details = TransactionDetails(
            amount=amount,
            from_key=keypair.public_key,
            to_key=PublicKey.coerce(to),
            network=self.network,
            recent_block_reference=self.get_recent_block_reference(),
            memo=memo,
        )
        return self.send_and_confirm(sign_single(keypair, details))

    def __repr__(self) -> str:
        return f"LedgerClient({self.network.value}, {self.config.endpoint})"
