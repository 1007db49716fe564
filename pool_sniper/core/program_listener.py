"""Solana JSON-RPC WebSocket feed of program account changes."""
from __future__ import annotations

import asyncio
import itertools
import json
import logging
from dataclasses import dataclass, field
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from pool_sniper.config import Settings
from pool_sniper.core.interfaces import NotificationCallback


def parse_program_notification(data: Any) -> str | None:
    """Changed account pubkey from a ``programNotification`` message, else None."""
    if not isinstance(data, dict):
        return None
    if data.get("method") != "programNotification":
        return None
    try:
        pubkey = data["params"]["result"]["value"]["pubkey"]
    except (KeyError, TypeError):
        return None
    return str(pubkey) if pubkey else None


@dataclass
class ProgramSubscription:
    program_id: str
    notify: NotificationCallback
    task: asyncio.Task | None = None
    server_id: int | None = None
    ws: Any = field(default=None, repr=False)


class ProgramAccountFeed:
    """WebSocket ``programSubscribe`` client.

    Each subscription runs its own connect loop and resubscribes after a
    dropped connection, backing off exponentially up to 30s.
    """

    def __init__(self, settings: Settings, commitment: str = "confirmed") -> None:
        self.settings = settings
        self.ws_url = settings.WSS_URL
        self.commitment = commitment
        self.logger = logging.getLogger("pool_sniper.listener")
        self._ids = itertools.count(1)

    async def subscribe(self, program_id: str, notify: NotificationCallback) -> ProgramSubscription:
        subscription = ProgramSubscription(program_id=program_id, notify=notify)
        subscription.task = asyncio.create_task(self._run(subscription))
        return subscription

    async def unsubscribe(self, handle: ProgramSubscription) -> None:
        ws = handle.ws
        if ws is not None and handle.server_id is not None:
            try:
                await ws.send(json.dumps({
                    "jsonrpc": "2.0",
                    "id": next(self._ids),
                    "method": "programUnsubscribe",
                    "params": [handle.server_id],
                }))
            except ConnectionClosed:
                pass
        if handle.task is not None:
            handle.task.cancel()
            try:
                await handle.task
            except asyncio.CancelledError:
                pass
        handle.task = None
        handle.server_id = None
        self.logger.info("Unsubscribed from program %s", handle.program_id)

    async def _run(self, sub: ProgramSubscription) -> None:
        reconnect_delay = 1.0
        while True:
            try:
                async with websockets.connect(self.ws_url, ping_interval=20) as ws:
                    sub.ws = ws
                    request_id = next(self._ids)
                    await ws.send(json.dumps({
                        "jsonrpc": "2.0",
                        "id": request_id,
                        "method": "programSubscribe",
                        "params": [sub.program_id, {"encoding": "base64", "commitment": self.commitment}],
                    }))
                    self.logger.info("WebSocket connected to %s, subscribing to %s", self.ws_url, sub.program_id)
                    reconnect_delay = 1.0

                    async for message in ws:
                        try:
                            data = json.loads(message)
                        except json.JSONDecodeError:
                            self.logger.debug("Ignoring non-JSON frame")
                            continue
                        await self._dispatch(sub, data, request_id)

            except asyncio.CancelledError:
                raise
            except ConnectionClosed as e:
                self.logger.warning("WebSocket closed: %s", e)
            except (OSError, WebSocketException) as e:
                self.logger.error("WebSocket error: %s", e)
            except Exception as e:
                self.logger.error("WebSocket feed error: %s", e, exc_info=True)
            finally:
                sub.ws = None
                sub.server_id = None

            self.logger.info("WebSocket reconnecting in %.1fs...", reconnect_delay)
            await asyncio.sleep(reconnect_delay)
            reconnect_delay = min(reconnect_delay * 2, 30.0)

    async def _dispatch(self, sub: ProgramSubscription, data: Any, request_id: int) -> None:
        if not isinstance(data, dict):
            self.logger.debug("Ignoring non-object frame: %r", data)
            return
        if data.get("id") == request_id:
            if "error" in data:
                self.logger.error("programSubscribe rejected: %s", data["error"])
                return
            sub.server_id = data.get("result")
            self.logger.info("✅ Subscribed to %s (subscription %s)", sub.program_id, sub.server_id)
            return

        account = parse_program_notification(data)
        if account is None:
            return
        try:
            await sub.notify(account)
        except Exception as e:
            self.logger.error("Notification handler failed for %s: %s", account, e)
