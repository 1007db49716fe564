"""
Unit tests for new pool detection

Tests:
1. initialize2 classification and account extraction
2. Notification processing (dedup, failure isolation)
3. Subscription lifecycle
"""

import asyncio
from datetime import datetime, timezone

import pytest

from pool_sniper.core.models import CompiledInstruction, TransactionSnapshot
from pool_sniper.core.pool_detector import LogMarkerClassifier, PoolEventDetector

PROGRAM = "675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8"
KEYS = [f"Key{i}" for i in range(20)] + [PROGRAM]
PROGRAM_INDEX = len(KEYS) - 1
INIT_LOGS = [
    f"Program {PROGRAM} invoke [1]",
    "Program log: initialize2: InitializeInstruction2 { nonce: 254, open_time: 0, init_pc_amount: 8500000000 }",
]


def init_tx(signature="sig1", accounts=None, logs=None, program_index=PROGRAM_INDEX, block_time=1_714_564_800):
    accounts = list(range(18)) if accounts is None else accounts
    return TransactionSnapshot(
        signature=signature,
        instructions=[
            CompiledInstruction(program_id_index=0, accounts=[1, 2], data=""),
            CompiledInstruction(program_id_index=program_index, accounts=accounts, data="init"),
        ],
        account_keys=KEYS,
        log_messages=INIT_LOGS if logs is None else logs,
        block_time=block_time,
    )


class FakeFeed:
    def __init__(self):
        self.subscriptions = []
        self.unsubscribed = []
        self.notify = None

    async def subscribe(self, program_id, notify):
        self.notify = notify
        self.subscriptions.append(program_id)
        return f"handle-{len(self.subscriptions)}"

    async def unsubscribe(self, handle):
        self.unsubscribed.append(handle)


class TestLogMarkerClassifier:
    def test_extracts_initialize2_accounts(self):
        """pool=4, lp=7, coin=8, pc=9, market=16"""
        event = LogMarkerClassifier().classify(init_tx(), PROGRAM)

        assert event.pool_id == "Key4"
        assert event.lp_mint == "Key7"
        assert event.token_a_mint == "Key8"
        assert event.token_b_mint == "Key9"
        assert event.market_id == "Key16"
        assert event.signature == "sig1"
        assert event.timestamp == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def test_indices_go_through_account_table(self):
        accounts = [19, 18, 17, 16, 15, 14, 13, 12, 11, 10, 9]
        event = LogMarkerClassifier().classify(init_tx(accounts=accounts), PROGRAM)
        assert event.pool_id == "Key15"
        assert event.token_a_mint == "Key11"
        assert event.token_b_mint == "Key10"
        assert event.market_id == ""

    @pytest.mark.parametrize("logs", [
        [],
        ["Program log: ray_log: swap"],
        [f"Program {PROGRAM} success"],
    ])
    def test_requires_log_marker(self, logs):
        assert LogMarkerClassifier().classify(init_tx(logs=logs), PROGRAM) is None

    def test_either_marker_matches(self):
        logs = ["Program log: init_pc_amount: 1000"]
        assert LogMarkerClassifier().classify(init_tx(logs=logs), PROGRAM) is not None

    def test_other_program_ignored(self):
        assert LogMarkerClassifier().classify(init_tx(program_index=3), PROGRAM) is None

    def test_short_account_list_skipped(self):
        assert LogMarkerClassifier().classify(init_tx(accounts=list(range(9))), PROGRAM) is None

    def test_out_of_range_index_skipped(self):
        accounts = list(range(18))
        accounts[8] = 99
        assert LogMarkerClassifier().classify(init_tx(accounts=accounts), PROGRAM) is None

    def test_missing_block_time_uses_now(self):
        event = LogMarkerClassifier().classify(init_tx(block_time=None), PROGRAM)
        assert abs((datetime.now(timezone.utc) - event.timestamp).total_seconds()) < 5


@pytest.fixture
def feed():
    return FakeFeed()


@pytest.fixture
def detector(gateway, feed):
    gateway.signatures["Key4"] = "sig1"
    gateway.transactions["sig1"] = init_tx()
    return PoolEventDetector(gateway, feed, PROGRAM)


class TestProcessNotification:
    def test_emits_event_to_handler(self, detector):
        received = []

        async def handler(event):
            received.append(event)

        async def scenario():
            await detector.subscribe(handler)
            return await detector.process_notification("Key4")

        event = asyncio.run(scenario())
        assert received == [event]
        assert event.pool_id == "Key4"

    def test_same_signature_emitted_once(self, detector, gateway):
        """Two notifications resolving to one transaction yield one event"""
        gateway.signatures["Key7"] = "sig1"
        received = []

        async def handler(event):
            received.append(event)

        async def scenario():
            await detector.subscribe(handler)
            await detector.process_notification("Key4")
            await detector.process_notification("Key7")

        asyncio.run(scenario())
        assert len(received) == 1
        assert gateway.calls.count(("transaction", "sig1")) == 1

    def test_concurrent_duplicates_emit_once(self, detector):
        received = []

        async def handler(event):
            received.append(event)

        async def scenario():
            await detector.subscribe(handler)
            await asyncio.gather(*(detector.process_notification("Key4") for _ in range(5)))

        asyncio.run(scenario())
        assert len(received) == 1

    def test_lookup_failure_dropped(self, detector, gateway):
        """A failing lookup drops only that notification"""
        gateway.signatures["Bad"] = RuntimeError("rpc timeout")
        received = []

        async def handler(event):
            received.append(event)

        async def scenario():
            await detector.subscribe(handler)
            bad = await detector.process_notification("Bad")
            good = await detector.process_notification("Key4")
            return bad, good

        bad, good = asyncio.run(scenario())
        assert bad is None
        assert good is not None
        assert len(received) == 1

    def test_missing_transaction_not_remembered(self, detector, gateway):
        """An unavailable transaction can be retried by a later notification"""
        tx = gateway.transactions.pop("sig1")

        async def scenario():
            first = await detector.process_notification("Key4")
            gateway.transactions["sig1"] = tx
            second = await detector.process_notification("Key4")
            return first, second

        first, second = asyncio.run(scenario())
        assert first is None
        assert second is not None

    def test_non_pool_transaction(self, detector, gateway):
        gateway.signatures["Key2"] = "swap"
        gateway.transactions["swap"] = init_tx(signature="swap", logs=["Program log: ray_log: swap"])
        assert asyncio.run(detector.process_notification("Key2")) is None

    def test_handler_error_contained(self, detector):
        async def handler(event):
            raise ValueError("handler blew up")

        async def scenario():
            await detector.subscribe(handler)
            return await detector.process_notification("Key4")

        assert asyncio.run(scenario()) is None

    def test_seen_cache_is_bounded(self, gateway, feed):
        detector = PoolEventDetector(gateway, feed, PROGRAM, seen_cache_size=2)
        for i in range(4):
            gateway.signatures[f"acct{i}"] = f"s{i}"
            gateway.transactions[f"s{i}"] = init_tx(signature=f"s{i}")

        async def scenario():
            for i in range(4):
                await detector.process_notification(f"acct{i}")

        asyncio.run(scenario())
        assert list(detector._seen) == ["s2", "s3"]


class TestSubscription:
    def test_second_subscribe_ignored(self, detector, feed):
        async def handler(event):
            pass

        async def scenario():
            await detector.subscribe(handler)
            await detector.subscribe(handler)

        asyncio.run(scenario())
        assert feed.subscriptions == [PROGRAM]
        assert detector.is_subscribed

    def test_concurrent_subscribe_opens_one_feed(self, gateway):
        """Racing subscribe calls share one feed subscription"""
        class SlowFeed(FakeFeed):
            async def subscribe(self, program_id, notify):
                await asyncio.sleep(0.01)
                return await super().subscribe(program_id, notify)

        slow_feed = SlowFeed()
        detector = PoolEventDetector(gateway, slow_feed, PROGRAM)

        async def handler(event):
            pass

        async def scenario():
            await asyncio.gather(detector.subscribe(handler), detector.subscribe(handler))
            await detector.unsubscribe()

        asyncio.run(scenario())
        assert slow_feed.subscriptions == [PROGRAM]
        assert slow_feed.unsubscribed == ["handle-1"]

    def test_unsubscribe(self, detector, feed):
        async def handler(event):
            pass

        async def scenario():
            await detector.subscribe(handler)
            await detector.unsubscribe()
            await detector.unsubscribe()

        asyncio.run(scenario())
        assert feed.unsubscribed == ["handle-1"]
        assert not detector.is_subscribed

    def test_unsubscribe_without_subscription(self, detector, feed):
        asyncio.run(detector.unsubscribe())
        assert feed.unsubscribed == []

    def test_feed_notifications_run_as_tasks(self, detector, feed):
        """The feed callback returns immediately, processing happens in a task"""
        received = []

        async def handler(event):
            received.append(event)

        async def scenario():
            await detector.subscribe(handler)
            await feed.notify("Key4")
            await asyncio.gather(*detector._tasks)

        asyncio.run(scenario())
        assert len(received) == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
