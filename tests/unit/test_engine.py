"""
ReclamationEngine Unit Tests
============================
End-to-end flows over the in-memory ledger: scan → estimate → execute.
"""

import asyncio

import pytest

from solclaimer.modules.reclaimer.models import ProgramVariant


class TestFullFlow:

    @pytest.mark.asyncio
    async def test_three_accounts_one_batch(self, engine, ledger, owner, store, three_empty_accounts):
        """2M + 1.5M + 0.5M lamports of rent, 80k fee → 3,920,000 net."""
        ledger.fee_per_signature = 80_000

        found = await engine.scan(owner)
        assert len(found) == 3
        assert found.total_lamports == 4_000_000

        report = await engine.execute(owner, found.accounts)

        assert report.execution.summary == "1/1"
        assert report.net_lamports == 3_920_000
        assert report.gross_lamports == 4_000_000
        assert report.closed_count == 3
        assert report.persisted

        stats = await engine.stats(owner)
        assert stats.total_closed == 3
        assert stats.total_reclaimed_lamports == 3_920_000
        assert len(stats.events) == 1
        assert stats.events[0].signatures == tuple(report.signatures)

    @pytest.mark.asyncio
    async def test_rescan_after_close_is_empty(self, engine, owner, three_empty_accounts):
        found = await engine.scan(owner)
        await engine.execute(owner, found.accounts)

        assert len(await engine.scan(owner)) == 0

    @pytest.mark.asyncio
    async def test_partial_failure_across_batches(self, engine, ledger, owner, store):
        """45 accounts, batch 2 rejected → 2/3 confirmed, its 20 accounts remain."""
        for i in range(45):
            ledger.add_token_account(ProgramVariant.TOKEN if i % 2 else ProgramVariant.TOKEN_2022)
        ledger.reject_sends = {2}

        found = await engine.scan(owner)
        report = await engine.execute(owner, found.accounts)

        assert report.execution.summary == "2/3"
        assert report.closed_count == 25
        assert len(await engine.scan(owner)) == 20
        assert report.log[-1] == "✅ Stats recorded"
        assert "Done. Closed 2/3 batches." in report.log
        assert len([line for line in report.log if line.startswith("https://explorer.solana.com/tx/")]) == 2

    @pytest.mark.asyncio
    async def test_repeated_operations_accumulate(self, engine, ledger, owner):
        ledger.add_token_account(lamports=1_000_000)
        await engine.execute(owner, (await engine.scan(owner)).accounts)
        first = await engine.stats(owner)

        ledger.add_token_account(lamports=2_000_000)
        await engine.execute(owner, (await engine.scan(owner)).accounts)
        second = await engine.stats(owner)

        assert second.total_closed == first.total_closed + 1
        assert second.total_reclaimed_lamports >= first.total_reclaimed_lamports
        assert len(second.events) == 2
        assert second.is_consistent()

    @pytest.mark.asyncio
    async def test_estimate_then_execute_invalidates_fee(self, engine, owner, three_empty_accounts):
        found = await engine.scan(owner)
        await engine.estimate(owner, found.accounts)
        assert engine.current_estimate(found.accounts) > 0

        await engine.execute(owner, found.accounts)

        assert engine.current_estimate(found.accounts) == 0

    @pytest.mark.asyncio
    async def test_unconfirmed_middle_batch_net(self, engine, ledger, owner):
        """45 accounts, batch 2 never lands → 25 closed, net is their rent minus two fees."""
        from tests.mocks import RENT_EXEMPT_TOKEN_ACCOUNT

        for _ in range(45):
            ledger.add_token_account()
        ledger.never_confirm = {2}

        found = await engine.scan(owner)
        report = await engine.execute(owner, found.accounts)

        assert report.execution.summary == "2/3"
        assert report.closed_count == 25
        assert report.net_lamports == 25 * RENT_EXEMPT_TOKEN_ACCOUNT - 2 * ledger.fee_per_signature
        assert report.gross_lamports == 25 * RENT_EXEMPT_TOKEN_ACCOUNT
        assert (await engine.stats(owner)).total_reclaimed_lamports == report.net_lamports
        assert len(await engine.scan(owner)) == 20

    @pytest.mark.asyncio
    async def test_enrichment_runs_alongside_execute(self, engine, ledger, owner, three_empty_accounts):
        """Metadata lookups still pending do not hold up closing the accounts."""
        from solclaimer.modules.reclaimer.models import TokenMeta

        gate = asyncio.Event()
        started = []

        async def slow_fetch(mint):
            started.append(mint)
            await gate.wait()
            return TokenMeta(name="Slow", symbol="SLW")

        engine.enricher.fetcher.fetch = slow_fetch
        found = await engine.scan(owner)
        enrichment = engine.enrich_in_background(found)
        while not started:
            await asyncio.sleep(0)

        report = await engine.execute(owner, found.accounts)

        assert not enrichment.done()
        assert report.execution.summary == "1/1"
        assert report.persisted

        gate.set()
        assert await enrichment == 3


class TestEdgeCases:

    @pytest.mark.asyncio
    async def test_empty_selection(self, engine, ledger, owner):
        report = await engine.execute(owner, [])

        assert report.log == ["No selected sub-accounts."]
        assert ledger.send_calls == 0
        assert ledger.balance_calls == 0

    @pytest.mark.asyncio
    async def test_no_signer(self, ledger, store, config, owner, three_empty_accounts):
        from solclaimer.modules.reclaimer.engine import ReclamationEngine
        from solclaimer.modules.reclaimer.errors import SigningUnavailable

        engine = ReclamationEngine(ledger, None, store, config)
        found = await engine.scan(owner)

        with pytest.raises(SigningUnavailable):
            await engine.execute(owner, found.accounts)

    @pytest.mark.asyncio
    async def test_concurrent_operation_rejected(self, engine, ledger, owner, three_empty_accounts):
        from solclaimer.modules.reclaimer.errors import OperationInProgress

        found = await engine.scan(owner)
        gate = asyncio.Event()
        real_balance = ledger.get_balance

        async def slow_balance(who):
            await gate.wait()
            return await real_balance(who)

        ledger.get_balance = slow_balance
        first = asyncio.create_task(engine.execute(owner, found.accounts))
        await asyncio.sleep(0)
        assert engine.is_busy(owner)

        with pytest.raises(OperationInProgress):
            await engine.execute(owner, found.accounts)

        gate.set()
        report = await first
        assert report.execution.summary == "1/1"
        assert not engine.is_busy(owner)

    @pytest.mark.asyncio
    async def test_stats_write_failure_keeps_ledger_outcome(self, engine, store, owner, three_empty_accounts):
        store.fail_writes = True

        found = await engine.scan(owner)
        report = await engine.execute(owner, found.accounts)

        assert report.ledger_success
        assert not report.persisted
        assert report.persist_error
        assert (await engine.stats(owner)).total_closed == 0

    @pytest.mark.asyncio
    async def test_nothing_confirmed(self, engine, ledger, store, owner, three_empty_accounts):
        ledger.reject_sends = {1}

        found = await engine.scan(owner)
        report = await engine.execute(owner, found.accounts)

        assert not report.ledger_success
        assert report.event is None
        assert store.writes == 0

    @pytest.mark.asyncio
    async def test_duplicate_selection_counted_once(self, engine, ledger, owner, three_empty_accounts):
        found = await engine.scan(owner)
        selection = list(found.accounts) + [found.accounts[0], found.accounts[2]]

        report = await engine.execute(owner, selection)

        assert report.selected == 3
        assert report.gross_lamports == 4_000_000
        assert report.closed_count == 3
        assert len(ledger.sent[0].message.instructions) == 3
        assert (await engine.stats(owner)).total_closed == 3

    @pytest.mark.asyncio
    async def test_after_snapshot_failure_keeps_execution(self, engine, ledger, owner, store, three_empty_accounts):
        """Balance unreadable after submission: the error still carries signatures and log."""
        from solclaimer.modules.reclaimer.errors import SnapshotFailure

        found = await engine.scan(owner)
        real_balance = ledger.get_balance
        reads = []

        async def flaky_balance(who):
            reads.append(who)
            if len(reads) > 1:
                raise ConnectionError("getBalance failed")
            return await real_balance(who)

        ledger.get_balance = flaky_balance

        with pytest.raises(SnapshotFailure) as excinfo:
            await engine.execute(owner, found.accounts)

        report = excinfo.value.report
        assert report is not None
        assert report.ledger_success
        assert report.closed_count == 3
        assert report.signatures == [str(ledger.sent[0].signatures[0])]
        assert any(line.startswith("https://explorer.solana.com/tx/") for line in report.log)
        assert "after balance could not be read" in report.log[-1]
        assert store.writes == 0
        assert not engine.is_busy(owner)
