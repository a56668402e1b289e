# tests/test_cancellation.py
#
# Unit tests for modules/cancellation.py

import asyncio

import pytest

from modules.cancellation import CancellationToken, OperationCancelled, simulated_delay


def test_token_starts_uncancelled():
    token = CancellationToken()
    assert token.cancelled is False
    token.raise_if_cancelled()

def test_cancel_sets_reason_and_raises():
    token = CancellationToken()
    token.cancel("pause requested (Ctrl+K)")
    assert token.cancelled is True
    with pytest.raises(OperationCancelled, match="Ctrl\\+K"):
        token.raise_if_cancelled()

@pytest.mark.asyncio
async def test_zero_delay_returns_immediately():
    await asyncio.wait_for(simulated_delay(0, 0), timeout=0.5)

@pytest.mark.asyncio
async def test_already_cancelled_token_raises_before_waiting():
    token = CancellationToken()
    token.cancel()
    with pytest.raises(OperationCancelled):
        await simulated_delay(5000, 5000, token)

@pytest.mark.asyncio
async def test_cancel_during_delay_interrupts_it():
    token = CancellationToken()

    async def cancel_soon():
        await asyncio.sleep(0.06)
        token.cancel()

    canceller = asyncio.create_task(cancel_soon())
    with pytest.raises(OperationCancelled):
        await asyncio.wait_for(simulated_delay(5000, 5000, token), timeout=2)
    await canceller
