"""Currency conversion on top of the latest cached rate."""

from fastapi import BackgroundTasks

from services.quotes import get_rate, normalize_currency

RESULT_DECIMALS = 6


async def convert(amount: float, source: str, target: str, background_tasks: BackgroundTasks | None = None) -> dict:
    """Convert with the rate shown to the client, so ``result == amount * rate`` up to rounding."""
    source = normalize_currency(source)
    target = normalize_currency(target)
    if amount <= 0:
        raise ValueError("amount must be greater than zero")

    quote = await get_rate(source, target, background_tasks)
    rate = round(quote["rate"], RESULT_DECIMALS)
    return {
        "from": source,
        "to": target,
        "amount": amount,
        "rate": rate,
        "result": round(amount * rate, RESULT_DECIMALS),
        "timestamp": quote["timestamp"],
        "stale": quote["stale"],
    }
