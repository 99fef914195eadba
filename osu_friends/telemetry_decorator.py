"""Usage metrics for prefix commands."""
from __future__ import annotations

import functools
import time
from typing import Any, Callable

from discord.ext import commands

from .telemetry import get_telemetry


def track_command(func: Callable) -> Callable:
    """Record each invocation of a command callback, failures included."""

    @functools.wraps(func)
    async def wrapper(ctx: commands.Context, *args, **kwargs) -> Any:
        telemetry = get_telemetry()
        user_id = str(ctx.author.id)
        started = time.time()
        succeeded = False
        try:
            result = await func(ctx, *args, **kwargs)
            succeeded = True
            return result
        except Exception as exc:
            telemetry.track_error(
                type(exc).__name__, command=func.__name__, user_id=user_id, error_details=str(exc)
            )
            raise
        finally:
            telemetry.track_command(
                func.__name__,
                user_id,
                str(ctx.guild.id) if ctx.guild else "dm",
                success=succeeded,
                duration_ms=(time.time() - started) * 1000,
            )

    return wrapper
