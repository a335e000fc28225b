"""
KINETIC BOARD - Pipeline Engine
Runs a fixed list of stages over one PipelineContext.

    idle -> running(stage 0) -> ... -> running(stage n) -> completed
    any running stage that raises -> failed

A stage failure fails the whole run; stages are never retried individually.
With a deadline, it is checked before every stage up to and including the
committing stage (leaderboard persist), and again after each stage returns,
since synchronous work cannot be interrupted by wait_for. Once the commit has
started, the remaining stages run to completion: a commit that began is never
reported as a timeout.
"""
from typing import List, Optional, Sequence
import asyncio
import time

from kinetic_board.errors import PipelineRunError, PipelineTimeoutError
from kinetic_board.pipeline.context import PipelineContext, PipelineState
from kinetic_board.pipeline.stages import Stage
from kinetic_board.utils.logger import get_logger, run_context

logger = get_logger("pipeline_engine")


class PipelineEngine:
    """Simple ordered stage runner."""

    def __init__(self, stages: Sequence[Stage]):
        if not stages:
            raise ValueError("a pipeline needs at least one stage")
        self.stages: List[Stage] = list(stages)

    @property
    def stage_names(self) -> List[str]:
        return [stage.name for stage in self.stages]

    def _fail(self, ctx: PipelineContext, stage: Stage, error: BaseException) -> None:
        ctx.state = PipelineState.FAILED
        ctx.current_stage = stage.name
        logger.error("pipeline_failed", stage=stage.name,
                     error_type=type(error).__name__, error=str(error))

    def _check_deadline(self, ctx: PipelineContext, stage: Stage, remaining: float, when: str) -> None:
        if remaining > 0:
            return
        error = PipelineTimeoutError(ctx.tag, ctx.correlation_id, stage.name,
                                     f"deadline passed {when}")
        self._fail(ctx, stage, error)
        raise error

    async def run(self, ctx: PipelineContext, timeout: Optional[float] = None) -> PipelineContext:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout if timeout is not None else None
        committed = False
        started = time.perf_counter()

        with run_context(ctx.tag, ctx.correlation_id):
            ctx.state = PipelineState.RUNNING
            logger.info("pipeline_started", batch_size=len(ctx.batch), preview=ctx.preview_only)

            for stage in self.stages:
                ctx.current_stage = stage.name
                if deadline is not None and not committed:
                    self._check_deadline(ctx, stage, deadline - loop.time(), "before stage start")
                committed = committed or stage.commits
                remaining = None if (deadline is None or committed) else deadline - loop.time()

                t0 = time.perf_counter()
                try:
                    if remaining is None:
                        next_ctx = await stage.run(ctx)
                    else:
                        next_ctx = await asyncio.wait_for(stage.run(ctx), remaining)
                except asyncio.TimeoutError as e:
                    self._fail(ctx, stage, e)
                    raise PipelineTimeoutError(ctx.tag, ctx.correlation_id, stage.name,
                                               f"deadline of {timeout}s exceeded") from e
                except asyncio.CancelledError as e:
                    self._fail(ctx, stage, e)
                    raise
                except Exception as e:
                    self._fail(ctx, stage, e)
                    raise PipelineRunError(ctx.tag, ctx.correlation_id, stage.name, str(e)) from e

                # synchronous work inside a stage cannot be interrupted by wait_for
                if remaining is not None:
                    self._check_deadline(ctx, stage, deadline - loop.time(), "during stage")

                elapsed_ms = (time.perf_counter() - t0) * 1000.0
                next_ctx.stage_timings_ms[stage.name] = round(elapsed_ms, 3)
                next_ctx.state = PipelineState.RUNNING
                next_ctx.current_stage = stage.name
                ctx = next_ctx
                logger.debug("stage_completed", stage=stage.name, ms=round(elapsed_ms, 3))

            ctx.state = PipelineState.COMPLETED
            ctx.current_stage = None
            logger.info("pipeline_completed", total=len(ctx.leaderboard), persisted=ctx.persisted,
                        ms=round((time.perf_counter() - started) * 1000.0, 3))
        return ctx
