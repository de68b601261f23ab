"""Monte Carlo orchestration over the projection engine."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import math
import multiprocessing
import random
import threading
from typing import Any

from .engine import ProjectionResult, YearSchedule, build_schedule, run_projection, segment_for_year
from .schema import Plan

logger = logging.getLogger(__name__)

SIM_MODES = {"deterministic", "monte_carlo"}


@dataclass(slots=True)
class PercentileBand:
    min: float
    p10: float
    p25: float
    median: float
    p75: float
    max: float
    success_rate: float


@dataclass(slots=True)
class YearPercentiles:
    year: int
    net_worth: PercentileBand
    liquid_net_worth: PercentileBand


@dataclass(slots=True)
class TrialOutcome:
    net_worth: list[float]
    liquid_net_worth: list[float]
    success: bool


@dataclass(slots=True)
class MonteCarloResult:
    seed: int
    requested_trials: int
    trial_count: int
    success_rate: float
    years: list[YearPercentiles]
    cancelled: bool = False


def _percentile(ordered: list[float], pct: float) -> float:
    if not ordered:
        return 0.0
    if len(ordered) == 1:
        return ordered[0]
    position = (len(ordered) - 1) * pct
    low = int(math.floor(position))
    high = int(math.ceil(position))
    if low == high:
        return ordered[low]
    weight = position - low
    return (ordered[low] * (1.0 - weight)) + (ordered[high] * weight)


def percentile_band(values: list[float]) -> PercentileBand:
    ordered = sorted(values)
    if not ordered:
        return PercentileBand(min=0.0, p10=0.0, p25=0.0, median=0.0, p75=0.0, max=0.0, success_rate=0.0)
    return PercentileBand(
        min=ordered[0],
        p10=_percentile(ordered, 0.10),
        p25=_percentile(ordered, 0.25),
        median=_percentile(ordered, 0.50),
        p75=_percentile(ordered, 0.75),
        max=ordered[-1],
        success_rate=sum(1 for value in ordered if value > 0) / len(ordered),
    )


def aggregate_percentiles(years: list[int], outcomes: list[TrialOutcome]) -> list[YearPercentiles]:
    """Per-year percentile bands across trials; each year is ranked independently."""
    out: list[YearPercentiles] = []
    for idx, year in enumerate(years):
        out.append(
            YearPercentiles(
                year=year,
                net_worth=percentile_band([outcome.net_worth[idx] for outcome in outcomes]),
                liquid_net_worth=percentile_band([outcome.liquid_net_worth[idx] for outcome in outcomes]),
            )
        )
    return out


def _clamp_annual_return(value: float) -> float:
    # A return at or below -100% would wipe out more than the balance.
    return max(-0.95, value)


def _standard_normal(rng: random.Random) -> float:
    """Box-Muller transform of two uniform draws."""
    u1 = rng.random()
    while u1 <= 0.0:
        u1 = rng.random()
    u2 = rng.random()
    return math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)


def build_return_path(
    plan: Plan,
    rng: random.Random,
    base_return: float | None = None,
    base_volatility: float | None = None,
) -> dict[int, float]:
    settings = plan.simulation_settings
    mean_default = settings.base_return if base_return is None else base_return
    vol_default = settings.base_volatility if base_volatility is None else base_volatility
    path: dict[int, float] = {}
    for year in plan.years:
        segment = segment_for_year(plan.glide_path, year)
        if segment is None:
            mean, volatility = mean_default, vol_default
        else:
            mean, volatility = segment.expected_return, segment.volatility
        z = _standard_normal(rng)
        path[year] = _clamp_annual_return(mean + z * volatility)
    return path


def _trial_outcome(plan: Plan, path: dict[int, float], schedule: dict[int, YearSchedule]) -> TrialOutcome:
    result = run_projection(plan, return_path=path, schedule=schedule)
    return TrialOutcome(
        net_worth=[row.net_worth for row in result.years],
        liquid_net_worth=[row.liquid_net_worth for row in result.years],
        success=result.success,
    )


_WORKER_STATE: dict[str, Any] = {}


def _init_worker(plan: Plan, schedule: dict[int, YearSchedule]) -> None:
    _WORKER_STATE["plan"] = plan
    _WORKER_STATE["schedule"] = schedule


def _run_worker_trial(path: dict[int, float]) -> TrialOutcome:
    return _trial_outcome(_WORKER_STATE["plan"], path, _WORKER_STATE["schedule"])


def _run_trials(
    plan: Plan,
    paths: list[dict[int, float]],
    schedule: dict[int, YearSchedule],
    workers: int,
    cancel_event: threading.Event | None,
) -> tuple[list[TrialOutcome], bool]:
    outcomes: list[TrialOutcome] = []
    if workers <= 1:
        for path in paths:
            if cancel_event is not None and cancel_event.is_set():
                return outcomes, True
            outcomes.append(_trial_outcome(plan, path, schedule))
        return outcomes, False

    chunksize = max(1, len(paths) // (workers * 8))
    with multiprocessing.Pool(processes=workers, initializer=_init_worker, initargs=(plan, schedule)) as pool:
        for outcome in pool.imap(_run_worker_trial, paths, chunksize=chunksize):
            if cancel_event is not None and cancel_event.is_set():
                return outcomes, True
            outcomes.append(outcome)
    return outcomes, False


def run_monte_carlo(
    plan: Plan,
    num_trials: int | None = None,
    *,
    seed: int | None = None,
    workers: int | None = None,
    base_return: float | None = None,
    base_volatility: float | None = None,
    cancel_event: threading.Event | None = None,
) -> MonteCarloResult:
    """Run randomized-return trials and summarize net worth by percentile.

    Every return path is drawn up front from one seeded generator, so a
    given seed yields the same result regardless of worker count.
    """
    settings = plan.simulation_settings
    trials = max(1, num_trials if num_trials is not None else settings.num_trials)
    if seed is None:
        seed = settings.seed if settings.seed is not None else random.randint(1, 2**31 - 1)
    worker_count = workers if workers is not None else settings.workers

    rng = random.Random(seed)
    paths = [build_return_path(plan, rng, base_return, base_volatility) for _ in range(trials)]
    schedule = build_schedule(plan)

    logger.info("running %d Monte Carlo trials (seed=%d, workers=%d)", trials, seed, worker_count)
    outcomes, cancelled = _run_trials(plan, paths, schedule, worker_count, cancel_event)
    if cancelled:
        logger.warning("Monte Carlo run cancelled after %d of %d trials", len(outcomes), trials)

    success_rate = sum(1 for outcome in outcomes if outcome.success) / len(outcomes) if outcomes else 0.0
    years = aggregate_percentiles(plan.years, outcomes) if outcomes else []
    logger.info("Monte Carlo finished: %d trials, success rate %.1f%%", len(outcomes), success_rate * 100.0)
    return MonteCarloResult(
        seed=seed,
        requested_trials=trials,
        trial_count=len(outcomes),
        success_rate=success_rate,
        years=years,
        cancelled=cancelled,
    )


def run_simulation(
    plan: Plan,
    mode_override: str | None = None,
    runs_override: int | None = None,
    seed: int | None = None,
    workers: int | None = None,
) -> ProjectionResult | MonteCarloResult:
    mode = mode_override or plan.simulation_settings.mode
    if mode == "deterministic":
        return run_projection(plan)
    if mode == "monte_carlo":
        return run_monte_carlo(plan, runs_override, seed=seed, workers=workers)
    raise ValueError(f"unsupported simulation mode: {mode}")
