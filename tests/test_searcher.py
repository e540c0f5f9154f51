"""Tests for the grinding loop and its parallel variant."""

import pytest

from keyutils.config import MatchConfig
from keyutils.errors import ConfigError, WorkerError
from keyutils.matcher import matches
from keyutils.searcher import (
    Grinder,
    MatchEvent,
    ProgressEvent,
    RunStatistics,
    grind,
    grind_parallel,
)
from keyutils.utils.codec import decode
from keyutils.utils.crypto import Keypair, keypair_from_secret


def fake_keypair(name: str) -> Keypair:
    return Keypair(public_key=name.encode(), secret_key=("secret-" + name).encode())


def scripted_generator(names):
    it = iter(names)
    calls = []

    def generator() -> Keypair:
        name = next(it)
        calls.append(name)
        return fake_keypair(name)

    generator.calls = calls
    return generator


def plain_encode(keypair: Keypair) -> str:
    return keypair.public_key.decode()


def plain_encode_secret(keypair: Keypair) -> str:
    return keypair.secret_key.decode()


def broken_generator() -> Keypair:
    raise RuntimeError("entropy source unavailable")


def run_scripted(names, cfg, target, **kwargs):
    events = []
    generator = scripted_generator(names)
    results, stats = grind(
        cfg, target, generator=generator, encode=plain_encode,
        encode_secret=plain_encode_secret, sink=events.append, **kwargs
    )
    return results, stats, events, generator


def test_grind_collects_target_count_in_order() -> None:
    names = ["xx", "SoLa", "yy", "zz", "SoLb", "SoLc", "SoLd"]
    results, stats, events, generator = run_scripted(names, MatchConfig(prefix="SoL"), 3, progress_interval=0)

    assert [r.match_index for r in results] == [1, 2, 3]
    assert [r.public_key for r in results] == ["SoLa", "SoLb", "SoLc"]
    assert [r.attempts_at_discovery for r in results] == [1, 4, 5]
    assert [r.secret_key for r in results] == ["secret-SoLa", "secret-SoLb", "secret-SoLc"]
    assert stats.total_attempts == 6
    # stops as soon as the target is met
    assert generator.calls == names[:6]
    assert [e.record for e in events if isinstance(e, MatchEvent)] == results


def test_every_record_satisfies_predicate() -> None:
    cfg = MatchConfig(prefix="a", suffix="Z", ignore_case=True)
    names = ["aZ", "AbZ", "ab", "bz", "Az", "az", "xZ"]
    results, _, _, _ = run_scripted(names, cfg, 3, progress_interval=0)
    assert all(matches(r.public_key, cfg) for r in results)
    assert [r.public_key for r in results] == ["aZ", "AbZ", "Az"]


def test_attempts_non_decreasing() -> None:
    names = ["m1", "m2", "q", "m3"]
    results, _, _, _ = run_scripted(names, MatchConfig(prefix="m"), 3, progress_interval=0)
    attempts = [r.attempts_at_discovery for r in results]
    assert attempts == sorted(attempts)
    assert attempts == [0, 1, 3]


def test_progress_events_at_interval() -> None:
    names = ["n{}".format(i) for i in range(9)] + ["hit"]
    results, stats, events, _ = run_scripted(names, MatchConfig(prefix="hit"), 1, progress_interval=3)

    progress = [e.attempts for e in events if isinstance(e, ProgressEvent)]
    assert progress == [3, 6, 9]
    assert stats.total_attempts == 10
    assert results[0].attempts_at_discovery == 9
    # match is reported before the attempt counter reaches 10
    assert isinstance(events[-1], MatchEvent)


def test_progress_disabled() -> None:
    names = ["n"] * 5 + ["hit"]
    _, _, events, _ = run_scripted(names, MatchConfig(prefix="hit"), 1, progress_interval=0)
    assert all(e.kind == "match" for e in events)


def test_empty_config_fails_before_generation() -> None:
    generator = scripted_generator(["SoL"])
    with pytest.raises(ConfigError):
        grind(MatchConfig(), 1, generator=generator, encode=plain_encode)
    assert generator.calls == []


@pytest.mark.parametrize("target", [0, -1])
def test_invalid_target_count(target: int) -> None:
    generator = scripted_generator(["SoL"])
    with pytest.raises(ConfigError):
        Grinder(MatchConfig(prefix="S"), target, generator=generator)
    assert generator.calls == []


def test_generator_failure_propagates() -> None:
    with pytest.raises(RuntimeError, match="entropy"):
        grind(MatchConfig(prefix="S"), 1, generator=broken_generator, sink=None)


def test_step_reports_single_attempt() -> None:
    grinder = Grinder(
        MatchConfig(suffix="z"), 2, generator=scripted_generator(["az", "ab"]),
        encode=plain_encode, encode_secret=plain_encode_secret, sink=None,
    )
    first = grinder.step()
    second = grinder.step()
    assert first is not None and first.match_index == 1
    assert second is None
    assert grinder.attempts == 2


def test_run_statistics_rate() -> None:
    assert RunStatistics(total_attempts=100, elapsed=2.0).rate == 50.0
    assert RunStatistics(total_attempts=100, elapsed=0.0).rate == 0.0


def test_grind_with_real_keys() -> None:
    cfg = MatchConfig(suffix="a", ignore_case=True)
    results, stats = grind(cfg, 2, sink=None, progress_interval=0)
    assert len(results) == 2
    assert stats.total_attempts >= 2
    for record in results:
        assert matches(record.public_key, cfg)
        keypair = keypair_from_secret(decode(record.secret_key))
        assert decode(record.public_key) == keypair.public_key


def test_parallel_exact_count() -> None:
    cfg = MatchConfig(suffix="a", ignore_case=True)
    events = []
    results, stats = grind_parallel(cfg, 3, workers=2, sink=events.append, progress_interval=0)

    assert [r.match_index for r in results] == [1, 2, 3]
    attempts = [r.attempts_at_discovery for r in results]
    assert attempts == sorted(attempts)
    assert all(matches(r.public_key, cfg) for r in results)
    assert stats.total_attempts > attempts[-1]
    assert [e.record for e in events] == results


def test_parallel_progress_moves_forward() -> None:
    cfg = MatchConfig(prefix="ab", ignore_case=True)
    progress = []

    def sink(event) -> None:
        if event.kind == "progress":
            progress.append(event.attempts)

    _, stats = grind_parallel(cfg, 1, workers=2, sink=sink, progress_interval=1_000)
    assert progress == sorted(set(progress))
    assert all(p % 1_000 == 0 and p <= stats.total_attempts for p in progress)


def test_parallel_single_worker_uses_plain_loop() -> None:
    names = ["x", "SoL1", "SoL2"]
    results, stats = grind_parallel(
        MatchConfig(prefix="SoL"), 2, workers=1, generator=scripted_generator(names),
        encode=plain_encode, encode_secret=plain_encode_secret, sink=None,
    )
    assert [r.public_key for r in results] == ["SoL1", "SoL2"]
    assert stats.total_attempts == 3


def test_parallel_worker_failure() -> None:
    with pytest.raises(WorkerError, match="entropy"):
        grind_parallel(MatchConfig(prefix="S"), 1, workers=2, generator=broken_generator, sink=None)


def test_parallel_validates_before_starting() -> None:
    with pytest.raises(ConfigError):
        grind_parallel(MatchConfig(), 1, workers=2)
    with pytest.raises(ConfigError):
        grind_parallel(MatchConfig(prefix="a"), 1, workers=0)


class SinkFailure(Exception):
    pass


def failing_sink(event) -> None:
    if event.kind == "match":
        raise SinkFailure("reporting sink broke")


def test_sink_failure_aborts_grind() -> None:
    generator = scripted_generator(["x", "SoL1", "SoL2", "SoL3"])
    with pytest.raises(SinkFailure):
        grind(
            MatchConfig(prefix="SoL"), 3, generator=generator, encode=plain_encode,
            encode_secret=plain_encode_secret, sink=failing_sink, progress_interval=0,
        )
    assert generator.calls == ["x", "SoL1"]


def test_sink_failure_stops_parallel_workers() -> None:
    with pytest.raises(SinkFailure):
        grind_parallel(
            MatchConfig(suffix="a", ignore_case=True), 3, workers=2,
            sink=failing_sink, progress_interval=0,
        )
