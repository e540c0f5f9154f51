# -*- coding: utf-8 -*-
import logging
import multiprocessing
import queue
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple, Union

from keyutils.config import (
    DEFAULT_PROGRESS_INTERVAL,
    WORKER_FLUSH_INTERVAL,
    MatchConfig,
)
from keyutils.errors import ConfigError, WorkerError
from keyutils.matcher import matches
from keyutils.utils.crypto import (
    Keypair,
    encode_public_key,
    encode_secret_key,
    generate_keypair,
)


@dataclass(frozen=True)
class MatchRecord:
    match_index: int
    # keypairs generated before this one; the match itself is attempt N+1
    attempts_at_discovery: int
    public_key: str
    secret_key: str


@dataclass(frozen=True)
class RunStatistics:
    total_attempts: int
    elapsed: float

    @property
    def rate(self) -> float:
        return self.total_attempts / self.elapsed if self.elapsed > 0 else 0.0


@dataclass(frozen=True)
class MatchEvent:
    record: MatchRecord
    kind: str = "match"


@dataclass(frozen=True)
class ProgressEvent:
    attempts: int
    kind: str = "progress"


Event = Union[MatchEvent, ProgressEvent]
Sink = Callable[[Event], None]


def log_event(event: Event) -> None:
    if event.kind == "match":
        record = event.record
        logging.info("Match #{} found after {:,} attempts: {}".format(
            record.match_index, record.attempts_at_discovery, record.public_key
        ))
    else:
        logging.info("Attempts: {:,}".format(event.attempts))


def _check_run_args(cfg: MatchConfig, target_count: int, progress_interval: int) -> None:
    cfg.validate()
    if target_count < 1:
        raise ConfigError("target count must be at least 1, got {}".format(target_count))
    if progress_interval < 0:
        raise ConfigError("progress interval must be >= 0, got {}".format(progress_interval))


class Grinder:
    """
    Generate-and-test loop for a single run.

    Each iteration draws a fresh keypair, renders its public key and keeps it
    only if it satisfies ``cfg``. Matches are handed to ``sink`` as soon as
    they are found; every ``progress_interval`` attempts a progress event is
    emitted (0 disables progress).
    """

    def __init__(
        self,
        cfg: MatchConfig,
        target_count: int,
        generator: Callable[[], Keypair] = generate_keypair,
        encode: Callable[[Keypair], str] = encode_public_key,
        encode_secret: Callable[[Keypair], str] = encode_secret_key,
        sink: Optional[Sink] = log_event,
        progress_interval: int = DEFAULT_PROGRESS_INTERVAL,
    ):
        _check_run_args(cfg, target_count, progress_interval)
        self.cfg = cfg
        self.target_count = target_count
        self.generator = generator
        self.encode = encode
        self.encode_secret = encode_secret
        self.sink = sink
        self.progress_interval = progress_interval
        self.attempts = 0
        self.results: List[MatchRecord] = []

    def _emit(self, event: Event) -> None:
        if self.sink is not None:
            self.sink(event)

    def step(self) -> Optional[MatchRecord]:
        """Run one attempt; return the new record if it matched."""
        keypair = self.generator()
        public_key = self.encode(keypair)
        record = None
        if matches(public_key, self.cfg):
            record = MatchRecord(
                match_index=len(self.results) + 1,
                attempts_at_discovery=self.attempts,
                public_key=public_key,
                secret_key=self.encode_secret(keypair),
            )
            self.results.append(record)
            self._emit(MatchEvent(record))
        self.attempts += 1
        if self.progress_interval and self.attempts % self.progress_interval == 0:
            self._emit(ProgressEvent(self.attempts))
        return record

    def run(self) -> Tuple[List[MatchRecord], RunStatistics]:
        start_time = time.time()
        while len(self.results) < self.target_count:
            self.step()
        stats = RunStatistics(total_attempts=self.attempts, elapsed=time.time() - start_time)
        return list(self.results), stats


def grind(
    cfg: MatchConfig,
    target_count: int,
    generator: Callable[[], Keypair] = generate_keypair,
    encode: Callable[[Keypair], str] = encode_public_key,
    encode_secret: Callable[[Keypair], str] = encode_secret_key,
    sink: Optional[Sink] = log_event,
    progress_interval: int = DEFAULT_PROGRESS_INTERVAL,
) -> Tuple[List[MatchRecord], RunStatistics]:
    return Grinder(
        cfg,
        target_count,
        generator=generator,
        encode=encode,
        encode_secret=encode_secret,
        sink=sink,
        progress_interval=progress_interval,
    ).run()


def _publish(attempts, pending: int, progress_interval: int, events) -> int:
    """Add ``pending`` to the shared counter. Caller holds the lock."""
    before = attempts.value
    attempts.value = before + pending
    if progress_interval and attempts.value // progress_interval > before // progress_interval:
        events.put(("progress", attempts.value // progress_interval * progress_interval))
    return attempts.value


def multi_worker_grind(
    index: int,
    cfg: MatchConfig,
    target_count: int,
    remaining,
    attempts,
    lock,
    events,
    generator: Callable[[], Keypair],
    encode: Callable[[Keypair], str],
    encode_secret: Callable[[Keypair], str],
    progress_interval: int,
    flush_interval: int = WORKER_FLUSH_INTERVAL,
) -> None:
    """
    Per-process grinding loop sharing ``remaining`` and ``attempts`` under ``lock``.

    A match is kept only if ``remaining`` is still positive once the lock is
    held, so no more than ``target_count`` records are ever produced.
    """
    pending = 0
    try:
        while remaining.value > 0:
            keypair = generator()
            public_key = encode(keypair)
            pending += 1
            if matches(public_key, cfg):
                with lock:
                    total = _publish(attempts, pending, progress_interval, events)
                    pending = 0
                    if remaining.value > 0:
                        remaining.value -= 1
                        events.put(("match", MatchRecord(
                            match_index=target_count - remaining.value,
                            attempts_at_discovery=total - 1,
                            public_key=public_key,
                            secret_key=encode_secret(keypair),
                        )))
            elif pending >= flush_interval:
                with lock:
                    _publish(attempts, pending, progress_interval, events)
                pending = 0
        if pending:
            with lock:
                _publish(attempts, pending, progress_interval, events)
    except Exception as e:
        logging.exception("Worker {} error".format(index))
        events.put(("error", index, "{}: {}".format(type(e).__name__, e)))
    finally:
        events.put(("done", index))


def grind_parallel(
    cfg: MatchConfig,
    target_count: int,
    workers: int,
    generator: Callable[[], Keypair] = generate_keypair,
    encode: Callable[[Keypair], str] = encode_public_key,
    encode_secret: Callable[[Keypair], str] = encode_secret_key,
    sink: Optional[Sink] = log_event,
    progress_interval: int = DEFAULT_PROGRESS_INTERVAL,
    start_method: Optional[str] = None,
) -> Tuple[List[MatchRecord], RunStatistics]:
    """
    Run the grinding loop in ``workers`` processes until exactly
    ``target_count`` matches are found.

    ``generator``, ``encode`` and ``encode_secret`` are sent to the workers
    and must be picklable. Match events reach ``sink`` in match-index order.
    """
    _check_run_args(cfg, target_count, progress_interval)
    if workers < 1:
        raise ConfigError("workers must be at least 1, got {}".format(workers))
    if workers == 1:
        return grind(cfg, target_count, generator, encode, encode_secret, sink, progress_interval)

    ctx = multiprocessing.get_context(start_method)
    lock = ctx.Lock()
    remaining = ctx.Value("q", target_count, lock=False)
    attempts = ctx.Value("q", 0, lock=False)
    events = ctx.Queue()
    processes = [
        ctx.Process(
            target=multi_worker_grind,
            args=(
                idx, cfg, target_count, remaining, attempts, lock, events,
                generator, encode, encode_secret, progress_interval,
            ),
            daemon=True,
        )
        for idx in range(workers)
    ]

    start_time = time.time()
    for p in processes:
        p.start()
    logging.debug("Started {} grinding worker(s)".format(workers))

    results: List[MatchRecord] = []
    held = {}
    last_progress = 0
    running = workers
    failure = None
    try:
        while running:
            try:
                event = events.get(timeout=0.5)
            except queue.Empty:
                if not any(p.is_alive() for p in processes):
                    break
                continue
            kind = event[0]
            if kind == "done":
                running -= 1
            elif kind == "error":
                if failure is None:
                    failure = WorkerError(event[1], event[2])
                with lock:
                    remaining.value = 0
            elif kind == "progress":
                # workers publish out of order; only report forward movement
                if event[1] > last_progress:
                    last_progress = event[1]
                    if sink is not None:
                        sink(ProgressEvent(last_progress))
            elif kind == "match":
                held[event[1].match_index] = event[1]
                while len(results) + 1 in held:
                    record = held.pop(len(results) + 1)
                    results.append(record)
                    if sink is not None:
                        sink(MatchEvent(record))
    finally:
        with lock:
            remaining.value = 0
        for p in processes:
            p.join(timeout=5)
            if p.is_alive():
                logging.warning("Worker {} did not stop, terminating".format(p.name))
                p.terminate()
                p.join()

    if failure is not None:
        raise failure
    if len(results) < target_count:
        raise WorkerError(-1, "workers exited after {} of {} matches".format(len(results), target_count))
    stats = RunStatistics(total_attempts=attempts.value, elapsed=time.time() - start_time)
    return results, stats
