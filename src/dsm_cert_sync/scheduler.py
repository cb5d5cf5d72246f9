"""
Scheduler — turns timer ticks and file changes into reconciliation attempts.

Infrastructure layer — uses APScheduler (3.x) for the periodic timer and
watchdog for file-change notifications. Both only enqueue Trigger events;
a single consumer loop (the thread calling TriggerScheduler.run) drains the
queue and runs the reconciler synchronously, so at most one attempt is ever
in flight.

Attempts are debounced: a trigger arriving less than DEBOUNCE_SECONDS after
the start of the previous attempt is skipped. A failed attempt ends the loop
and its failure is returned; watcher errors are only logged.

Graceful shutdown: SIGINT/SIGTERM enqueue a SHUTDOWN trigger, which the loop
observes in the same wait as ticks and file changes.
"""

from __future__ import annotations

import os
import queue
import signal
import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum, unique
from pathlib import Path
from typing import Any, Protocol

import structlog
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from railway import ErrorCode, LoggingExecutionContext
from railway.result import Result
from watchdog.events import (
    EVENT_TYPE_CLOSED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

log = structlog.get_logger()

DEBOUNCE_SECONDS = 30.0
_POLL_SECONDS = 1.0


@unique
class TriggerKind(Enum):
    STARTUP = "startup"
    TICK = "tick"
    FILE_CHANGED = "file_changed"
    WATCH_ERROR = "watch_error"
    WATCH_CLOSED = "watch_closed"
    SHUTDOWN = "shutdown"


@dataclass(frozen=True, slots=True)
class Trigger:
    kind: TriggerKind
    detail: str = ""


TriggerSink = Callable[[Trigger], None]


class EventSource(Protocol):
    """Something that emits Triggers from its own thread until stopped."""

    def start(self, emit: TriggerSink) -> None: ...

    def stop(self) -> None: ...


# ─────────────────────── Timer ───────────────────────


class IntervalSource:
    """Emits a TICK every `frequency_seconds` via an APScheduler background job."""

    def __init__(self, frequency_seconds: float) -> None:
        self._frequency_seconds = frequency_seconds
        self._scheduler: BackgroundScheduler | None = None

    def start(self, emit: TriggerSink) -> None:
        scheduler = BackgroundScheduler()
        scheduler.add_job(
            lambda: emit(Trigger(TriggerKind.TICK)),
            trigger=IntervalTrigger(seconds=self._frequency_seconds),
            id="dsm_cert_sync_tick",
            name="DSM certificate check",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        scheduler.start()
        self._scheduler = scheduler
        log.debug("scheduler.timer_started", frequency_seconds=self._frequency_seconds)

    def stop(self) -> None:
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._scheduler = None


# ─────────────────────── File watcher ───────────────────────


def _event_path(raw: Any) -> str:
    return os.path.abspath(os.fsdecode(raw)) if raw else ""


class _WatchedFilesHandler(FileSystemEventHandler):
    """
    Maps directory events onto the watched files.

    The parent directories are watched rather than the files themselves, so
    a file replaced by rename keeps being seen without re-subscribing.

    A written file counts as changed only once its writer closes it. Plain
    modify and create events are ignored.
    """

    def __init__(self, files: frozenset[str], directories: frozenset[str], emit: TriggerSink) -> None:
        self._files = files
        self._directories = directories
        self._emit = emit

    def on_any_event(self, event: FileSystemEvent) -> None:
        src = _event_path(event.src_path)
        dest = _event_path(getattr(event, "dest_path", ""))

        if event.is_directory:
            if event.event_type in (EVENT_TYPE_DELETED, EVENT_TYPE_MOVED) and src in self._directories:
                self._emit(Trigger(TriggerKind.WATCH_ERROR, f"watched directory {src} disappeared"))
            return

        if event.event_type == EVENT_TYPE_CLOSED and src in self._files:
            self._emit(Trigger(TriggerKind.FILE_CHANGED, src))
        elif event.event_type == EVENT_TYPE_MOVED:
            if dest in self._files:
                self._emit(Trigger(TriggerKind.FILE_CHANGED, dest))
            elif src in self._files:
                self._emit(Trigger(TriggerKind.WATCH_ERROR, f"{src} was moved away"))
        elif event.event_type == EVENT_TYPE_DELETED and src in self._files:
            self._emit(Trigger(TriggerKind.WATCH_ERROR, f"{src} was deleted"))


class FileChangeSource:
    """
    Emits FILE_CHANGED when any watched file is written or replaced.

    Emits WATCH_CLOSED if the watchdog observer thread dies on its own.
    """

    def __init__(self, paths: Sequence[str]) -> None:
        self._files = frozenset(os.path.abspath(p) for p in paths)
        self._directories = frozenset(os.path.dirname(p) for p in self._files)
        self._observer: Any = None
        self._stopping = threading.Event()

    def start(self, emit: TriggerSink) -> None:
        for path in sorted(self._files):
            if not Path(path).is_file():
                raise FileNotFoundError(f"failed to watch {path!r}: no such file")

        handler = _WatchedFilesHandler(self._files, self._directories, emit)
        observer = Observer()
        for directory in sorted(self._directories):
            observer.schedule(handler, directory, recursive=False)
        observer.start()
        self._observer = observer
        self._stopping.clear()

        threading.Thread(
            target=self._watch_liveness,
            args=(observer, emit),
            name="dsm-cert-sync-watch-liveness",
            daemon=True,
        ).start()
        for path in sorted(self._files):
            log.debug("scheduler.watching_file", path=path)

    def _watch_liveness(self, observer: Any, emit: TriggerSink) -> None:
        observer.join()
        if not self._stopping.is_set():
            emit(Trigger(TriggerKind.WATCH_CLOSED, "file watcher stopped"))

    def stop(self) -> None:
        self._stopping.set()
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
        self._observer = None


# ─────────────────────── Consumer loop ───────────────────────


class TriggerScheduler:
    """
    Single-consumer loop over timer, file-change and shutdown triggers.

    `reconcile_fn` is the wired reconciler (zero-argument, returns a Result).
    `clock` is injectable so debounce behavior can be tested without sleeping.
    """

    def __init__(
        self,
        reconcile_fn: Callable[[], Result[Any]],
        sources: Sequence[EventSource] = (),
        debounce_seconds: float = DEBOUNCE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._reconcile_fn = reconcile_fn
        self._sources = list(sources)
        self._debounce_seconds = debounce_seconds
        self._clock = clock
        # SimpleQueue.put is reentrant, so signal handlers may call submit().
        self._events: queue.SimpleQueue[Trigger] = queue.SimpleQueue()
        self._attempt_lock = threading.Lock()
        self._last_attempt: float | None = None
        self._attempts = 0
        self._ctx = LoggingExecutionContext(operation="CertificateSync")

    @property
    def attempts(self) -> int:
        return self._attempts

    def submit(self, trigger: Trigger) -> None:
        self._events.put(trigger)

    def stop(self) -> None:
        self.submit(Trigger(TriggerKind.SHUTDOWN, "stop requested"))

    def run(self) -> Result[int]:
        """
        Start the sources, reconcile once, then serve triggers until stopped.

        Returns Success(number of attempts executed) on a clean stop, or the
        failure that ended the loop. Sources are stopped on every exit path.
        """
        started = self._start_sources()
        if started.is_failure():
            return Result.failure_from(started.error())
        try:
            return self.attempt(Trigger(TriggerKind.STARTUP)).flat_map(lambda _: self._loop())
        finally:
            self._stop_sources()

    def attempt(self, trigger: Trigger) -> Result[bool]:
        """
        Run the reconciler unless the previous attempt started too recently.

        Returns Success(True) if it ran, Success(False) if it was skipped,
        or the reconciler's failure.
        """
        with self._attempt_lock:
            now = self._clock()
            if self._last_attempt is not None:
                elapsed = now - self._last_attempt
                if elapsed < self._debounce_seconds:
                    log.warning(
                        "scheduler.attempt_skipped",
                        trigger=trigger.kind.value,
                        seconds_since_last=round(elapsed, 1),
                    )
                    return Result.success(False)
            self._last_attempt = now
            self._attempts += 1
            log.debug("scheduler.attempt_started", trigger=trigger.kind.value, detail=trigger.detail)
            return self._ctx.execute(self._reconcile_fn).map(lambda _: True)

    def _loop(self) -> Result[int]:
        while True:
            try:
                trigger = self._events.get(timeout=_POLL_SECONDS)
            except queue.Empty:
                continue

            match trigger.kind:
                case TriggerKind.TICK | TriggerKind.FILE_CHANGED:
                    result = self.attempt(trigger)
                    if result.is_failure():
                        return Result.failure_from(result.error())
                case TriggerKind.WATCH_ERROR:
                    log.error("scheduler.watch_error", detail=trigger.detail)
                case TriggerKind.WATCH_CLOSED | TriggerKind.SHUTDOWN:
                    log.info("scheduler.stopped", reason=trigger.kind.value, detail=trigger.detail)
                    return Result.success(self._attempts)
                case _:
                    log.debug("scheduler.trigger_ignored", trigger=trigger.kind.value)

    def _start_sources(self) -> Result[int]:
        for index, source in enumerate(self._sources):
            started = Result.from_computation(
                lambda: source.start(self.submit) or True,
                ErrorCode.CONFIGURATION_ERROR,
                f"failed to start {type(source).__name__}",
            )
            if started.is_failure():
                for running in self._sources[:index]:
                    running.stop()
                return Result.failure_from(started.error())
        return Result.success(len(self._sources))

    def _stop_sources(self) -> None:
        for source in self._sources:
            try:
                source.stop()
            except Exception as e:
                log.warning("scheduler.source_stop_failed", source=type(source).__name__, error=str(e))


def create_scheduler(
    reconcile_fn: Callable[[], Result[Any]],
    cert_path: str,
    key_path: str,
    frequency_seconds: float = 3600,
    debounce_seconds: float = DEBOUNCE_SECONDS,
) -> TriggerScheduler:
    """
    Build a TriggerScheduler driven by a periodic timer and a file watcher.

    Args:
        reconcile_fn: Zero-argument callable returning a Result (the wired reconciler).
        cert_path: Local certificate file to watch.
        key_path: Local private key file to watch.
        frequency_seconds: Period of the timer.
        debounce_seconds: Minimum spacing between attempt starts.

    Returns:
        A configured TriggerScheduler (call .run() to start it).
    """
    log.debug("scheduler.configured", frequency_seconds=frequency_seconds)
    return TriggerScheduler(
        reconcile_fn,
        sources=[IntervalSource(frequency_seconds), FileChangeSource([cert_path, key_path])],
        debounce_seconds=debounce_seconds,
    )


def register_shutdown_signals(scheduler: TriggerScheduler) -> None:
    """Register SIGINT and SIGTERM handlers that stop the scheduler loop."""

    def _shutdown(signum: int, frame: object) -> None:
        sig_name = signal.Signals(signum).name
        log.info("scheduler.shutdown_requested", signal=sig_name)
        scheduler.stop()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)
