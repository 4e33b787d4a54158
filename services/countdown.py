# services/countdown.py
"""
早鳥倒數。

compute_remaining() 是純函式；Countdown 把它包成小型狀態機
（current_state / dispatch / subscribe），CountdownTimer 則每秒驅動一次 tick。
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

_ONE_MS = timedelta(milliseconds=1)
_MS_PER_SECOND = 1000
_SECONDS_PER_DAY = 24 * 60 * 60
_SECONDS_PER_HOUR = 60 * 60
_SECONDS_PER_MINUTE = 60


@dataclass(frozen=True)
class RemainingDuration:
    days: int = 0
    hours: int = 0
    minutes: int = 0
    seconds: int = 0
    expired: bool = True

    def total_seconds(self) -> int:
        return (
            self.days * _SECONDS_PER_DAY
            + self.hours * _SECONDS_PER_HOUR
            + self.minutes * _SECONDS_PER_MINUTE
            + self.seconds
        )

    def to_dict(self) -> dict:
        return {
            "days": self.days,
            "hours": self.hours,
            "minutes": self.minutes,
            "seconds": self.seconds,
            "expired": self.expired,
        }


EXPIRED = RemainingDuration()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_instant(raw: str | datetime) -> datetime:
    """
    將設定值轉成有時區的 datetime。
    例：2025-07-20T23:59:59 -> 2025-07-20 23:59:59+00:00（沒有時區視為 UTC）
    """
    if isinstance(raw, datetime):
        dt = raw
    else:
        text = raw.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def compute_remaining(target: datetime, now: datetime) -> RemainingDuration:
    delta_ms = (target - now) // _ONE_MS
    if delta_ms <= 0:
        return EXPIRED

    # 每一層都先取整數再往下一個單位走
    total = delta_ms // _MS_PER_SECOND
    days, rest = divmod(total, _SECONDS_PER_DAY)
    hours, rest = divmod(rest, _SECONDS_PER_HOUR)
    minutes, seconds = divmod(rest, _SECONDS_PER_MINUTE)
    return RemainingDuration(days, hours, minutes, seconds, expired=False)


Listener = Callable[[RemainingDuration], None]


class Countdown:
    """
    對一個固定的截止時間做倒數。

    - 每次 tick 重新計算剩餘時間並通知 subscriber。
    - 到期後就是定點：之後的 tick 不再計算、也不再通知。
    - on_expired 只會在「未到期 -> 到期」那一次被呼叫。
    """

    def __init__(
        self,
        target: str | datetime,
        on_expired: Optional[Callable[[], None]] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.target = parse_instant(target)
        self._on_expired = on_expired
        self._clock = clock
        self._listeners: List[Listener] = []
        self._lock = threading.Lock()
        self._state: RemainingDuration | None = None
        self._notified = False

    def current_state(self) -> RemainingDuration:
        if self._state is None:
            return self.tick()
        return self._state

    @property
    def expired(self) -> bool:
        return self.current_state().expired

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def dispatch(self, event: str, now: datetime | None = None) -> RemainingDuration:
        if event != "tick":
            raise ValueError(f"unsupported countdown event: {event}")
        return self.tick(now)

    def tick(self, now: datetime | None = None) -> RemainingDuration:
        with self._lock:
            if self._state is not None and self._state.expired:
                return self._state
            state = compute_remaining(self.target, now or self._clock())
            self._state = state
            fire_expired = state.expired and not self._notified
            if fire_expired:
                self._notified = True

        for listener in list(self._listeners):
            listener(state)
        if fire_expired:
            logger.info("countdown reached target %s", self.target.isoformat())
            if self._on_expired is not None:
                self._on_expired()
        return state


class CountdownTimer:
    """每 interval 秒 tick 一次的背景執行緒；倒數到期或 stop() 後結束。"""

    def __init__(self, countdown: Countdown, interval: float = 1.0) -> None:
        self.countdown = countdown
        self.interval = interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="countdown-timer", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)
        self._thread = None

    def _run(self) -> None:
        while not self._stop.is_set():
            if self.countdown.tick().expired:
                break
            self._stop.wait(self.interval)
