from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from threading import Lock
from time import monotonic


@dataclass
class RequestSample:
  ts: datetime
  status_code: int
  latency_ms: float


class RuntimeMetrics:
  """Rolling 24h request samples plus lifetime counters for board saves."""

  def __init__(self) -> None:
    self._started_monotonic = monotonic()
    self._started_at = datetime.now(timezone.utc)
    self._samples: deque[RequestSample] = deque()
    self._saves_ok = 0
    self._saves_rejected = 0
    self._lock = Lock()

  @property
  def started_at(self) -> datetime:
    return self._started_at

  def uptime_seconds(self) -> int:
    return max(0, int(monotonic() - self._started_monotonic))

  def observe_request(self, status_code: int, latency_ms: float) -> None:
    now = datetime.now(timezone.utc)
    with self._lock:
      self._samples.append(RequestSample(ts=now, status_code=status_code, latency_ms=latency_ms))
      self._prune_locked(now)

  def observe_save(self, ok: bool) -> None:
    with self._lock:
      if ok:
        self._saves_ok += 1
      else:
        self._saves_rejected += 1

  def _prune_locked(self, now: datetime) -> None:
    cutoff = now - timedelta(hours=24)
    while self._samples and self._samples[0].ts < cutoff:
      self._samples.popleft()

  def snapshot(self) -> dict:
    now = datetime.now(timezone.utc)
    with self._lock:
      self._prune_locked(now)
      samples = list(self._samples)
      saves_ok = self._saves_ok
      saves_rejected = self._saves_rejected

    errors = sum(1 for s in samples if s.status_code >= 500)
    p95_ms = 0.0
    if samples:
      latencies = sorted(s.latency_ms for s in samples)
      p95_ms = latencies[max(0, int(len(latencies) * 0.95) - 1)]

    return {
      "uptimeSeconds": self.uptime_seconds(),
      "requestCount24h": len(samples),
      "errorCount24h": errors,
      "p95LatencyMs24h": round(p95_ms, 2),
      "savesOk": saves_ok,
      "savesRejected": saves_rejected,
    }


runtime_metrics = RuntimeMetrics()
