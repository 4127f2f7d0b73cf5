from __future__ import annotations

from typing import Any

import httpx

from ztask.config import settings


def normalize_base_url(base_url: str) -> str:
  b = (base_url or "").strip().rstrip("/")
  if not b:
    raise ValueError("baseUrl is required")
  if not (b.startswith("http://") or b.startswith("https://")):
    b = "http://" + b
  return b


class StorageApiError(RuntimeError):
  def __init__(self, *, status_code: int, message: str, details: dict[str, Any] | None = None) -> None:
    super().__init__(message)
    self.status_code = status_code
    self.message = message
    self.details = details or {}


class StorageUnauthorizedError(StorageApiError):
  pass


def _extract_error(payload: Any) -> tuple[str, dict[str, Any]]:
  if isinstance(payload, dict):
    detail = payload.get("detail", payload.get("error"))
    if isinstance(detail, str) and detail.strip():
      return detail.strip(), {}
    if isinstance(detail, list):
      return "Validation failed", {"errors": detail}
    return "Storage request failed", {"body": payload}
  if isinstance(payload, str) and payload.strip():
    return payload.strip()[:500], {}
  return "Storage request failed", {}


async def _request_json(client: httpx.AsyncClient, method: str, path: str, **kwargs: Any) -> Any:
  try:
    r = await client.request(method, path, **kwargs)
  except httpx.HTTPError as exc:
    raise StorageApiError(status_code=0, message=f"Storage unreachable: {exc}") from exc
  if r.status_code >= 400:
    try:
      payload = r.json()
    except ValueError:
      payload = (r.text or "")[:800]
    msg, details = _extract_error(payload)
    cls = StorageUnauthorizedError if r.status_code == 401 else StorageApiError
    raise cls(status_code=r.status_code, message=msg, details=details)
  if r.status_code == 204:
    return None
  return r.json()


class StorageClient:
  """Thin async client for the storage collaborator's bearer-authenticated API."""

  def __init__(
    self,
    base_url: str | None = None,
    token: str | None = None,
    *,
    timeout: float | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
  ) -> None:
    self.base_url = normalize_base_url(base_url or settings.storage_base_url)
    self.token = token
    self.timeout = timeout if timeout is not None else settings.storage_timeout_seconds
    self._transport = transport

  def httpx_client(self) -> httpx.AsyncClient:
    headers = {"Accept": "application/json"}
    if self.token:
      headers["Authorization"] = f"Bearer {self.token}"
    return httpx.AsyncClient(base_url=self.base_url, headers=headers, timeout=self.timeout, transport=self._transport)

  async def _call(self, method: str, path: str, **kwargs: Any) -> Any:
    if not self.token:
      raise StorageUnauthorizedError(status_code=401, message="Not authenticated")
    async with self.httpx_client() as client:
      return await _request_json(client, method, path, **kwargs)

  async def get_data(self) -> dict[str, Any]:
    data = await self._call("GET", "/api/user/data")
    return data if isinstance(data, dict) else {}

  async def put_data(self, body: dict[str, Any]) -> dict[str, Any]:
    return await self._call("POST", "/api/user/data", json=body)

  async def append_history(self, project_id: str, entries: list[dict[str, Any]]) -> dict[str, Any]:
    return await self._call("POST", "/api/user/history", json={"projectId": project_id, "entries": entries})

  async def list_history(self, project_id: str | None = None) -> list[dict[str, Any]]:
    params = {"projectId": project_id} if project_id else None
    rows = await self._call("GET", "/api/user/history", params=params)
    return rows if isinstance(rows, list) else []
