"""
Client for the hosted backend: REST tables, remote functions and file storage
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Union

import requests

from config import (
    BACKEND_ACCESS_TOKEN,
    BACKEND_ANON_KEY,
    BACKEND_URL,
    REQUEST_TIMEOUT_SECONDS,
)

logger = logging.getLogger(__name__)


class BackendError(Exception):
    """A backend call failed (transport, HTTP status or function error payload)"""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        function: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.function = function

    def __str__(self) -> str:
        where = f" [{self.function}]" if self.function else ""
        status = f" (HTTP {self.status_code})" if self.status_code else ""
        return f"{self.message}{where}{status}"


class BackendClient:
    """Thin wrapper over the backend REST surface using requests"""

    def __init__(
        self,
        base_url: str = BACKEND_URL,
        anon_key: str = BACKEND_ANON_KEY,
        access_token: Optional[str] = BACKEND_ACCESS_TOKEN,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self.anon_key = anon_key
        self.access_token = access_token or anon_key
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.base_url and self.anon_key)

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {self.access_token}",
        }
        if extra:
            headers.update(extra)
        return headers

    def _request(
        self,
        method: str,
        path: str,
        function: Optional[str] = None,
        **kwargs,
    ) -> Any:
        url = f"{self.base_url}{path}"
        headers = self._headers(kwargs.pop("headers", None))

        try:
            response = self.session.request(
                method, url, headers=headers, timeout=self.timeout, **kwargs
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"🚨 {method} {path} failed: {e}")
            raise BackendError(str(e), function=function) from e

        if not response.ok:
            message = self._error_message(response)
            logger.error(f"🚨 {method} {path} → {response.status_code}: {message}")
            raise BackendError(message, status_code=response.status_code, function=function)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            return response.text or response.reason or "Request failed"
        if isinstance(payload, dict):
            return str(
                payload.get("error")
                or payload.get("message")
                or payload.get("msg")
                or payload
            )
        return str(payload)

    # Tables

    def select(
        self,
        table: str,
        columns: str = "*",
        eq: Optional[Dict[str, Any]] = None,
        in_: Optional[Dict[str, Iterable[Any]]] = None,
        or_: Optional[str] = None,
        gte: Optional[Dict[str, Any]] = None,
        order: Optional[str] = None,
        desc: bool = False,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Read rows from a table with simple equality/inclusion filters"""
        params: List[tuple] = [("select", columns)]

        for column, value in (eq or {}).items():
            params.append((column, f"eq.{self._literal(value)}"))
        for column, values in (in_ or {}).items():
            joined = ",".join(self._literal(v) for v in values)
            params.append((column, f"in.({joined})"))
        for column, value in (gte or {}).items():
            params.append((column, f"gte.{self._literal(value)}"))
        if or_:
            params.append(("or", f"({or_})"))
        if order:
            params.append(("order", f"{order}.{'desc' if desc else 'asc'}"))
        if limit is not None:
            params.append(("limit", str(limit)))
        if offset is not None:
            params.append(("offset", str(offset)))

        data = self._request("GET", f"/rest/v1/{table}", params=params)
        rows = data if isinstance(data, list) else []
        logger.debug(f"📥 {table}: {len(rows)} rows")
        return rows

    def select_one(self, table: str, **kwargs) -> Optional[Dict[str, Any]]:
        rows = self.select(table, limit=1, **kwargs)
        return rows[0] if rows else None

    def insert(
        self, table: str, rows: Union[Dict[str, Any], List[Dict[str, Any]]]
    ) -> List[Dict[str, Any]]:
        """Insert one or more rows and return them as stored"""
        data = self._request(
            "POST",
            f"/rest/v1/{table}",
            json=rows,
            headers={"Prefer": "return=representation"},
        )
        return data if isinstance(data, list) else []

    # Remote functions

    def invoke(self, name: str, body: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Call a remote function; an `error` key in the reply is a failure"""
        logger.info(f"⚙️ Invoking {name}")
        data = self._request("POST", f"/functions/v1/{name}", function=name, json=body or {})

        if isinstance(data, dict) and data.get("error"):
            logger.error(f"🚨 {name} returned an error: {data['error']}")
            raise BackendError(str(data["error"]), function=name)

        return data if isinstance(data, dict) else {}

    # Storage

    def upload_file(
        self,
        bucket: str,
        path: str,
        content: bytes,
        content_type: Optional[str] = None,
    ) -> str:
        """Store a file and return its path inside the bucket"""
        self._request(
            "POST",
            f"/storage/v1/object/{bucket}/{path}",
            data=content,
            headers={"Content-Type": content_type or "application/octet-stream"},
        )
        logger.info(f"📤 Uploaded {len(content)} bytes to {bucket}/{path}")
        return path

    @staticmethod
    def _literal(value: Any) -> str:
        if isinstance(value, bool):
            return "true" if value else "false"
        if value is None:
            return "null"
        return str(value)
