from __future__ import annotations

import re
import time
from typing import Any, Dict, List, Optional

import requests
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import AuthorizedSession
from google.oauth2 import service_account

from ..errors import TransientStoreError
from ..logging import get_logger


SHEETS_API = "https://sheets.googleapis.com/v4/spreadsheets"
SHEETS_SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
TOKEN_URI = "https://oauth2.googleapis.com/token"

_RETRY_STATUS = {429, 500, 502, 503, 504}
_PLAIN_SHEET_NAME = re.compile(r"^[A-Za-z0-9_]+$")


def a1_range(sheet_name: str, cells: str) -> str:
    """Return an A1 range, quoting sheet names that are not plain words."""
    if _PLAIN_SHEET_NAME.match(sheet_name):
        return f"{sheet_name}!{cells}"
    escaped = sheet_name.replace("'", "''")
    return f"'{escaped}'!{cells}"


class SheetsClient:
    """Thin client for the Google Sheets v4 values API.

    Only implements what the product store needs: read a range, append rows
    and overwrite a range. Writes use USER_ENTERED so the sheet interprets
    values as if typed by a user.
    """

    def __init__(
        self,
        spreadsheet_id: str,
        *,
        session: requests.Session,
        timeout: int = 30,
        max_attempts: int = 3,
        backoff_seconds: float = 0.5,
    ) -> None:
        self.spreadsheet_id = spreadsheet_id
        self.timeout = int(timeout)
        self.max_attempts = max(1, int(max_attempts))
        self.backoff_seconds = float(backoff_seconds)
        self.log = get_logger("sheets-client")
        self.s = session

    @classmethod
    def from_service_account(
        cls,
        email: str,
        private_key: str,
        spreadsheet_id: str,
        **kwargs: Any,
    ) -> "SheetsClient":
        info = {
            "type": "service_account",
            "client_email": email,
            # keys pasted into .env usually carry literal "\n"
            "private_key": private_key.replace("\\n", "\n"),
            "token_uri": TOKEN_URI,
        }
        credentials = service_account.Credentials.from_service_account_info(info, scopes=SHEETS_SCOPES)
        return cls(spreadsheet_id, session=AuthorizedSession(credentials), **kwargs)

    # ---------- helpers ----------
    def _url(self, a1: str, suffix: str = "") -> str:
        quoted = requests.utils.quote(a1, safe="")
        return f"{SHEETS_API}/{self.spreadsheet_id}/values/{quoted}{suffix}"

    def _request(self, method: str, url: str, *, retry: bool = True, **kwargs: Any) -> Dict[str, Any]:
        """Send a request, retrying transient failures when ``retry`` is set.

        With ``retry=False`` only a connect timeout is retried, since the
        request never reached the server.
        """
        last_error: Optional[str] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                r = self.s.request(method, url, timeout=self.timeout, **kwargs)
            except GoogleAuthError as e:
                # token refresh failed; retrying will not help
                self.log.error(f"{method} {url} failed: {e}")
                raise TransientStoreError(f"Sheets request failed: {e}") from e
            except requests.RequestException as e:
                last_error = f"{type(e).__name__}: {e}"
                self.log.warning(f"{method} {url} failed (attempt {attempt}/{self.max_attempts}): {last_error}")
                resend = retry or isinstance(e, requests.ConnectTimeout)
                if not resend or not isinstance(e, (requests.ConnectionError, requests.Timeout)):
                    raise TransientStoreError(f"Sheets request failed: {last_error}") from e
            else:
                if r.status_code < 400:
                    try:
                        body = r.json()
                    except ValueError:
                        body = None
                    return body if isinstance(body, dict) else {}
                preview = (r.text or "")[:300]
                last_error = f"HTTP {r.status_code}: {preview}"
                if not retry or r.status_code not in _RETRY_STATUS:
                    self.log.error(f"{method} {url} rejected: {last_error}")
                    raise TransientStoreError(f"Sheets request rejected ({r.status_code})")
                self.log.warning(f"{method} {url} returned {r.status_code} (attempt {attempt}/{self.max_attempts})")
            if attempt < self.max_attempts:
                time.sleep(self.backoff_seconds * (2 ** (attempt - 1)))
        raise TransientStoreError(f"Sheets request failed after {self.max_attempts} attempt(s): {last_error}")

    # ---------- values ----------
    def get_values(self, a1: str) -> List[List[Any]]:
        body = self._request("GET", self._url(a1))
        values = body.get("values")
        if not isinstance(values, list):
            return []
        return [row if isinstance(row, list) else [] for row in values]

    def append_values(self, a1: str, values: List[List[Any]]) -> Dict[str, Any]:
        self.log.debug(f"Appending {len(values)} row(s) to {a1}")
        return self._request(
            "POST",
            self._url(a1, ":append"),
            retry=False,
            params={"valueInputOption": "USER_ENTERED", "insertDataOption": "INSERT_ROWS"},
            json={"values": values},
        )

    def update_values(self, a1: str, values: List[List[Any]]) -> Dict[str, Any]:
        self.log.debug(f"Updating {a1} with {len(values)} row(s)")
        return self._request(
            "PUT",
            self._url(a1),
            params={"valueInputOption": "USER_ENTERED"},
            json={"range": a1, "majorDimension": "ROWS", "values": values},
        )
