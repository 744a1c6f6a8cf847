from __future__ import annotations

"""HTTP client for the remote grading endpoint."""

import logging
import os
from typing import Any, Dict, Optional

import requests

from .errors import SubmissionTransportError

logger = logging.getLogger(__name__)


class HttpGradingClient:
    """POSTs a submission payload as JSON and returns the decoded body.

    Every transport problem (connection error, timeout, HTTP error status,
    undecodable body) is raised as ``SubmissionTransportError``.
    """

    def __init__(
        self,
        endpoint: str,
        *,
        token: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.endpoint = endpoint
        self.token = token
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, cfg: Dict[str, Any]) -> Optional["HttpGradingClient"]:
        grading = cfg.get("grading", {}) or {}
        endpoint = grading.get("endpoint")
        if not endpoint:
            return None
        token_env = grading.get("token_env")
        token = os.environ.get(token_env) if token_env else None
        return cls(str(endpoint), token=token)

    def grade(self, payload: Dict[str, Any], *, timeout: float) -> Dict[str, Any]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        try:
            resp = self.session.post(self.endpoint, headers=headers, json=payload, timeout=timeout)
            resp.raise_for_status()
            data = resp.json()
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            raise SubmissionTransportError(f"grading endpoint returned HTTP {status}", status=status) from exc
        except requests.RequestException as exc:
            raise SubmissionTransportError(f"grading request failed: {exc}") from exc
        except ValueError as exc:
            raise SubmissionTransportError("grading response was not valid JSON") from exc
        logger.debug("grading endpoint answered %s", resp.status_code)
        if not isinstance(data, dict):
            raise SubmissionTransportError(f"unexpected grading response: {data!r}")
        return data
