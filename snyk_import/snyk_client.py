import logging

import requests

from snyk_import.schemas import Repository


logger = logging.getLogger(__name__)

SUCCESS_STATUS_CODES = {200, 201}


class SnykImportError(RuntimeError):
    """Raised when one file could not be submitted for import."""


class SnykClient:
    """Submits one dependency file per request. Retries are left to the caller."""

    def __init__(
        self,
        *,
        api_url: str,
        token: str,
        timeout_seconds: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self._import_url = f"{api_url.rstrip('/')}/import/git"
        self._token = token
        self._timeout_seconds = timeout_seconds
        self._session = session or requests.Session()

    def import_file(self, repository: Repository, file_path: str) -> None:
        payload = {
            "target": {
                "owner": repository.owner,
                "name": repository.name,
                "branch": repository.branch,
            },
            "files": [{"path": file_path}],
        }
        headers = {
            "Authorization": f"token {self._token}",
            "Content-Type": "application/json",
        }

        try:
            response = self._session.post(
                self._import_url,
                json=payload,
                headers=headers,
                timeout=self._timeout_seconds,
            )
        except requests.RequestException as exc:
            raise SnykImportError(f"Snyk API request failed: {exc}") from exc

        if response.status_code not in SUCCESS_STATUS_CODES:
            raise SnykImportError(f"Snyk API returned status: {response.status_code}")

        logger.debug(
            "snyk import accepted",
            extra={"repo_owner": repository.owner, "repo_name": repository.name, "file_path": file_path},
        )
