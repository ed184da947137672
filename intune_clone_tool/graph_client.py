"""
Microsoft Graph client for Intune device management endpoints.
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable, Dict, Iterable, List, Optional, TypeVar
from urllib.parse import quote

import requests

T = TypeVar("T")

GRAPH_ENVIRONMENTS: Dict[str, Dict[str, str]] = {
    "Global": {
        "graph": "https://graph.microsoft.com",
        "login": "https://login.microsoftonline.com",
    },
    "USGov": {
        "graph": "https://graph.microsoft.us",
        "login": "https://login.microsoftonline.us",
    },
    "USGovDoD": {
        "graph": "https://dod-graph.microsoft.us",
        "login": "https://login.microsoftonline.us",
    },
}

GRAPH_API_VERSION = "beta"
PAGE_SIZE = 999
MAX_PAGES = 1000


class GraphApiError(Exception):
    """Raised when Graph returns malformed data or cannot be parsed."""


class GraphRequestError(Exception):
    """Raised when a Graph request fails at the transport or HTTP level."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class DataModelError(Exception):
    """Raised when expected fields are missing in responses."""


def _retry_with_backoff(
    max_retries: int = 3,
    initial_delay: float = 1.0,
    backoff_factor: float = 2.0,
    retryable_exceptions: tuple = (requests.exceptions.ConnectionError, requests.exceptions.Timeout),
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorator to retry a function with exponential backoff.

    Args:
        max_retries: Maximum number of retry attempts
        initial_delay: Initial delay between retries in seconds
        backoff_factor: Multiplier for delay after each retry
        retryable_exceptions: Tuple of exceptions that should trigger a retry
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            delay = initial_delay
            logger = args[0].logger if args and hasattr(args[0], "logger") else None

            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except retryable_exceptions as exc:
                    if attempt >= max_retries:
                        if logger:
                            logger.error("All retry attempts exhausted")
                        raise
                    if logger:
                        logger.warning(
                            "Attempt %d/%d failed: %s. Retrying in %.1fs...",
                            attempt + 1, max_retries + 1, exc, delay
                        )
                    time.sleep(delay)
                    delay *= backoff_factor
            return func(*args, **kwargs)

        return wrapper
    return decorator


def graph_root(environment: str) -> str:
    """Return the versioned Graph root URL for a cloud environment selector."""
    try:
        endpoints = GRAPH_ENVIRONMENTS[environment]
    except KeyError as exc:
        valid = ", ".join(GRAPH_ENVIRONMENTS)
        raise ValueError(f"Unknown environment '{environment}'. Expected one of: {valid}") from exc
    return f"{endpoints['graph']}/{GRAPH_API_VERSION}"


@dataclass
class GraphAuth:
    bearer_token: Optional[str] = None
    tenant_id: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None

    def from_env(self) -> "GraphAuth":
        self.bearer_token = self.bearer_token or os.environ.get("GRAPH_BEARER_TOKEN")
        self.tenant_id = self.tenant_id or os.environ.get("AZURE_TENANT_ID")
        self.client_id = self.client_id or os.environ.get("AZURE_CLIENT_ID")
        self.client_secret = self.client_secret or os.environ.get("AZURE_CLIENT_SECRET")
        return self

    @property
    def has_credentials(self) -> bool:
        return bool(self.bearer_token or (self.tenant_id and self.client_id and self.client_secret))


class GraphClient:
    """
    Client for the Intune endpoints of Microsoft Graph used by the clone commands.

    All calls are synchronous. Collection endpoints are read through
    ``get_paged`` which follows ``@odata.nextLink`` until exhausted.
    """

    def __init__(
        self,
        environment: str = "Global",
        logger: Optional[logging.Logger] = None,
        *,
        auth: Optional[GraphAuth] = None,
        timeout: int = 30,
        debug_api: bool = False,
    ):
        self.environment = environment
        self.root = graph_root(environment)
        self.logger = logger or logging.getLogger(__name__)
        self.auth = (auth or GraphAuth()).from_env()
        self.timeout = timeout
        self.debug_api = debug_api
        self._cached_token: Optional[str] = None
        self._token_expiry: Optional[float] = None

        if not self.auth.has_credentials:
            raise GraphRequestError(
                "No Graph credentials configured. Set GRAPH_BEARER_TOKEN, or AZURE_TENANT_ID, "
                "AZURE_CLIENT_ID and AZURE_CLIENT_SECRET for an app registration with "
                "DeviceManagementConfiguration.ReadWrite.All and DeviceManagementRBAC.Read.All."
            )

    # -------- Transport --------
    @_retry_with_backoff(max_retries=3, initial_delay=1.0, backoff_factor=2.0)
    def _send(self, method: str, url: str, body: Optional[Dict[str, Any]], headers: Dict[str, str]) -> requests.Response:
        return requests.request(method, url, json=body, headers=headers, timeout=self.timeout)

    def _http_call(self, path: str, method: str = "GET", body: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = path if path.startswith("http") else self.root + path
        headers = {"Accept": "application/json", "Authorization": f"Bearer {self._get_token()}"}
        if body is not None:
            headers["Content-Type"] = "application/json"

        self.logger.debug("graph call method=%s url=%s", method, url)
        try:
            resp = self._send(method, url, body, headers)
        except requests.RequestException as exc:
            raise GraphRequestError(f"HTTP request failed for {method} {url}: {exc}") from exc

        if self.debug_api:
            self.logger.debug("API Response [%s %s]: Status=%d", method, path, resp.status_code)
            self.logger.debug("Response body: %s", resp.text[:5000])

        if resp.status_code >= 400:
            error_msg = f"HTTP {resp.status_code} for {method} {url}"
            if resp.status_code == 401:
                error_msg += (
                    "\n\nAuthentication failed: token may be expired or invalid."
                    "\n\nPlease verify GRAPH_BEARER_TOKEN or the app registration credentials."
                )
            elif resp.status_code == 403:
                error_msg += (
                    "\n\nForbidden: the signed-in identity lacks required permissions."
                    "\n\nPlease verify the app registration has these Graph permissions:"
                    "\n  - DeviceManagementConfiguration.ReadWrite.All"
                    "\n  - DeviceManagementRBAC.Read.All"
                    "\n\nand that your Intune role's scope tags include the objects involved."
                )
            elif resp.status_code == 404:
                error_msg += f"\n\nResource not found: {path}"
            elif resp.status_code >= 500:
                error_msg += "\n\nServer error: Microsoft Graph returned an internal error. Please try again later."
            error_msg += f"\n\nServer response (first 500 chars): {resp.text[:500]}"
            raise GraphRequestError(error_msg, status_code=resp.status_code)

        if resp.status_code == 204 or not resp.text:
            return {}
        try:
            return resp.json()
        except ValueError as exc:
            self.logger.error("Failed to parse JSON from response. Body: %s", resp.text[:1000])
            raise GraphApiError(f"Failed to parse JSON response for {url}") from exc

    def _get_token(self) -> str:
        if self._cached_token:
            # Refresh token if within 60 seconds of expiry
            if self._token_expiry is None or time.time() + 60 < self._token_expiry:
                return self._cached_token
            self.logger.debug("Token expired or expiring soon, refreshing...")
            self._cached_token = None
            self._token_expiry = None

        if self.auth.bearer_token:
            self._cached_token = self.auth.bearer_token
        else:
            self._cached_token = self._fetch_token_client_creds()
        return self._cached_token

    def _fetch_token_client_creds(self) -> str:
        login = GRAPH_ENVIRONMENTS[self.environment]["login"]
        url = f"{login}/{self.auth.tenant_id}/oauth2/v2.0/token"
        payload = {
            "grant_type": "client_credentials",
            "client_id": self.auth.client_id,
            "client_secret": self.auth.client_secret,
            "scope": f"{GRAPH_ENVIRONMENTS[self.environment]['graph']}/.default",
        }
        try:
            resp = requests.post(url, data=payload, timeout=15)
            resp.raise_for_status()
            data = resp.json()
        except requests.exceptions.RequestException as exc:
            raise GraphRequestError(f"Failed to fetch token with client credentials: {exc}") from exc
        except ValueError as exc:
            raise GraphApiError(f"Invalid token response format: {exc}") from exc

        token = data.get("access_token")
        if not token:
            raise GraphApiError("Token response did not contain an access_token")
        if "expires_in" in data:
            self._token_expiry = time.time() + float(data["expires_in"])
        return token

    def _call(self, path: str, method: str = "GET", body: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        result = self._http_call(path, method=method, body=body)
        if not isinstance(result, dict):
            raise GraphApiError(f"Expected a JSON object from {method} {path}, got {type(result).__name__}")
        return result

    def get(self, path: str) -> Dict[str, Any]:
        return self._call(path)

    def post(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        return self._call(path, method="POST", body=body)

    def patch(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        return self._call(path, method="PATCH", body=body)

    def get_paged(self, path: str) -> List[Dict[str, Any]]:
        """
        Fetch every item of a collection, following ``@odata.nextLink``.

        Args:
            path: Collection path relative to the Graph root (query string allowed)

        Returns:
            All items of the collection in server order
        """
        items: List[Dict[str, Any]] = []
        next_link: Optional[str] = path
        pages = 0
        while next_link:
            data = self._call(next_link)
            value = data.get("value")
            if value is None:
                raise GraphApiError(f"Collection response for {path} has no 'value' array")
            items.extend(value)
            pages += 1
            self.logger.debug("Fetched page %d of %s (%d items so far)", pages, path, len(items))
            next_link = data.get("@odata.nextLink")

            # Safety check: prevent infinite loops
            if pages >= MAX_PAGES:
                self.logger.warning("Reached pagination limit of %d pages for %s, stopping", MAX_PAGES, path)
                break
        return items

    # -------- Scope tags --------
    def list_scope_tags(self) -> List[Dict[str, Any]]:
        return self.get_paged(f"/deviceManagement/roleScopeTags?$select=id,displayName&$top={PAGE_SIZE}")

    # -------- Compliance policies --------
    def list_compliance_policies(self) -> List[Dict[str, Any]]:
        return self.get_paged(
            f"/deviceManagement/deviceCompliancePolicies?$select=id,displayName,roleScopeTagIds&$top={PAGE_SIZE}"
        )

    def get_compliance_policy(self, policy_id: str) -> Dict[str, Any]:
        return self.get(f"/deviceManagement/deviceCompliancePolicies/{_segment(policy_id)}?$expand=scheduledActionsForRule")

    def create_compliance_policy(self, body: Dict[str, Any]) -> Dict[str, Any]:
        return self.post("/deviceManagement/deviceCompliancePolicies", body)

    def patch_compliance_policy(self, policy_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        return self.patch(f"/deviceManagement/deviceCompliancePolicies/{_segment(policy_id)}", body)

    def list_compliance_scripts(self) -> List[Dict[str, Any]]:
        return self.get_paged(f"/deviceManagement/deviceComplianceScripts?$select=id,displayName&$top={PAGE_SIZE}")

    def get_compliance_script(self, script_id: str) -> Dict[str, Any]:
        return self.get(f"/deviceManagement/deviceComplianceScripts/{_segment(script_id)}")

    def create_compliance_script(self, body: Dict[str, Any]) -> Dict[str, Any]:
        return self.post("/deviceManagement/deviceComplianceScripts", body)

    # -------- Configuration profiles --------
    def list_configuration_policies(self) -> List[Dict[str, Any]]:
        return self.get_paged(
            f"/deviceManagement/configurationPolicies?$select=id,name,roleScopeTagIds,platforms,technologies&$top={PAGE_SIZE}"
        )

    def get_configuration_policy(self, policy_id: str) -> Dict[str, Any]:
        return self.get(f"/deviceManagement/configurationPolicies/{_segment(policy_id)}?$expand=settings")

    def create_configuration_policy(self, body: Dict[str, Any]) -> Dict[str, Any]:
        return self.post("/deviceManagement/configurationPolicies", body)

    def patch_configuration_policy(self, policy_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        return self.patch(f"/deviceManagement/configurationPolicies/{_segment(policy_id)}", body)

    def list_intents(self) -> List[Dict[str, Any]]:
        return self.get_paged(f"/deviceManagement/intents?$select=id,displayName,roleScopeTagIds,templateId&$top={PAGE_SIZE}")

    def copy_intent(self, intent_id: str, display_name: str, description: str) -> Dict[str, Any]:
        return self.post(
            f"/deviceManagement/intents/{_segment(intent_id)}/createCopy",
            {"displayName": display_name, "description": description},
        )

    def patch_intent(self, intent_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        return self.patch(f"/deviceManagement/intents/{_segment(intent_id)}", body)

    # -------- Scripts --------
    def list_platform_scripts(self) -> List[Dict[str, Any]]:
        return self.get_paged(f"/deviceManagement/deviceManagementScripts?$select=id,displayName,roleScopeTagIds&$top={PAGE_SIZE}")

    def get_platform_script(self, script_id: str) -> Dict[str, Any]:
        return self.get(f"/deviceManagement/deviceManagementScripts/{_segment(script_id)}")

    def create_platform_script(self, body: Dict[str, Any]) -> Dict[str, Any]:
        return self.post("/deviceManagement/deviceManagementScripts", body)

    def patch_platform_script(self, script_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        return self.patch(f"/deviceManagement/deviceManagementScripts/{_segment(script_id)}", body)

    def list_remediation_scripts(self) -> List[Dict[str, Any]]:
        return self.get_paged(f"/deviceManagement/deviceHealthScripts?$select=id,displayName,roleScopeTagIds&$top={PAGE_SIZE}")

    def get_remediation_script(self, script_id: str) -> Dict[str, Any]:
        return self.get(f"/deviceManagement/deviceHealthScripts/{_segment(script_id)}")

    def create_remediation_script(self, body: Dict[str, Any]) -> Dict[str, Any]:
        return self.post("/deviceManagement/deviceHealthScripts", body)

    def patch_remediation_script(self, script_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        return self.patch(f"/deviceManagement/deviceHealthScripts/{_segment(script_id)}", body)


def _segment(value: str) -> str:
    return quote(str(value), safe="")


def names_of(items: Iterable[Dict[str, Any]], *keys: str) -> List[str]:
    """Collect the first non-empty name field of each item."""
    names: List[str] = []
    for item in items:
        for key in keys:
            value = item.get(key)
            if value:
                names.append(str(value))
                break
    return names
