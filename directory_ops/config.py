"""Connection settings for the remote directory."""

from typing import List, Optional

from .directory import DirectoryClient
from .http_client import DirectoryHTTPClient

DEFAULT_TIMEOUT = 30


class DirectorySettings:
    """Everything needed to reach the directory.

    Populated by the CLI from options and their ``DIRECTORY_*`` environment
    variables.

    Attributes:
        org_url:       Root URL of the organization.
        api_token:     API token for the ``SSWS`` authorization header.
        timeout:       Per-request timeout in seconds.
        tls_no_verify: Skip TLS certificate verification.
        ca_bundle:     Path to a CA bundle for TLS verification.
        proxy:         HTTP/HTTPS proxy URL.
    """

    def __init__(
        self,
        org_url: Optional[str] = None,
        api_token: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        tls_no_verify: bool = False,
        ca_bundle: Optional[str] = None,
        proxy: Optional[str] = None,
    ):
        self.org_url = org_url
        self.api_token = api_token
        self.timeout = timeout
        self.tls_no_verify = tls_no_verify
        self.ca_bundle = ca_bundle
        self.proxy = proxy

    def validate(self) -> List[str]:
        """Return a list of configuration problems; empty when usable."""
        problems = []
        if not self.org_url:
            problems.append("Missing organization URL (--org-url or DIRECTORY_ORG_URL)")
        elif not self.org_url.startswith(("http://", "https://")):
            problems.append(f"Organization URL must start with http:// or https://: {self.org_url}")
        if not self.api_token:
            problems.append("Missing API token (--token or DIRECTORY_API_TOKEN)")
        if self.timeout is not None and self.timeout <= 0:
            problems.append(f"Timeout must be positive: {self.timeout}")
        if self.tls_no_verify and self.ca_bundle:
            problems.append("--tls-no-verify and --ca-bundle are mutually exclusive")
        return problems

    def build_client(self) -> DirectoryClient:
        """Create the process-wide directory client."""
        http = DirectoryHTTPClient(
            self.org_url,
            token=self.api_token,
            tls_no_verify=self.tls_no_verify,
            timeout=self.timeout,
            proxy=self.proxy,
            ca_bundle=self.ca_bundle,
        )
        return DirectoryClient(http)
