"""GCP Secret Manager secret source."""
import logging
from typing import Dict, Optional, Sequence
from google.cloud import secretmanager

from .errors import SecretResolutionError
from .models import SecretRecord

logger = logging.getLogger(__name__)


class GCPSecretSource:
    """Resolves secret names against GCP Secret Manager."""

    def __init__(self, project_id: Optional[str], version: str = "latest",
                 service_account_path: Optional[str] = None):
        self.project_id = project_id
        self.version = version
        self.service_account_path = service_account_path
        self._client = None

    @property
    def client(self) -> secretmanager.SecretManagerServiceClient:
        """Lazy-initialize client."""
        if self._client is None:
            if self.service_account_path:
                logger.info(f"Using service account credentials from {self.service_account_path}")
                self._client = secretmanager.SecretManagerServiceClient.from_service_account_file(
                    self.service_account_path
                )
            else:
                self._client = secretmanager.SecretManagerServiceClient()
        return self._client

    def secret_path(self, secret_name: str) -> str:
        return f"projects/{self.project_id}/secrets/{secret_name}/versions/{self.version}"

    def fetch(self, names: Sequence[str]) -> Dict[str, SecretRecord]:
        """
        Fetch secrets from GCP Secret Manager.

        Args:
            names: Secret names to fetch

        Returns:
            Mapping of secret name to SecretRecord

        Raises:
            SecretResolutionError: If the project is unknown or any name can't be fetched
        """
        if not self.project_id:
            raise SecretResolutionError(
                names,
                "GCP project ID not found. Set GCP_PROJECT or gcp.project_id in the config file",
            )

        records: Dict[str, SecretRecord] = {}
        missing = []
        for name in names:
            try:
                response = self.client.access_secret_version(request={"name": self.secret_path(name)})
            except Exception as e:
                logger.warning(f"GCP fetch failed for {name}: {e}")
                missing.append(name)
                continue
            records[name] = SecretRecord(
                name=name,
                notes=response.payload.data.decode("UTF-8"),
                source="gcp",
            )

        if missing:
            raise SecretResolutionError(missing, f"not found in GCP project {self.project_id}")
        return records
