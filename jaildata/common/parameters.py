"""Parameter store access for facility ids and the upstream base URL."""

from __future__ import annotations

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from jaildata.common.errors import ConfigurationError


class ParameterStore:
    def __init__(self, ssm_client=None, *, region_name: str | None = None) -> None:
        self.client = ssm_client or boto3.client("ssm", region_name=region_name)

    def get(self, name: str) -> str | None:
        """Return the decrypted parameter value, or None when it does not exist."""
        try:
            response = self.client.get_parameter(Name=name, WithDecryption=True)
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") == "ParameterNotFound":
                return None
            raise ConfigurationError(f"Failed to read parameter {name}: {exc}") from exc
        except BotoCoreError as exc:
            raise ConfigurationError(f"Failed to read parameter {name}: {exc}") from exc

        value = (response.get("Parameter") or {}).get("Value")
        return value or None
