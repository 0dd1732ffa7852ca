"""
AWS Configuration Module
Optional AWS Secrets Manager source for the wallet key and the OpenSea API key
"""

import json
from typing import Dict, Any, Optional, Tuple
import boto3
from botocore.exceptions import ClientError

from utils.logger import get_logger
from utils.exceptions import ConfigurationError


logger = get_logger(__name__)

PRIVATE_KEY_FIELD = 'PRIVATE_KEY'
API_KEY_FIELD = 'OPENSEA_API_KEY'


class AWSConfig:
    """
    Reads one JSON secret from Secrets Manager and caches it
    """

    def __init__(self, secret_id: str, region: str, client: Any = None):
        self.region = region
        self.secret_id = secret_id
        self._secrets_client = client
        self._secrets_cache: Optional[Dict[str, Any]] = None
        logger.info(f"AWS Config initialized for region: {self.region}")

    @property
    def secrets_client(self):
        """Lazy initialization of Secrets Manager client"""
        if self._secrets_client is None:
            try:
                self._secrets_client = boto3.client(
                    'secretsmanager',
                    region_name=self.region
                )
                logger.debug("AWS Secrets Manager client initialized")
            except Exception as e:
                logger.error(f"Failed to initialize Secrets Manager client: {e}")
                raise ConfigurationError(
                    f"AWS Secrets Manager client initialization failed: {e}",
                    original_error=e
                )
        return self._secrets_client

    def get_secrets(self, force_refresh: bool = False) -> Dict[str, Any]:
        """
        Retrieve secrets from AWS Secrets Manager with caching

        Args:
            force_refresh: Force refresh cached secrets

        Returns:
            Dictionary containing secret key-value pairs

        Raises:
            ConfigurationError: If secrets cannot be retrieved
        """
        if self._secrets_cache is not None and not force_refresh:
            logger.debug("Returning cached secrets")
            return self._secrets_cache

        try:
            logger.info(f"Retrieving secrets from AWS Secrets Manager: {self.secret_id}")
            response = self.secrets_client.get_secret_value(SecretId=self.secret_id)
        except ClientError as e:
            error_code = e.response['Error']['Code']
            error_message = e.response['Error']['Message']
            logger.error(f"AWS Secrets Manager error: {error_code} - {error_message}")

            if error_code == 'ResourceNotFoundException':
                raise ConfigurationError(
                    f"Secret '{self.secret_id}' not found in region '{self.region}'",
                    error_code=error_code
                )
            elif error_code == 'AccessDeniedException':
                raise ConfigurationError(
                    f"Access denied to secret '{self.secret_id}'. Check IAM permissions.",
                    error_code=error_code
                )
            raise ConfigurationError(
                f"Failed to retrieve secrets: {error_code} - {error_message}",
                error_code=error_code
            )

        if 'SecretString' not in response:
            raise ConfigurationError("Binary secrets not supported")

        try:
            secrets = json.loads(response['SecretString'])
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse secret JSON: {e}")
            raise ConfigurationError(f"Secret value is not valid JSON: {e}", original_error=e)

        if not isinstance(secrets, dict):
            raise ConfigurationError("Secret value must be a JSON object")

        self._secrets_cache = secrets
        logger.info("Secrets successfully retrieved and cached")
        return secrets

    def get_credentials(self) -> Tuple[Optional[str], Optional[str]]:
        """
        Wallet private key and OpenSea API key stored in the secret

        Returns:
            (private_key, api_key), either None when the secret lacks it
        """
        secrets = self.get_secrets()
        return secrets.get(PRIVATE_KEY_FIELD), secrets.get(API_KEY_FIELD)

    def clear_cache(self) -> None:
        """Clear cached secrets (useful for testing or forced refresh)"""
        self._secrets_cache = None
        logger.debug("Secrets cache cleared")


def resolve_credentials(
    private_key: Optional[str],
    api_key: Optional[str],
    aws_secret_id: Optional[str] = None,
    aws_region: str = 'us-east-1',
    aws_config: Optional[AWSConfig] = None,
) -> Tuple[str, str]:
    """
    Merge credentials from the environment and, when configured, AWS.

    Environment values win over the secret.

    Raises:
        ConfigurationError: If either credential is missing from both sources
    """
    if aws_secret_id and (not private_key or not api_key):
        aws = aws_config or AWSConfig(aws_secret_id, aws_region)
        secret_key, secret_api_key = aws.get_credentials()
        private_key = private_key or secret_key
        api_key = api_key or secret_api_key

    missing = [
        name for name, value in ((PRIVATE_KEY_FIELD, private_key), (API_KEY_FIELD, api_key))
        if not value
    ]
    if missing:
        raise ConfigurationError(
            f"Missing required credentials: {', '.join(missing)}",
            error_code='MISSING_CREDENTIALS'
        )
    return private_key, api_key
