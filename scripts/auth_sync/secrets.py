"""Resolve secret references for the Auth0 client secret and the database URL.

A value that starts with ``aws-secret://`` or ``gcp-secret://`` is looked up
in the matching cloud secret manager; anything else is treated as the secret
itself, which is what local runs with a .env file use.
"""

from __future__ import annotations

import json
import logging
import os

logger = logging.getLogger("auth_sync.secrets")

_AWS_PREFIX = "aws-secret://"
_GCP_PREFIX = "gcp-secret://"


def resolve_secret(value: str) -> str:
    """Return the plaintext behind ``value``.

      - "aws-secret://name" or "aws-secret://name#json_key"
      - "gcp-secret://projects/P/secrets/S/versions/V" or "gcp-secret://S"
      - anything else is returned unchanged
    """
    if value.startswith(_AWS_PREFIX):
        return _from_aws(value[len(_AWS_PREFIX):])
    if value.startswith(_GCP_PREFIX):
        return _from_gcp(value[len(_GCP_PREFIX):])
    return value


def _from_aws(ref: str) -> str:
    import boto3

    secret_id, _, json_key = ref.partition("#")
    client = boto3.client(
        "secretsmanager", region_name=os.environ.get("AWS_REGION", "us-east-1")
    )
    logger.debug("Reading %s from AWS Secrets Manager", secret_id)
    secret_string = client.get_secret_value(SecretId=secret_id)["SecretString"]
    if json_key:
        return str(json.loads(secret_string)[json_key])
    return secret_string


def _from_gcp(ref: str) -> str:
    from google.cloud import secretmanager

    if ref.startswith("projects/"):
        name = ref
    else:
        project = os.environ.get("GCP_PROJECT_ID", "")
        if not project:
            raise ValueError(
                f"GCP_PROJECT_ID is required to resolve short secret name {ref!r}"
            )
        name = f"projects/{project}/secrets/{ref}/versions/latest"

    logger.debug("Reading %s from GCP Secret Manager", name)
    client = secretmanager.SecretManagerServiceClient()
    response = client.access_secret_version(request={"name": name})
    return response.payload.data.decode("UTF-8")


def resolve_database_url() -> str:
    """DATABASE_URL if set, otherwise a URL assembled from PG_* variables."""
    url = os.environ.get("DATABASE_URL", "")
    if url:
        return resolve_secret(url)

    host = os.environ.get("PG_HOST", "localhost")
    port = os.environ.get("PG_PORT", "5432")
    user = os.environ.get("PG_USER", "cio")
    password = resolve_secret(os.environ.get("PG_PASSWORD", ""))
    database = os.environ.get("PG_DATABASE", "cio")

    auth = f"{user}:{password}" if password else user
    return f"postgresql://{auth}@{host}:{port}/{database}"
