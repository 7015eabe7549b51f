"""
AWS credential resolution via STS.

Order: role ARN with an OIDC web identity token, role ARN with static keys,
then static keys alone.
"""

import logging
from typing import Dict, Optional, Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from controller.src.errors import CredentialFailure

logger = logging.getLogger(__name__)

def resolve_aws_environment(
    region: str,
    access_key_id: str = "",
    secret_access_key: str = "",
    role_arn: str = "",
    web_identity_token_file: str = "",
    session_name: str = "tfpipeline",
    session: Optional[Any] = None,
) -> Dict[str, str]:
    """Authenticate against AWS and return the environment terraform needs."""
    if not region:
        raise CredentialFailure("AWS region is not configured")

    if bool(access_key_id) != bool(secret_access_key):
        raise CredentialFailure("AWS access key id and secret access key must be set together")

    if not role_arn and not access_key_id:
        raise CredentialFailure("No AWS credentials configured (need access keys or a role ARN)")

    if session is None:
        session = boto3.session.Session(
            aws_access_key_id=access_key_id or None,
            aws_secret_access_key=secret_access_key or None,
            region_name=region,
        )

    try:
        sts = session.client("sts", region_name=region)

        if role_arn and web_identity_token_file:
            token = read_web_identity_token(web_identity_token_file)
            logger.info(f"Assuming role {role_arn} with web identity")
            response = sts.assume_role_with_web_identity(
                RoleArn=role_arn,
                RoleSessionName=session_name,
                WebIdentityToken=token,
            )
            creds = response["Credentials"]
        elif role_arn:
            if not access_key_id:
                raise CredentialFailure(
                    "Role ARN requires a web identity token file or access keys"
                )
            logger.info(f"Assuming role {role_arn}")
            response = sts.assume_role(RoleArn=role_arn, RoleSessionName=session_name)
            creds = response["Credentials"]
        else:
            identity = sts.get_caller_identity()
            logger.info(f"Authenticated as {identity.get('Arn', 'unknown')}")
            creds = {
                "AccessKeyId": access_key_id,
                "SecretAccessKey": secret_access_key,
            }
    except (BotoCoreError, ClientError) as e:
        raise CredentialFailure(f"AWS authentication failed: {e}")

    env = {
        "AWS_ACCESS_KEY_ID": creds["AccessKeyId"],
        "AWS_SECRET_ACCESS_KEY": creds["SecretAccessKey"],
        "AWS_REGION": region,
        "AWS_DEFAULT_REGION": region,
    }
    if creds.get("SessionToken"):
        env["AWS_SESSION_TOKEN"] = creds["SessionToken"]

    return env

def read_web_identity_token(path: str) -> str:
    try:
        with open(path, "r") as f:
            token = f.read().strip()
    except OSError as e:
        raise CredentialFailure(f"Cannot read web identity token file {path}: {e}")

    if not token:
        raise CredentialFailure(f"Web identity token file {path} is empty")
    return token
