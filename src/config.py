import json
import os
from typing import Optional

from aws_lambda_powertools import Logger
from mypy_boto3_s3 import S3Client
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

import entities
from sync_rules import SyncRule, parse_sync_rules


def get_logger(service: Optional[str] = None, level: Optional[str] = None) -> Logger:
    kwargs = {
        "json_default": entities.json_default,
        "level": level or os.environ.get("LOG_LEVEL", "INFO"),
    }
    if service:
        kwargs["service"] = service
    return Logger(**kwargs)


logger = get_logger(service="config")


def load_sync_rules_from_s3(s3_client: S3Client, bucket_name: str, s3_key: str) -> list:
    """
    Load sync rules from S3.

    The object may hold either a JSON array of rules or an object with a
    ``sync_rules`` key.

    Args:
        s3_client: Boto3 S3 client
        bucket_name: Name of the S3 bucket
        s3_key: Key of the S3 object containing the rules

    Returns:
        List of raw rule dictionaries

    Raises:
        Exception: If S3 retrieval or JSON parsing fails
    """
    try:
        logger.info(f"Loading sync rules from s3://{bucket_name}/{s3_key}")
        response = s3_client.get_object(Bucket=bucket_name, Key=s3_key)
        content = response["Body"].read().decode("utf-8")
        config_data = json.loads(content)

        if isinstance(config_data, dict):
            if "sync_rules" not in config_data:
                logger.warning(f"Missing 'sync_rules' key in S3 config. Found keys: {list(config_data.keys())}")
            config_data = config_data.get("sync_rules", [])

        logger.info("Successfully loaded sync rules from S3")
        return config_data

    except s3_client.exceptions.NoSuchKey:
        logger.error(f"S3 object not found: s3://{bucket_name}/{s3_key}")
        raise
    except s3_client.exceptions.NoSuchBucket:
        logger.error(f"S3 bucket not found: {bucket_name}")
        raise
    except Exception as e:
        logger.error(
            f"Failed to load sync rules from S3: {e}",
            exc_info=True,
        )
        raise


class Config(BaseSettings):
    model_config = SettingsConfigDict(frozen=True)

    github_org: str
    github_token: str
    github_base_url: str = "https://api.github.com"
    github_request_timeout: float = 30.0

    identity_store_id: str
    identity_attribute: str = "githubUsername"

    safety_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    max_workers: int = Field(default=1, ge=1)
    orphaned_user_detection: bool = False

    log_level: str = "INFO"

    config_bucket_name: str = "team-sync-config"
    config_s3_key: str = ""
    sync_rules: tuple[SyncRule, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def load_sync_rules(cls, values: dict) -> dict:  # noqa: ANN101
        import boto3

        config_s3_key = values.get("config_s3_key", "")

        if config_s3_key:
            s3_client = boto3.client("s3")
            config_bucket_name = values.get("config_bucket_name", "team-sync-config")
            sync_rules_raw = load_sync_rules_from_s3(s3_client, config_bucket_name, config_s3_key)
        else:
            sync_rules_raw = values.get("sync_rules")
            if sync_rules_raw is not None and isinstance(sync_rules_raw, str):
                sync_rules_raw = json.loads(sync_rules_raw)

        sync_rules = parse_sync_rules(sync_rules_raw) if sync_rules_raw is not None else ()

        if not sync_rules:
            logger.warning("No sync rules found")
        elif not any(rule.enabled for rule in sync_rules):
            logger.warning(f"All {len(sync_rules)} sync rules are disabled")

        return values | {"sync_rules": sync_rules}


_config: Optional[Config] = None


def get_config() -> Config:
    global _config  # noqa: PLW0603
    if _config is None:
        _config = Config()  # type: ignore # noqa: PGH003
    return _config
