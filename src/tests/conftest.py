import json
import os
from unittest.mock import MagicMock

import boto3
import pytest


def pytest_sessionstart(session):  # noqa: ANN201, ARG001, ANN001
    mock_env = {
        "github_org": "acme",
        "github_token": "x",
        "identity_store_id": "d-1234567890",
        "identity_attribute": "githubUsername",
        "safety_threshold": "0.5",
        "log_level": "DEBUG",
        "sync_rules": json.dumps(
            [
                {
                    "name": "engineering",
                    "group_pattern": "^eng-",
                    "team_prefix": "gh-",
                    "strip_prefix": "eng-",
                },
                {
                    "name": "platform",
                    "group_name": "Platform",
                    "team_name": "platform",
                    "team_privacy": "secret",
                },
            ]
        ),
    }
    os.environ |= mock_env

    boto3.setup_default_session(region_name="us-east-1")


@pytest.fixture
def mock_s3_sync_rules():
    return {
        "sync_rules": [
            {
                "name": "from-s3",
                "group_name": "Engineering",
                "team_name": "engineering",
            }
        ]
    }


@pytest.fixture
def mock_s3_client(mock_s3_sync_rules):
    """Returns a mock S3 client that returns sync rules."""
    mock_client = MagicMock()
    mock_response = {"Body": MagicMock(read=lambda: json.dumps(mock_s3_sync_rules).encode("utf-8"))}
    mock_client.get_object.return_value = mock_response
    mock_client.exceptions = MagicMock()
    mock_client.exceptions.NoSuchKey = type("NoSuchKey", (Exception,), {})
    mock_client.exceptions.NoSuchBucket = type("NoSuchBucket", (Exception,), {})
    return mock_client
