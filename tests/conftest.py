"""Shared fixtures: mocked AWS environment and DynamoDB tables."""

import boto3
import pytest
from moto import mock_aws

from storage.session import StorageSession, TableNames

TABLE_KEYS = {
    'events': [('user_id', 'HASH'), ('event_key', 'RANGE')],
    'connections': [('connection_id', 'HASH')],
    'tasks': [('user_id', 'HASH'), ('task_id', 'RANGE')],
    'posts': [('post_id', 'HASH')],
    'promoted_posts': [('post_id', 'HASH')],
    'profiles': [('user_id', 'HASH')],
    'course_colors': [('user_id', 'HASH'), ('course_code', 'RANGE')],
}


@pytest.fixture
def aws_credentials(monkeypatch):
    """Fake credentials so boto3 never touches a real account."""
    monkeypatch.setenv('AWS_ACCESS_KEY_ID', 'testing')
    monkeypatch.setenv('AWS_SECRET_ACCESS_KEY', 'testing')
    monkeypatch.setenv('AWS_SECURITY_TOKEN', 'testing')
    monkeypatch.setenv('AWS_SESSION_TOKEN', 'testing')
    monkeypatch.setenv('AWS_DEFAULT_REGION', 'us-east-1')


@pytest.fixture
def dynamodb_tables(aws_credentials):
    """Create every table with the default names inside a moto mock."""
    with mock_aws():
        dynamodb = boto3.resource('dynamodb', region_name='us-east-1')
        names = TableNames()
        for family, keys in TABLE_KEYS.items():
            dynamodb.create_table(
                TableName=getattr(names, family),
                KeySchema=[
                    {'AttributeName': name, 'KeyType': key_type}
                    for name, key_type in keys
                ],
                AttributeDefinitions=[
                    {'AttributeName': name, 'AttributeType': 'S'}
                    for name, _ in keys
                ],
                BillingMode='PAY_PER_REQUEST'
            )
        yield dynamodb


@pytest.fixture
def storage_session(dynamodb_tables):
    session = StorageSession(region_name='us-east-1')
    yield session
    session.close()

