from unittest.mock import MagicMock

import pytest


@pytest.fixture
def notion():
    client = MagicMock()
    client.databases.retrieve.return_value = {"id": "db-1"}
    client.pages.create.return_value = {"id": "page-1", "url": "https://notion.so/page-1"}
    return client
