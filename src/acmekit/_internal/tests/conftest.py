from unittest import mock

import pytest

from acmekit._internal.tests import test_util


@pytest.fixture(autouse=True)
def mock_now():
    with mock.patch("acmekit.connection._now", return_value=test_util.NOW) as mocked:
        yield mocked
