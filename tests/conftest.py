import pytest

from tests.helpers import make_jpeg


@pytest.fixture
def jpeg_frame():
    return make_jpeg()
