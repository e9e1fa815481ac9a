"""
Tests for the Batch Packer module.
"""

import pytest
from config import BatchConfig
from hardsub.batch_packer import BatchPacker
from hardsub.exceptions import PackingError
from tests.helpers import make_jpeg, open_image


@pytest.fixture
def packer():
    return BatchPacker(BatchConfig())


class TestMerge:
    """Test composite layout."""

    def test_single_image_keeps_size(self, packer):
        composite = packer.merge([make_jpeg(320, 180)])
        assert (composite.width, composite.height) == (320, 180)
        assert composite.offsets == [0]

    def test_stacks_top_to_bottom_with_gap(self, packer):
        composite = packer.merge([make_jpeg(320, 180), make_jpeg(320, 100)])
        assert composite.width == 320
        assert composite.height == 180 + 5 + 100
        assert composite.offsets == [0, 185]
        assert composite.count == 2

    def test_scales_down_to_max_width(self, packer):
        composite = packer.merge([make_jpeg(1600, 900), make_jpeg(800, 450)])
        assert composite.width == 800
        # One shared scale factor (0.5) for every sub-image
        assert composite.offsets == [0, 450 + 5]
        assert composite.height == 450 + 5 + 225

    def test_output_is_decodable_jpeg(self, packer):
        composite = packer.merge([make_jpeg(), make_jpeg()])
        img = open_image(composite.image)
        assert img.format == "JPEG"
        assert img.size == (composite.width, composite.height)

    def test_narrow_image_centred_on_white(self, packer):
        composite = packer.merge([make_jpeg(400, 50, (0, 0, 0)), make_jpeg(100, 50, (0, 0, 0))])
        img = open_image(composite.image).convert("L")
        # Left margin beside the narrow second image is background
        assert img.getpixel((5, 80)) > 200
        assert img.getpixel((200, 80)) < 60

    def test_separator_drawn(self):
        packer = BatchPacker(BatchConfig(separator_gap=8, separator_thickness=8))
        composite = packer.merge([make_jpeg(200, 40, (0, 0, 0)), make_jpeg(200, 40, (0, 0, 0))])
        assert composite.offsets == [0, 48]
        img = open_image(composite.image).convert("L")
        assert 180 < img.getpixel((100, 44)) < 230

    def test_order_preserved(self, packer):
        composite = packer.merge([make_jpeg(100, 40, (255, 0, 0)), make_jpeg(100, 40, (0, 0, 255))])
        img = open_image(composite.image).convert("RGB")
        top = img.getpixel((50, 20))
        bottom = img.getpixel((50, composite.offsets[1] + 20))
        assert top[0] > top[2]
        assert bottom[2] > bottom[0]


class TestErrors:

    def test_empty_batch(self, packer):
        with pytest.raises(PackingError):
            packer.merge([])

    def test_empty_image_data(self, packer):
        with pytest.raises(PackingError):
            packer.merge([make_jpeg(), b""])

    def test_undecodable_image(self, packer):
        with pytest.raises(PackingError):
            packer.merge([b"not an image"])
