"""Unit tests for gamma encoding and PNG export."""

import numpy as np
import pytest


class TestEncodeGamma:
    """Tests for encode_gamma and to_uint8."""

    def test_square_root_encoding(self):
        from pathtracer.preview import encode_gamma

        image = np.array([[[0.0, 0.25, 1.0]]], dtype=np.float32)
        np.testing.assert_allclose(encode_gamma(image), [[[0.0, 0.5, 1.0]]], atol=1e-6)

    def test_gamma_one_only_clamps(self):
        from pathtracer.preview import encode_gamma

        image = np.array([[[-0.5, 0.25, 3.0]]], dtype=np.float32)
        np.testing.assert_allclose(encode_gamma(image, gamma=1.0), [[[0.0, 0.25, 1.0]]])

    def test_non_finite_values(self):
        from pathtracer.preview import encode_gamma

        image = np.array([[[np.nan, np.inf, -np.inf]]], dtype=np.float32)
        np.testing.assert_array_equal(encode_gamma(image), [[[0.0, 1.0, 0.0]]])

    @pytest.mark.parametrize("gamma", [0.0, -2.0])
    def test_invalid_gamma(self, gamma):
        from pathtracer.preview import encode_gamma

        with pytest.raises(ValueError):
            encode_gamma(np.zeros((1, 1, 3), dtype=np.float32), gamma)

    def test_quantisation(self):
        from pathtracer.preview import to_uint8

        image = np.array([[[1.0, 0.25, 0.0], [2.0, 0.0625, 1e-6]]], dtype=np.float32)
        pixels = to_uint8(image)
        assert pixels.dtype == np.uint8
        # int(255.999 * sqrt(x))
        assert pixels[0, 0].tolist() == [255, 127, 0]
        assert pixels[0, 1].tolist() == [255, 63, 0]


class TestSavePng:
    """Tests for save_png."""

    def test_round_trip(self, tmp_path):
        from PIL import Image

        from pathtracer.preview import save_png, to_uint8

        rng = np.random.default_rng(0)
        image = rng.random((6, 9, 3)).astype(np.float32)
        path = tmp_path / "out.png"
        save_png(image, path)

        with Image.open(path) as loaded:
            assert loaded.size == (9, 6)
            assert loaded.mode == "RGB"
            np.testing.assert_array_equal(np.asarray(loaded), to_uint8(image))

    def test_top_row_stays_on_top(self, tmp_path):
        from PIL import Image

        from pathtracer.preview import save_png

        image = np.zeros((4, 2, 3), dtype=np.float32)
        image[0] = 1.0
        path = tmp_path / "top.png"
        save_png(image, path)
        with Image.open(path) as loaded:
            assert loaded.getpixel((0, 0)) == (255, 255, 255)
            assert loaded.getpixel((0, 3)) == (0, 0, 0)

    @pytest.mark.parametrize("shape", [(4, 4), (4, 4, 4), (4,)])
    def test_bad_shape(self, tmp_path, shape):
        from pathtracer.preview import save_png

        with pytest.raises(ValueError):
            save_png(np.zeros(shape, dtype=np.float32), tmp_path / "bad.png")


class TestComputeRmse:
    """Tests for compute_rmse."""

    def test_identical(self):
        from pathtracer.preview import compute_rmse

        image = np.ones((3, 3, 3), dtype=np.float32)
        assert compute_rmse(image, image) == 0.0

    def test_known_value(self):
        from pathtracer.preview import compute_rmse

        a = np.zeros((2, 2, 3))
        b = np.full((2, 2, 3), 0.5)
        assert compute_rmse(a, b) == pytest.approx(0.5)

    def test_shape_mismatch(self):
        from pathtracer.preview import compute_rmse

        with pytest.raises(ValueError):
            compute_rmse(np.zeros((2, 2, 3)), np.zeros((2, 3, 3)))
