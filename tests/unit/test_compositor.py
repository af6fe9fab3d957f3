"""Unit tests for background removal, auto-crop and background replacement."""
import numpy as np
import pytest
from PIL import Image

from product_studio.core.errors import DegenerateMaskWarning
from product_studio.core.imaging import parse_color
from product_studio.core.model_manager import ModelKind
from product_studio.modules.compositor import (
    BlurBackground,
    ColorBackground,
    GradientBackground,
    ImageBackground,
    auto_crop,
    background_from_dict,
    background_presets,
    background_to_dict,
    bounding_box,
    crop_region,
    find_bounding_box,
    remove_background,
    render_background,
    replace_background,
)
from product_studio.modules.segmenter import Mask


@pytest.fixture
def square_mask(square_mask_array):
    return Mask.from_binary(square_mask_array, ModelKind.GENERAL)


@pytest.fixture
def empty_mask():
    return Mask.from_binary(np.zeros((64, 64), dtype=bool))


class TestParseColor:
    """Test color parsing."""

    @pytest.mark.parametrize("color,expected", [
        ("#FFFFFF", (255, 255, 255, 255)),
        ("#FF000080", (255, 0, 0, 128)),
        ("transparent", (0, 0, 0, 0)),
        ("red", (255, 0, 0, 255)),
        ((1, 2, 3), (1, 2, 3, 255)),
        ([1, 2, 3, 4], (1, 2, 3, 4)),
    ])
    def test_valid_colors(self, color, expected):
        assert parse_color(color) == expected

    @pytest.mark.parametrize("color", ["not-a-color", (1, 2), (0, 0, 300)])
    def test_invalid_colors(self, color):
        with pytest.raises(ValueError):
            parse_color(color)


class TestBoundingBox:
    """Test foreground bounding boxes."""

    def test_exclusive_max_edges(self, square_mask):
        box = find_bounding_box(square_mask)

        assert box.as_tuple() == (16, 16, 48, 48)
        assert (box.width, box.height) == (32, 32)

    def test_single_pixel(self):
        array = np.zeros((10, 10), dtype=bool)
        array[3, 7] = True

        assert find_bounding_box(Mask.from_binary(array)).as_tuple() == (7, 3, 8, 4)

    def test_empty_mask_warns_and_covers_image(self, empty_mask):
        with pytest.warns(DegenerateMaskWarning):
            box = bounding_box(empty_mask)

        assert box.as_tuple() == (0, 0, 64, 64)


class TestAutoCrop:
    """Test padded auto-crop."""

    def test_padding_is_a_fraction_of_the_box(self):
        array = np.zeros((100, 100), dtype=bool)
        array[20:60, 30:50] = True
        image = Image.new("RGB", (100, 100), "white")

        cropped = auto_crop(image, Mask.from_binary(array), padding=0.1)

        assert crop_region(Mask.from_binary(array), 0.1).as_tuple() == (28, 16, 52, 64)
        assert cropped.size == (24, 48)

    def test_padding_is_clamped_to_image(self, square_mask):
        region = crop_region(square_mask, padding=1.0)
        assert region.as_tuple() == (0, 0, 64, 64)

    def test_zero_padding_is_tight(self, product_image, square_mask):
        cropped = auto_crop(product_image, square_mask, padding=0.0)

        assert cropped.size == (32, 32)
        assert np.array(cropped)[0, 0].tolist() == [255, 0, 0]

    def test_negative_padding_rejected(self, product_image, square_mask):
        with pytest.raises(ValueError):
            auto_crop(product_image, square_mask, padding=-0.1)

    def test_empty_mask_returns_original(self, product_image, empty_mask):
        with pytest.warns(DegenerateMaskWarning):
            result = auto_crop(product_image, empty_mask)

        assert result is product_image

    def test_mismatched_mask_rejected(self, square_mask):
        with pytest.raises(ValueError, match="does not match"):
            auto_crop(Image.new("RGB", (10, 10)), square_mask)


class TestRemoveBackground:
    """Test background removal."""

    def test_transparent_cutout(self, product_image, square_mask):
        result = remove_background(product_image, square_mask, background_color="transparent")
        pixels = np.array(result)

        assert result.mode == "RGBA"
        assert result.size == product_image.size
        assert pixels[32, 32].tolist() == [255, 0, 0, 255]
        assert pixels[0, 0].tolist() == [0, 0, 0, 0]

    def test_flatten_on_color(self, product_image, square_mask):
        result = remove_background(product_image, square_mask, background_color="#0000FF")
        pixels = np.array(result)

        assert result.mode == "RGB"
        assert pixels[32, 32].tolist() == [255, 0, 0]
        assert pixels[0, 0].tolist() == [0, 0, 255]

    @pytest.mark.parametrize("background_color", ["#FFFFFF", "#00FF0080", "transparent"])
    def test_reapplying_leaves_foreground_untouched(self, product_image, square_mask, background_color):
        once = remove_background(product_image, square_mask, background_color)
        twice = remove_background(once, square_mask, background_color)

        np.testing.assert_array_equal(np.array(once), np.array(twice))
        assert np.array(once)[32, 32, :3].tolist() == [255, 0, 0]

    def test_transparent_cutout_is_idempotent(self, product_image, square_mask):
        once = remove_background(product_image, square_mask, background_color="transparent")
        twice = remove_background(once, square_mask, background_color="transparent")

        np.testing.assert_array_equal(np.array(once), np.array(twice))

    def test_input_is_not_modified(self, product_image, square_mask):
        before = np.array(product_image).copy()
        remove_background(product_image, square_mask)

        np.testing.assert_array_equal(np.array(product_image), before)

    def test_soft_mask_gives_partial_alpha(self, product_image):
        mask = Mask(np.full((64, 64), 0.5), ModelKind.BODY)
        result = remove_background(product_image, mask, background_color="transparent")

        assert np.array(result)[0, 0, 3] == 128


class TestBackgroundSpecs:
    """Test background spec construction and serialization."""

    def test_from_dict_fills_defaults(self):
        spec = background_from_dict({"kind": "gradient", "colors": ["#000000", "#FFFFFF"]})

        assert isinstance(spec, GradientBackground)
        assert spec.colors == ("#000000", "#FFFFFF")
        assert spec.direction == "to bottom right"

    def test_missing_kind_is_color(self):
        assert isinstance(background_from_dict({"color": "#123456"}), ColorBackground)

    @pytest.mark.parametrize("data", [
        {"kind": "pattern"},
        {"kind": "color", "radius": 3},
        {"kind": "gradient", "colors": []},
        {"kind": "gradient", "direction": "sideways"},
        {"kind": "image", "source": "x.png", "opacity": 2},
        {"kind": "image", "source": "x.png", "anchor": [0.5]},
        {"kind": "image", "source": "x.png", "anchor": [0.1, 0.2, 0.3]},
        {"kind": "image", "source": "x.png", "anchor": 0.5},
        {"kind": "blur", "radius": -1},
    ])
    def test_invalid_specs(self, data):
        with pytest.raises(ValueError):
            background_from_dict(data)

    def test_to_dict_round_trip(self):
        spec = ImageBackground("backgrounds/beach.jpg", scale=1.5, anchor=(0.0, 1.0), opacity=0.5)
        assert background_from_dict(background_to_dict(spec)) == spec

    def test_to_dict_drops_binary_sources(self):
        spec = ImageBackground(b"\x89PNG")
        assert background_to_dict(spec)["source"] is None

    def test_presets(self):
        presets = background_presets()
        ids = [p["id"] for p in presets]

        assert ids == ["white", "gradient-blue", "outdoor", "blur"]
        assert {p["background"].kind for p in presets} == {"color", "gradient", "image", "blur"}


class TestRenderBackground:
    """Test background rendering."""

    def test_color(self):
        canvas = render_background(ColorBackground("#FF000080"), (4, 3))

        assert canvas.size == (4, 3)
        assert np.array(canvas)[1, 1].tolist() == [255, 0, 0, 128]

    def test_vertical_gradient_endpoints(self):
        canvas = np.array(render_background(GradientBackground(("#000000", "#FFFFFF"), "to bottom"), (3, 11)))

        assert canvas[0, :, 0].tolist() == [0, 0, 0]
        assert canvas[5, :, 0].tolist() == [128, 128, 128]
        assert canvas[10, :, 0].tolist() == [255, 255, 255]

    def test_horizontal_gradient_is_constant_per_column(self):
        canvas = np.array(render_background(GradientBackground(("#000000", "#FFFFFF"), "to right"), (5, 4)))

        assert (canvas[:, 0, 0] == 0).all()
        assert (canvas[:, -1, 0] == 255).all()

    def test_diagonal_gradient_corners(self):
        canvas = np.array(render_background(GradientBackground(("#000000", "#FFFFFF"), "to bottom left"), (5, 5)))

        assert canvas[0, -1, 0] == 0
        assert canvas[-1, 0, 0] == 255

    def test_three_stop_gradient(self):
        spec = GradientBackground(("#FF0000", "#00FF00", "#0000FF"), "to right")
        canvas = np.array(render_background(spec, (5, 1)))

        assert canvas[0, 2, :3].tolist() == [0, 255, 0]

    def test_single_stop_is_solid(self):
        canvas = np.array(render_background(GradientBackground(("#336699",)), (4, 4)))
        assert (canvas[..., 2] == 0x99).all()

    def test_image_covers_canvas(self):
        source = Image.new("RGB", (10, 20), "blue")
        canvas = render_background(ImageBackground("unused"), (40, 30), source)

        assert canvas.size == (40, 30)
        assert np.array(canvas)[15, 20].tolist() == [0, 0, 255, 255]

    def test_image_opacity(self):
        source = Image.new("RGB", (8, 8), "blue")
        canvas = render_background(ImageBackground("unused", opacity=0.5), (8, 8), source)

        assert np.array(canvas)[4, 4, 3] == 128

    def test_image_anchor_picks_edge(self):
        source = Image.new("RGB", (20, 10), "white")
        source.paste((255, 0, 0), (0, 0, 10, 10))
        left = render_background(ImageBackground("unused", anchor=(0.0, 0.5)), (10, 10), source)
        right = render_background(ImageBackground("unused", anchor=(1.0, 0.5)), (10, 10), source)

        assert np.array(left)[5, 5, :3].tolist() == [255, 0, 0]
        assert np.array(right)[5, 5, :3].tolist() == [255, 255, 255]

    def test_blur_of_uniform_image_is_uniform(self):
        source = Image.new("RGB", (16, 16), (10, 200, 30))
        canvas = np.array(render_background(BlurBackground(radius=4), (16, 16), source))

        assert canvas[8, 8].tolist() == [10, 200, 30, 255]

    def test_blur_zero_opacity_keeps_sharp_image(self, product_image):
        canvas = np.array(render_background(BlurBackground(radius=8, opacity=0.0), product_image.size, product_image))
        assert canvas[16, 16].tolist() == [255, 0, 0, 255]

    @pytest.mark.parametrize("spec", [ImageBackground("x.png"), BlurBackground()])
    def test_missing_auxiliary_image(self, spec):
        with pytest.raises(ValueError):
            render_background(spec, (4, 4))


class TestReplaceBackground:
    """Test compositing the cutout over a new background."""

    def test_color_background(self, product_image, square_mask):
        result = replace_background(product_image, square_mask, ColorBackground("#00FF00"))
        pixels = np.array(result)

        assert result.size == product_image.size
        assert pixels[32, 32].tolist() == [255, 0, 0, 255]
        assert pixels[0, 0].tolist() == [0, 255, 0, 255]

    def test_blur_defaults_to_the_source(self, product_image, square_mask):
        result = replace_background(product_image, square_mask, BlurBackground(radius=2))
        pixels = np.array(result)

        assert pixels[32, 32].tolist() == [255, 0, 0, 255]
        assert pixels[0, 0].tolist() == [255, 255, 255, 255]

    def test_image_background(self, product_image, square_mask):
        backdrop = Image.new("RGB", (128, 128), "blue")
        result = replace_background(product_image, square_mask, ImageBackground("unused"), backdrop)

        assert np.array(result)[0, 0].tolist() == [0, 0, 255, 255]

    def test_empty_mask_shows_only_background(self, product_image, empty_mask):
        result = replace_background(product_image, empty_mask, ColorBackground("#00FF00"))
        assert (np.array(result)[..., 1] == 255).all()
