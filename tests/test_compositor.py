import numpy as np
import pytest
from PIL import Image, ImageChops

from cargoqr.compositor import compose, compute_overlay_geometry
from cargoqr.config import ArtifactSettings
from cargoqr.errors import PhotoUnavailable, RenderFailure
from cargoqr.payload import serialize
from cargoqr.renderer import QRCodeRenderer

from conftest import make_photo

PADDING = ArtifactSettings().padding


@pytest.fixture
def code(pallet):
    return QRCodeRenderer().render(serialize(pallet), 200)


def test_geometry_for_landscape_photo():
    geo = compute_overlay_geometry(1000, 800)
    assert geo.code_size == 200
    assert (geo.x, geo.y) == (1000 - 200 - PADDING, 800 - 200 - PADDING)
    assert geo.backing == (770, 570, 990, 790)
    assert geo.label_anchor == (980, 565)
    assert geo.font_size == 30


@pytest.mark.parametrize(
    "width, height",
    [(1000, 800), (800, 1000), (4000, 100), (100, 4000), (641, 479), (3024, 4032), (90, 90), (27, 27)],
)
def test_overlay_bounded_by_smaller_dimension(width, height):
    geo = compute_overlay_geometry(width, height)
    assert geo.code_size <= 0.25 * min(width, height)
    assert geo.code_size <= 0.25 * width and geo.code_size <= 0.25 * height
    assert geo.bottom_right == (width - PADDING, height - PADDING)


@pytest.mark.parametrize("width, height", [(1000, 800), (4000, 100), (100, 4000), (641, 479), (26, 26), (30, 400)])
def test_overlay_corner_inside_canvas(width, height):
    geo = compute_overlay_geometry(width, height)
    right, bottom = geo.bottom_right
    assert 0 <= right <= width
    assert 0 <= bottom <= height


def test_font_size_has_a_floor():
    assert compute_overlay_geometry(200, 200).font_size == 16
    assert compute_overlay_geometry(2000, 1500).font_size == 60


@pytest.mark.parametrize("width, height", [(0, 100), (100, 0), (3, 3), (7, 7), (16, 16), (20, 100), (100, 20)])
def test_geometry_rejects_unusable_canvas(width, height):
    with pytest.raises(PhotoUnavailable):
        compute_overlay_geometry(width, height)


def test_output_keeps_photo_dimensions(photo, code):
    out = compose(photo, code, "ID: X1")
    assert out.size == photo.size
    assert out.mode == "RGB"


def test_compose_is_pixel_identical_on_repeat(photo, code):
    first = compose(photo, code, "ID: X1")
    second = compose(photo, code, "ID: X1")
    assert first.tobytes() == second.tobytes()


def test_compose_leaves_inputs_untouched(photo, code):
    before_photo, before_code = photo.tobytes(), code.tobytes()
    compose(photo, code, "ID: X1")
    assert photo.tobytes() == before_photo
    assert code.tobytes() == before_code


def test_code_is_blitted_at_overlay_position(code):
    photo = Image.new("RGB", (1000, 800), (0, 0, 0))
    out = np.array(compose(photo, code, ""))
    geo = compute_overlay_geometry(1000, 800)
    region = out[geo.y:geo.y + geo.code_size, geo.x:geo.x + geo.code_size]
    expected = np.array(code.resize((geo.code_size, geo.code_size), Image.NEAREST))
    assert np.array_equal(region, expected)


def test_backing_panel_lightens_the_photo(code):
    photo = Image.new("RGB", (1000, 800), (0, 0, 0))
    out = compose(photo, code, "")
    geo = compute_overlay_geometry(1000, 800)
    x0, y0, x1, y1 = geo.backing
    # inside the inset ring, outside the code
    r, g, b = out.getpixel((x0 + 2, y0 + 2))
    assert abs(r - 204) <= 1 and r == g == b
    assert out.getpixel((x1 - 1, y1 - 1))[0] > 150
    # just outside the panel the photo is untouched
    assert out.getpixel((x0 - 1, y0 - 1)) == (0, 0, 0)
    assert out.getpixel((x1, y1)) == (0, 0, 0)
    assert out.getpixel((0, 0)) == (0, 0, 0)


def test_label_is_drawn_right_aligned_above_panel(code):
    photo = Image.new("RGB", (1000, 800), (128, 128, 128))
    plain = compose(photo, code, "")
    labelled = compose(photo, code, "ID: X1")
    bbox = ImageChops.difference(plain, labelled).getbbox()
    assert bbox is not None

    geo = compute_overlay_geometry(1000, 800)
    left, top, right, bottom = bbox
    assert bottom <= geo.backing[1]
    assert right <= 1000 - PADDING + 2
    assert right >= 1000 - PADDING - 10
    assert top >= geo.backing[1] - 5 - 2 * geo.font_size


def test_non_square_code_is_refused(photo):
    with pytest.raises(RenderFailure):
        compose(photo, Image.new("RGB", (200, 180), "white"), "ID: X1")


def test_missing_photo_is_refused(code):
    with pytest.raises(PhotoUnavailable):
        compose(None, code, "ID: X1")


@pytest.mark.parametrize("size", [(4000, 120), (120, 4000)])
def test_extreme_aspect_ratios(size, code):
    photo = make_photo(*size)
    out = compose(photo, code, "ID: X1")
    assert out.size == size
    geo = compute_overlay_geometry(*size)
    assert geo.code_size == 30
