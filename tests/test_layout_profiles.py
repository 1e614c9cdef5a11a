import pytest

from artiscan.errors import UnsupportedResolution
from artiscan.layout.profiles import (
    FieldId,
    Rect,
    normalized_rect_to_window,
    profile_for,
    rectangle_for,
    supported_resolutions,
)


def test_every_field_has_positive_size_inside_the_window():
    for resolution in supported_resolutions():
        width, height = resolution
        profile = profile_for(resolution)
        for field in FieldId:
            rect = profile.rect(field)
            assert rect.width > 0 and rect.height > 0, (resolution, field)
            assert rect.x >= 0 and rect.y >= 0
            assert rect.x + rect.width <= width, (resolution, field)
            assert rect.y + rect.height <= height, (resolution, field)


def test_panel_fields_sit_inside_the_panel():
    profile = profile_for((1920, 1080))
    panel = profile.panel
    for field in FieldId:
        if field is FieldId.COUNT:
            continue
        rect = profile.rect(field)
        assert panel.x <= rect.x and rect.x + rect.width <= panel.x + panel.width, field
        assert panel.y <= rect.y and rect.y + rect.height <= panel.y + panel.height, field


def test_grid_does_not_overlap_panel():
    for resolution in supported_resolutions():
        profile = profile_for(resolution)
        region = profile.grid.region
        assert region.x + region.width <= profile.panel.x


def test_unsupported_resolution_is_rejected():
    with pytest.raises(UnsupportedResolution) as excinfo:
        profile_for((1000, 700))
    assert excinfo.value.resolution == (1000, 700)

    with pytest.raises(UnsupportedResolution):
        rectangle_for((800, 600), FieldId.NAME)


def test_lookup_is_stable():
    assert rectangle_for((1920, 1080), FieldId.NAME) == rectangle_for((1920, 1080), FieldId.NAME)
    assert profile_for((2560, 1440)) is profile_for((2560, 1440))


def test_profiles_scale_with_resolution():
    small = rectangle_for((1280, 720), FieldId.SUB_STAT_1)
    large = rectangle_for((2560, 1440), FieldId.SUB_STAT_1)
    assert large.x == pytest.approx(small.x * 2, abs=2)
    assert large.width == pytest.approx(small.width * 2, abs=2)


def test_profile_fields_are_read_only():
    profile = profile_for((1920, 1080))
    with pytest.raises(TypeError):
        profile.fields[FieldId.NAME] = Rect(0, 0, 1, 1)


def test_normalized_rect_never_collapses_to_zero():
    assert normalized_rect_to_window((0.5, 0.5, 0.0001, 0.0001), 100, 100) == Rect(50, 50, 1, 1)


def test_rect_helpers():
    rect = Rect(10, 20, 30, 40)
    assert rect.center.x == 25 and rect.center.y == 40
    assert rect.offset(-10, -20) == Rect(0, 0, 30, 40)
    assert rect.as_tuple() == (10, 20, 30, 40)
