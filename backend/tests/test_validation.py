"""Tests for the validation layer."""

import math

import pytest
from PIL import Image

from app import config as app_config
from app.conversion.validation import (
    coerce_number,
    coerce_number_list,
    probe_metadata,
    validate_compression_percent,
    validate_dimensions,
    validate_file_type,
    validate_format,
)
from app.errors import AppError, ErrorKind


def assert_kind(kind, func, *args):
    with pytest.raises(AppError) as excinfo:
        func(*args)
    assert excinfo.value.kind is kind
    return excinfo.value


class TestValidateFormat:
    def test_normalizes_case_and_whitespace(self):
        assert validate_format("  WEBP ") == "webp"
        assert validate_format("jpg") == "jpg"

    @pytest.mark.parametrize("raw", [None, "", "   ", 5])
    def test_missing(self, raw):
        assert_kind(ErrorKind.FORMAT_REQUIRED, validate_format, raw)

    @pytest.mark.parametrize("raw", ["gif", "bmp", "jpeg2000"])
    def test_unsupported(self, raw):
        err = assert_kind(ErrorKind.INVALID_FORMAT, validate_format, raw)
        assert "webp" in err.message


class TestValidateDimensions:
    def test_accepts_single_axis(self):
        validate_dimensions(100, None)
        validate_dimensions(None, 100)
        validate_dimensions(app_config.MAX_OUTPUT_DIMENSION, app_config.MAX_OUTPUT_DIMENSION)

    def test_both_absent(self):
        assert_kind(ErrorKind.DIMENSION_REQUIRED, validate_dimensions, None, None)

    @pytest.mark.parametrize("width", [0, -5, 10.5, math.nan])
    def test_invalid_width(self, width):
        assert_kind(ErrorKind.INVALID_WIDTH, validate_dimensions, width, None)

    def test_invalid_height(self):
        assert_kind(ErrorKind.INVALID_HEIGHT, validate_dimensions, 100, 0)

    def test_output_ceiling(self):
        too_big = app_config.MAX_OUTPUT_DIMENSION + 1
        assert_kind(ErrorKind.DIMENSION_TOO_LARGE, validate_dimensions, too_big, None)
        assert_kind(ErrorKind.DIMENSION_TOO_LARGE, validate_dimensions, 10, too_big)


class TestCompressionPercent:
    @pytest.mark.parametrize("raw", [None, "", "  "])
    def test_required(self, raw):
        assert_kind(ErrorKind.PERCENT_REQUIRED, validate_compression_percent, raw)

    @pytest.mark.parametrize("raw", ["abc", "inf", "nan"])
    def test_not_a_number(self, raw):
        assert_kind(ErrorKind.INVALID_PERCENT, validate_compression_percent, raw)

    @pytest.mark.parametrize("raw", ["0", "100.5", "-3", "101"])
    def test_out_of_range(self, raw):
        assert_kind(ErrorKind.PERCENT_OUT_OF_RANGE, validate_compression_percent, raw)

    def test_rounds_half_up(self):
        assert validate_compression_percent("49.5") == 50
        assert validate_compression_percent("80") == 80
        assert validate_compression_percent(1) == 1


def test_coerce_number():
    assert coerce_number(None) is None
    assert coerce_number(" ") is None
    assert coerce_number("300") == 300
    assert isinstance(coerce_number("300.0"), int)
    assert coerce_number("2.5") == 2.5
    assert math.isnan(coerce_number("wide"))


def test_coerce_number_list_keeps_positions():
    assert coerce_number_list(["100", "", "300"]) == [100, None, 300]
    assert coerce_number_list(["100,,300"]) == [100, None, 300]
    assert coerce_number_list(None) == []


class TestFileType:
    def test_by_extension(self, stage):
        validate_file_type(stage("photo.PNG", b"x"))

    def test_by_mime_type(self, stage):
        validate_file_type(stage("upload", b"x", "image/webp"))

    def test_rejected(self, stage):
        assert_kind(ErrorKind.INVALID_FILE_TYPE, validate_file_type, stage("notes.txt", b"x", "text/plain"))


class TestProbeMetadata:
    def test_reads_header(self, stage, make_image):
        staged = stage("photo.png", make_image("PNG", (64, 48)))
        metadata = probe_metadata(staged.path, staged.original_name)
        assert (metadata.width, metadata.height, metadata.format) == (64, 48, "png")

    def test_jpeg_format_name(self, stage, make_image):
        staged = stage("photo.jpg", make_image("JPEG"))
        assert probe_metadata(staged.path, staged.original_name).format == "jpeg"

    def test_corrupt(self, stage):
        staged = stage("broken.png", b"definitely not an image")
        err = assert_kind(ErrorKind.INVALID_IMAGE, probe_metadata, staged.path, staged.original_name)
        assert "broken.png" in err.message

    def test_input_ceiling(self, stage, make_image):
        wide = app_config.MAX_INPUT_DIMENSION + 1
        staged = stage("wide.png", make_image("PNG", (wide, 1), mode="L"))
        assert_kind(ErrorKind.INPUT_DIMENSION_TOO_LARGE, probe_metadata, staged.path, staged.original_name)

    def test_decompression_bomb_counts_as_too_large(self, stage, make_image, monkeypatch):
        staged = stage("photo.png", make_image("PNG", (64, 48)))
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 100)
        assert_kind(ErrorKind.INPUT_DIMENSION_TOO_LARGE, probe_metadata, staged.path, staged.original_name)
