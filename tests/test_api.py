"""End-to-end tests for load_series.

Most tests use fake decoders and renderers; the last class runs the real
pydicom decoder and Pillow renderer on synthetic CT slices.
"""

import pytest

from dicom_series_loader import FileRegistry, RawFile, load_series, order_series, Series

from conftest import CORONAL, FakeDecoder, FakeRenderer, decode_error, make_slice


def raw(name):
    return RawFile(name, b"")


@pytest.fixture
def batch():
    results = {
        "ax0": make_slice(0, series_uid="AX"),
        "ax1": make_slice(10, series_uid="AX"),
        "ax2": make_slice(20, series_uid="AX"),
        "ff0": make_slice(0, series_uid="FF", patient_position="FFP"),
        "ff1": make_slice(5, series_uid="FF", patient_position="FFP"),
        "broken": make_slice(0, series_uid="BAD", orientation=None),
        "broken2": make_slice(3, series_uid="BAD", orientation=None),
        "corrupt": decode_error("corrupt"),
    }
    return results


class TestLoadSeries:
    """Tests for the full load, assemble, order and thumbnail pipeline."""

    def test_load_series_assembles_orders_and_thumbnails(self, batch):
        """Test grouping, ordering, failure handling and progress together."""
        files = [raw(name) for name in batch]
        reported = []

        series_list = load_series(
            files,
            reported.append,
            decoder=FakeDecoder(batch),
            renderer=FakeRenderer(),
            max_workers=1,
        )

        by_uid = {s.series_uid: s for s in series_list}
        assert set(by_uid) == {"AX", "FF", "BAD"}

        assert [s.image_position_patient[2] for s in by_uid["AX"].slices] == [20, 10, 0]
        assert [s.image_position_patient[2] for s in by_uid["FF"].slices] == [0, 5]
        assert by_uid["AX"].ordered and by_uid["FF"].ordered

        assert by_uid["BAD"].ordered is False
        assert [s.image_position_patient[2] for s in by_uid["BAD"].slices] == [0, 3]

        assert all(s.thumbnail and s.thumbnail.startswith("thumb:") for s in series_list)
        assert len(reported) == len(files)
        assert reported[-1] == 1.0

    def test_partition_holds_for_decoded_slices(self, batch):
        """Test that every decoded slice lands in exactly one series."""
        series_list = load_series(
            [raw(name) for name in batch],
            decoder=FakeDecoder(batch),
            renderer=FakeRenderer(),
        )

        assert sum(len(s.slices) for s in series_list) == len(batch) - 1

    def test_registry_is_filled_for_the_caller(self, batch):
        """Test that a caller-supplied registry receives every file."""
        registry = FileRegistry()
        files = [raw(name) for name in batch]

        load_series(files, decoder=FakeDecoder(batch), renderer=FakeRenderer(), registry=registry)

        assert len(registry) == len(files)

    def test_cover_slice_is_recorded(self):
        """Test that the removed cover slice is kept on the series."""
        results = {
            "cover": make_slice(50, series_uid="AX", orientation=CORONAL),
            "a": make_slice(0, series_uid="AX"),
            "b": make_slice(10, series_uid="AX"),
        }

        (series,) = load_series(
            [raw("cover"), raw("a"), raw("b")],
            decoder=FakeDecoder(results),
            renderer=FakeRenderer(),
            max_workers=1,
        )

        assert series.cover_slice is not None
        assert series.cover_slice.image_position_patient[2] == 50
        assert len(series.slices) == 2

    def test_later_slice_without_orientation_leaves_series_unordered(self):
        """Test that a missing orientation after the first slice fails ordering."""
        results = {
            "a": make_slice(0, series_uid="AX"),
            "b": make_slice(10, series_uid="AX"),
            "c": make_slice(20, series_uid="AX", orientation=None),
        }

        (series,) = load_series(
            [raw("a"), raw("b"), raw("c")],
            decoder=FakeDecoder(results),
            renderer=FakeRenderer(),
            max_workers=1,
        )

        assert series.ordered is False
        assert [s.image_position_patient[2] for s in series.slices] == [0, 10, 20]

    def test_render_failure_keeps_series_without_thumbnail(self):
        """Test that a failed thumbnail still yields the series."""
        class FailingRenderer(FakeRenderer):
            def encode(self, slice_):
                self.fail_for.add(slice_.file_id)
                return super().encode(slice_)

        (series,) = load_series(
            [raw("a")],
            decoder=FakeDecoder({"a": make_slice(0)}),
            renderer=FailingRenderer(),
        )

        assert series.thumbnail is None
        assert len(series.slices) == 1

    def test_unexpected_renderer_error_is_scoped_to_one_series(self):
        """Test that a renderer raising ValueError only costs that series its thumbnail."""
        results = {
            "a": make_slice(0, series_uid="A", file_id="a"),
            "b": make_slice(0, series_uid="B", file_id="b"),
        }

        class BrokenRenderer(FakeRenderer):
            def encode(self, slice_):
                if slice_.series_uid == "B":
                    raise ValueError("boom")
                return super().encode(slice_)

        series_list = load_series(
            [raw("a"), raw("b")],
            decoder=FakeDecoder(results),
            renderer=BrokenRenderer(),
        )

        by_uid = {s.series_uid: s for s in series_list}
        assert by_uid["A"].thumbnail is not None
        assert by_uid["B"].thumbnail is None
        assert len(by_uid["B"].slices) == 1

    def test_empty_batch_returns_no_series(self):
        """Test that no files means no series."""
        assert load_series([], decoder=FakeDecoder({}), renderer=FakeRenderer()) == []


class TestLoadSeriesArguments:
    """Tests for argument validation in load_series()."""

    @pytest.mark.parametrize("files", ["not-a-list", None, [b"bytes"]])
    def test_invalid_files_raise_type_error(self, files):
        """Test that anything but a sequence of RawFile is rejected."""
        with pytest.raises(TypeError):
            load_series(files, decoder=FakeDecoder({}), renderer=FakeRenderer())

    def test_non_callable_progress_raises_type_error(self):
        """Test that on_progress must be callable."""
        with pytest.raises(TypeError):
            load_series([raw("a")], on_progress=42)

    def test_invalid_worker_count_raises_value_error(self):
        """Test that max_workers must be positive."""
        with pytest.raises(ValueError):
            load_series([raw("a")], max_workers=0)


class TestOrderSeries:
    """Tests for order_series()."""

    def test_order_series_marks_invalid_geometry(self):
        """Test that a GeometryError marks the series unordered."""
        series = Series("X", "", [make_slice(0, orientation=None), make_slice(5, orientation=None)])

        order_series(series)

        assert series.ordered is False
        assert series.cover_slice is None


class TestLoadSeriesWithPydicom:
    """Tests for load_series() with the default pydicom collaborators."""

    def test_load_series_with_pydicom_defaults(self, dicom_file):
        """Test a mixed batch of real slices and one corrupt file."""
        files = [
            dicom_file(f"{z}.dcm", series_uid="1.2.840.1", position=(0, 0, z), instance_number=i)
            for i, z in enumerate((-10.0, 30.0, 10.0))
        ]
        files.append(dicom_file("other.dcm", series_uid="1.2.840.2", description="Scout"))
        files.append(RawFile("junk.dcm", b"not a dicom file"))

        series_list = load_series(files)

        by_uid = {s.series_uid: s for s in series_list}
        assert set(by_uid) == {"1.2.840.1", "1.2.840.2"}
        assert [float(s.image_position_patient[2]) for s in by_uid["1.2.840.1"].slices] == [30.0, 10.0, -10.0]
        assert by_uid["1.2.840.2"].description == "Scout"
        assert all(s.thumbnail for s in series_list)
