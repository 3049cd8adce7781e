"""Tests for ImageRecord and result shapes."""

from datetime import datetime

from imageserver.image_record import ImageRecord, ResizedImageUrl, UploadResult


def make_record(**overrides):
    values = dict(
        id='abc',
        original_blob_key='original/abc.jpg',
        original_file_name='holiday.photo.jpg',
        content_type='image/jpeg',
        file_extension='.jpg',
        width=800,
        height=600,
        size_bytes=1234,
        uploaded_at=datetime(2024, 1, 2, 3, 4, 5),
    )
    values.update(overrides)
    return ImageRecord(**values)


class TestImageRecord:
    """Tests for ImageRecord class."""

    def test_defaults(self):
        """Test reserved fields default to uncompressed."""
        record = make_record()

        assert record.updated_at is None
        assert record.is_compressed is False
        assert record.compression_type is None

    def test_to_dict(self):
        """Test serialization renders datetimes as ISO strings."""
        data = make_record(updated_at=datetime(2024, 2, 1)).to_dict()

        assert data['id'] == 'abc'
        assert data['uploaded_at'] == '2024-01-02T03:04:05'
        assert data['updated_at'] == '2024-02-01T00:00:00'
        assert data['width'] == 800

    def test_from_dict(self):
        """Test deserialization parses ISO strings."""
        record = ImageRecord.from_dict(make_record().to_dict())

        assert record == make_record()

    def test_file_stem(self):
        """Test only the last extension is stripped."""
        assert make_record().file_stem == 'holiday.photo'
        assert make_record(original_file_name='noext').file_stem == 'noext'
        assert make_record(original_file_name='').file_stem == 'abc'


class TestResultShapes:
    """Tests for the response dataclasses."""

    def test_upload_result(self):
        """Test upload results serialize id and path."""
        assert UploadResult(id='abc', path='original/abc.png').to_dict() == {
            'id': 'abc',
            'path': 'original/abc.png',
        }

    def test_resized_image_url(self):
        """Test URL results default to no location and no error."""
        data = ResizedImageUrl(image_id='abc', height=100).to_dict()

        assert data == {'image_id': 'abc', 'height': 100, 'url': None, 'path': None, 'error': None}
