"""Unit test fixtures: no real exiftool process is ever started here."""

from unittest.mock import patch

import pytest


@pytest.fixture
def mock_exiftool():
    """The running ExifToolHelper that `et.helper()` hands out, as a MagicMock.

    Tests set `get_metadata.return_value` (a one-element list, like PyExifTool) or `side_effect`.
    """
    with patch("exiftool.ExifToolHelper") as helper_class:
        yield helper_class.return_value.__enter__.return_value
