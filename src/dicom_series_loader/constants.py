"""Default configuration values and constants for dicom-series-loader."""

# Thumbnail defaults
DEFAULT_IMAGE_WIDTH = 128
DEFAULT_IMAGE_QUALITY = 60
DEFAULT_THUMBNAIL_FORMAT = "JPEG"

# Performance defaults
DEFAULT_MAX_WORKERS = 9

# JPEG 2000 Image Compression (Lossless Only)
JPEG2000_LOSSLESS = "1.2.840.10008.1.2.4.90"
HIGH_FIDELITY_TRANSFER_SYNTAXES = frozenset({JPEG2000_LOSSLESS})

# Patient positions whose slices are indexed from the feet
FEET_FIRST_POSITIONS = frozenset({"FFDR", "FFDL", "FFP"})
