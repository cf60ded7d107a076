from unbind.io.input import (
    ImageDimensions,
    decode_bytes,
    decode_image,
    dimensions,
    encode_jpeg,
    open_image_bytes,
    strip_data_uri,
    to_data_uri,
)

__all__ = [
    "ImageDimensions",
    "decode_bytes",
    "decode_image",
    "dimensions",
    "encode_jpeg",
    "open_image_bytes",
    "strip_data_uri",
    "to_data_uri",
]
