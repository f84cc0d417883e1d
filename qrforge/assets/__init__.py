"""Asset resolution: data URIs, local uploads and remote images."""

from .resolver import (
    AssetResolver,
    AssetSource,
    AssetWarning,
    ResolvedAsset,
    decode_data_url,
    decode_image,
    encode_data_url,
    is_valid_image_url,
    read_file_as_data_url,
)

__all__ = [
    'AssetResolver',
    'AssetSource',
    'AssetWarning',
    'ResolvedAsset',
    'decode_data_url',
    'decode_image',
    'encode_data_url',
    'is_valid_image_url',
    'read_file_as_data_url',
]
