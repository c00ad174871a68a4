from .client import (
    ArchiveClient,
    files_xml_url,
    item_image_url,
    normalize_identifier,
    parse_files_xml,
)

__all__ = [
    "ArchiveClient",
    "files_xml_url",
    "item_image_url",
    "normalize_identifier",
    "parse_files_xml",
]
