from __future__ import annotations

from enum import Enum

from ..excel.cells import date, number, optional_text, text
from ..excel.columns import RawSheetRow
from ..models.inventory import LicenseEntry, SourceInfo
from .base import SheetParser

"""Parsers for vCenter-level sheets: vLicense, vSource."""

__all__ = [
    "VLicenseColumn",
    "VLicenseParser",
    "VSourceColumn",
    "VSourceParser",
    "mask_license_key",
    "LICENSE_VISIBLE_CHARS",
]

LICENSE_VISIBLE_CHARS = 5


def mask_license_key(key: str) -> str:
    """Redact a license key keeping only its last five characters.

    Every other character except the ``-`` group separators becomes ``*``, so
    ``AAAAA-BBBBB-CCCCC-DDDDD-EEEEE`` turns into
    ``*****-*****-*****-*****-EEEEE``. Keys of five characters or fewer are
    returned unchanged. Masking an already masked key is a no-op.
    """
    if len(key) <= LICENSE_VISIBLE_CHARS:
        return key
    head = key[:-LICENSE_VISIBLE_CHARS]
    masked = "".join("-" if ch == "-" else "*" for ch in head)
    return masked + key[-LICENSE_VISIBLE_CHARS:]


class VLicenseColumn(Enum):
    NAME = ("Name", "License Name")
    KEY = ("Key", "License Key")
    TOTAL = ("Total", "Total Licenses")
    USED = ("Used", "Used Licenses")
    EXPIRATION = ("Expiration Date", "Expiration")
    PRODUCT_NAME = ("Product Name", "Product")
    PRODUCT_VERSION = ("Product Version", "Version")


class VLicenseParser(SheetParser):
    sheet_name = "vLicense"
    sheet_aliases = ("tabvLicense",)
    columns = VLicenseColumn
    key = VLicenseColumn.NAME
    ignored_headers = frozenset({"Cost Unit", "Edition", "Labels", "VI SDK Server", "VI SDK UUID"})

    def build(self, row: RawSheetRow) -> LicenseEntry:
        c = VLicenseColumn
        return LicenseEntry(
            name=text(row, c.NAME),
            # raw key is never kept past this point
            license_key=mask_license_key(text(row, c.KEY)),
            total=number(row, c.TOTAL),
            used=number(row, c.USED),
            expiration_date=date(row, c.EXPIRATION),
            product_name=text(row, c.PRODUCT_NAME),
            product_version=text(row, c.PRODUCT_VERSION),
        )


class VSourceColumn(Enum):
    SERVER = ("Server", "VI SDK Server", "vCenter Server", "Name")
    IP_ADDRESS = ("IP Address", "Address")
    VERSION = ("Version", "vCenter Version", "Product version")
    BUILD = ("Build", "Build Number")
    OS_TYPE = ("OS type", "OS Type", "Operating System")
    API_VERSION = ("API version", "API Version", "ApiVersion")
    INSTANCE_UUID = ("Instance UUID", "Instance Uuid", "VI SDK UUID")
    FULL_NAME = ("Fullname", "Full Name", "Product Name", "Product name")
    SERVER_TIME = ("Server Time", "Server time")


class VSourceParser(SheetParser):
    sheet_name = "vSource"
    sheet_aliases = ("tabvSource",)
    columns = VSourceColumn
    key = VSourceColumn.SERVER

    def build(self, row: RawSheetRow) -> SourceInfo:
        c = VSourceColumn
        return SourceInfo(
            server=text(row, c.SERVER),
            ip_address=optional_text(row, c.IP_ADDRESS),
            version=optional_text(row, c.VERSION),
            build=optional_text(row, c.BUILD),
            os_type=optional_text(row, c.OS_TYPE),
            api_version=optional_text(row, c.API_VERSION),
            instance_uuid=optional_text(row, c.INSTANCE_UUID),
            full_name=optional_text(row, c.FULL_NAME),
            server_time=date(row, c.SERVER_TIME),
        )
