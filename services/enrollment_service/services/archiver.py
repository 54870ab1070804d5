"""Saves the signed contract PDF next to the club's other enrollment paperwork."""

import re
from datetime import date
from pathlib import Path
from typing import Optional

from libs.common.config import get_settings
from libs.common.datetime_utils import club_today, to_mmddyyyy
from libs.common.logging import get_logger

logger = get_logger(__name__)

PDF_MAGIC = b"%PDF"

_UNSAFE = re.compile(r"[\\/:*?\"<>|\x00-\x1f]")


def _clean(part: str) -> str:
    return _UNSAFE.sub("", part).strip()


def contract_filename(
    cust_code: str, first_name: str, last_name: str, on: Optional[date] = None
) -> str:
    """``"10-17-2026 123456 Jane Doe ONLINE.pdf"``"""
    stamp = to_mmddyyyy(on or club_today(), sep="-")
    return f"{stamp} {_clean(cust_code)} {_clean(first_name)} {_clean(last_name)} ONLINE.pdf"


class ContractArchiver:
    def __init__(self, directory: Optional[Path] = None):
        self.directory = directory

    def _target_dir(self) -> Path:
        return self.directory or Path(get_settings().CONTRACTS_DIR)

    def save(
        self,
        pdf: Optional[bytes],
        cust_code: str,
        first_name: str,
        last_name: str,
    ) -> Optional[str]:
        """Write the contract. Returns the file name, or None when skipped or failed."""
        if not pdf:
            logger.info(
                "No contract PDF provided, skipping archive",
                extra={"extra_fields": {"cust_code": cust_code}},
            )
            return None

        if not pdf.startswith(PDF_MAGIC):
            logger.warning(
                "Contract data does not look like a PDF",
                extra={"extra_fields": {"cust_code": cust_code, "size": len(pdf)}},
            )

        filename = contract_filename(cust_code, first_name, last_name)
        try:
            target = self._target_dir()
            target.mkdir(parents=True, exist_ok=True)
            (target / filename).write_bytes(pdf)
        except OSError as exc:
            logger.error(
                "Error saving contract PDF",
                extra={"extra_fields": {"cust_code": cust_code, "error": str(exc)}},
            )
            return None

        logger.info(
            "Contract PDF saved",
            extra={"extra_fields": {"filename": filename, "size": len(pdf)}},
        )
        return filename
