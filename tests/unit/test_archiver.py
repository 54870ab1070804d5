"""Unit tests for contract PDF archiving."""

from datetime import date

import pytest
from services.enrollment_service.services.archiver import (
    ContractArchiver,
    contract_filename,
)
from tests.factories import PDF_BYTES


@pytest.mark.unit
def test_filename_format():
    assert (
        contract_filename("654321", "Jane", "Doe", on=date(2025, 3, 7))
        == "03-07-2025 654321 Jane Doe ONLINE.pdf"
    )


@pytest.mark.unit
def test_filename_drops_path_characters():
    name = contract_filename("654321", "../Jane", "Do/e", on=date(2025, 3, 7))

    assert "/" not in name
    assert name == "03-07-2025 654321 ..Jane Doe ONLINE.pdf"


@pytest.mark.unit
def test_save_writes_bytes(tmp_path):
    archiver = ContractArchiver(tmp_path / "contracts")

    filename = archiver.save(PDF_BYTES, "654321", "Jane", "Doe")

    assert filename is not None
    assert filename.endswith(" 654321 Jane Doe ONLINE.pdf")
    assert (tmp_path / "contracts" / filename).read_bytes() == PDF_BYTES


@pytest.mark.unit
def test_missing_pdf_is_skipped(tmp_path):
    assert ContractArchiver(tmp_path).save(None, "654321", "Jane", "Doe") is None
    assert list(tmp_path.iterdir()) == []


@pytest.mark.unit
def test_non_pdf_bytes_are_still_written(tmp_path):
    filename = ContractArchiver(tmp_path).save(b"not a pdf", "1", "A", "B")

    assert (tmp_path / filename).read_bytes() == b"not a pdf"


@pytest.mark.unit
def test_write_error_returns_none(tmp_path):
    blocker = tmp_path / "contracts"
    blocker.write_text("a file where the directory should be")

    assert ContractArchiver(blocker).save(PDF_BYTES, "1", "A", "B") is None
