from datetime import date

from courier.models.document_sequence import DocumentClass
from courier.services.document_sequence_service import (
    DocumentSequenceService,
    format_identifier,
    parse_invoice_suffix,
)

TODAY = date(2026, 10, 19)


def test_identifier_formats():
    assert format_identifier(DocumentClass.BOOKING, 1, TODAY) == "AWB260000001"
    assert format_identifier(DocumentClass.INVOICE, 42, TODAY) == "INV000042"
    assert format_identifier(DocumentClass.MANIFEST, 1, TODAY) == "MAN202610190001"
    assert format_identifier(DocumentClass.DISPATCH, 12, TODAY) == "DSP202610190012"
    assert format_identifier(DocumentClass.EXCEPTION, 7, TODAY) == "EXC000007"
    assert format_identifier(DocumentClass.TICKET, 7, TODAY) == "TKT-000007"
    assert format_identifier(DocumentClass.TRANSACTION, 7, TODAY) == "TXN00000007"


def test_numbers_wider_than_padding_keep_all_digits():
    assert format_identifier(DocumentClass.INVOICE, 1234567, TODAY) == "INV1234567"


def test_parse_invoice_suffix():
    assert parse_invoice_suffix("INV000123") == 123
    assert parse_invoice_suffix("INV-2026-1") == 0
    assert parse_invoice_suffix(None) == 0


async def test_identifiers_are_consecutive(db):
    service = DocumentSequenceService(db)

    first = await service.next_identifier(DocumentClass.INVOICE)
    second = await service.next_identifier(DocumentClass.INVOICE)
    await db.commit()

    assert first == "INV000001"
    assert second == "INV000002"


async def test_preview_does_not_consume(db):
    service = DocumentSequenceService(db)

    assert await service.preview_identifier(DocumentClass.TICKET) == "TKT-000001"
    assert await service.preview_identifier(DocumentClass.TICKET) == "TKT-000001"
    assert await service.next_identifier(DocumentClass.TICKET) == "TKT-000001"
    assert await service.preview_identifier(DocumentClass.TICKET) == "TKT-000002"


async def test_manifest_numbering_restarts_each_day(db):
    service = DocumentSequenceService(db)

    assert await service.next_identifier(DocumentClass.MANIFEST, on=date(2026, 10, 19)) == "MAN202610190001"
    assert await service.next_identifier(DocumentClass.MANIFEST, on=date(2026, 10, 19)) == "MAN202610190002"
    assert await service.next_identifier(DocumentClass.MANIFEST, on=date(2026, 10, 20)) == "MAN202610200001"


async def test_classes_have_independent_counters(db):
    service = DocumentSequenceService(db)

    await service.next_identifier(DocumentClass.EXCEPTION)
    await service.next_identifier(DocumentClass.EXCEPTION)

    assert await service.next_identifier(DocumentClass.TRANSACTION) == "TXN00000001"
