"""Tests for EDI file kind detection."""

from edimport.classifier import FileKind, classify, probe_kind


def test_classify_product_file(write_edi, product_line):
    path = write_edi("products.txt", [product_line()])

    assert classify(path) is FileKind.PRODUCT
    assert path.exists()


def test_classify_price_file(write_edi, price_line):
    path = write_edi("prices.txt", [price_line()])

    assert classify(path) is FileKind.PRICE


def test_classify_price_file_without_lead_time(write_edi, price_line):
    path = write_edi("prices.txt", [price_line()[:98]])

    assert classify(path) is FileKind.PRICE


def test_classify_discount_file(write_edi, discount_line):
    path = write_edi("discounts.txt", [discount_line()])

    assert classify(path) is FileKind.DISCOUNT


def test_classify_reads_first_business_line_only(write_edi, product_line, price_line):
    path = write_edi("mixed.txt", [price_line(), product_line()])

    assert classify(path) is FileKind.PRICE


def test_classify_deletes_unrecognized_file(write_edi):
    path = write_edi("junk.txt", ["nothing to see here"])

    assert classify(path) is FileKind.UNRECOGNIZED
    assert not path.exists()


def test_classify_header_only_file_is_unrecognized(write_edi):
    path = write_edi("empty.txt", [])

    assert classify(path) is FileKind.UNRECOGNIZED
    assert not path.exists()


def test_classify_non_ascii_digits_is_unrecognized(write_edi, product_line):
    path = write_edi("products.txt", [product_line(unit_weight="00²0100")])

    assert probe_kind(path) is FileKind.UNRECOGNIZED


def test_probe_kind_keeps_unrecognized_file(write_edi):
    path = write_edi("junk.txt", ["nothing to see here"])

    assert probe_kind(path) is FileKind.UNRECOGNIZED
    assert classify(path, discard_unrecognized=False) is FileKind.UNRECOGNIZED
    assert path.exists()
