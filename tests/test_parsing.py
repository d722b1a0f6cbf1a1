from newsrss.models import Language
from newsrss.processing.parsing import SummaryParser, parse_summary_response


def test_tagged_fields_extracted() -> None:
    raw = (
        "SUMMARY: Ngân hàng Nhà nước giữ nguyên lãi suất điều hành trong quý này.\n"
        "KEYWORDS: lãi suất, ngân hàng, chính sách tiền tệ, lạm phát, tỷ giá"
    )
    result = SummaryParser().parse(raw, "Lãi suất", Language.VI)

    assert result.summary == "Ngân hàng Nhà nước giữ nguyên lãi suất điều hành trong quý này."
    assert result.keywords == ("lãi suất", "ngân hàng", "chính sách tiền tệ", "lạm phát", "tỷ giá")


def test_tagged_fields_with_markdown_and_brackets() -> None:
    raw = (
        '**SUMMARY:** "The central bank held rates steady and signalled patience on cuts."\n\n'
        "**KEYWORDS:** [rates], [central bank], [inflation]"
    )
    result = SummaryParser().parse(raw, "Rates", Language.EN)

    assert result.summary == "The central bank held rates steady and signalled patience on cuts."
    assert result.keywords == ("rates", "central bank", "inflation")


def test_multiline_summary_stops_at_keywords_label() -> None:
    raw = "SUMMARY: First sentence of the summary.\nSecond sentence continues here.\nKEYWORDS: a1, b2"
    result = SummaryParser().parse(raw, "T", Language.EN)

    assert result.summary == "First sentence of the summary. Second sentence continues here."
    assert "KEYWORDS" not in result.summary


def test_vietnamese_line_scan_when_labels_missing() -> None:
    raw = (
        "Here is the answer\n"
        "Giá xăng dầu trong nước được điều chỉnh giảm từ 15 giờ chiều nay theo quyết định của liên bộ.\n"
        "xăng dầu, giá cả, năng lượng"
    )
    result = SummaryParser().parse(raw, "Giá xăng", Language.VI)

    assert result.summary.startswith("Giá xăng dầu trong nước")
    assert result.keywords == ("xăng dầu", "giá cả", "năng lượng")


def test_english_line_scan_skips_non_ascii_lines() -> None:
    raw = (
        "Tóm tắt bằng tiếng Việt không phải là thứ chúng ta cần ở đây nhé.\n"
        "Apple reported record quarterly revenue driven by strong iPhone demand in Asia.\n"
    )
    result = SummaryParser().parse(raw, "Apple earnings", Language.EN)

    assert result.summary.startswith("Apple reported record quarterly revenue")


def test_empty_response_yields_synthetic_summary_and_placeholders() -> None:
    result = parse_summary_response("", "T", Language.VI)

    assert '"T"' in result.summary
    assert result.summary.startswith("Bài báo")
    assert result.keywords == ("Tin tức", "Thông tin", "Báo chí")


def test_english_synthetic_summary_and_placeholders() -> None:
    result = parse_summary_response(None, "T", Language.EN)

    assert '"T"' in result.summary
    assert result.keywords == ("News", "Information", "Press")


def test_keywords_from_capitalized_title_words() -> None:
    result = SummaryParser().parse("ok", "Vingroup Khởi Công Nhà Máy Mới ở Hải Phòng", Language.VI)

    assert "Vingroup" in result.keywords
    assert "Phòng" in result.keywords
    assert all(len(k) > 3 for k in result.keywords)


def test_comma_line_requires_two_plausible_tokens() -> None:
    raw = "A, this token is far too long to be a keyword at all\nEconomy, Trade, Tariffs, Growth, Jobs, Markets"
    result = SummaryParser().parse(raw, "t", Language.EN)

    assert result.keywords == ("Economy", "Trade", "Tariffs", "Growth", "Jobs")


def test_keywords_capped_and_deduplicated() -> None:
    raw = "SUMMARY: A sufficiently long summary sentence for the test.\nKEYWORDS: " + ", ".join(
        ["a1", "A1", "b2", "c3", "d4", "e5", "f6", "g7", "h8", "i9", "j10"]
    )
    result = SummaryParser().parse(raw, "t", Language.EN)

    assert len(result.keywords) == 8
    assert result.keywords[0] == "a1"
    assert "A1" not in result.keywords


def test_short_tagged_summary_replaced_by_synthetic() -> None:
    result = SummaryParser().parse("SUMMARY: ok\nKEYWORDS: x1, y2", "Tiêu đề", Language.VI)

    assert "Tiêu đề" in result.summary
    assert result.keywords == ("x1", "y2")
