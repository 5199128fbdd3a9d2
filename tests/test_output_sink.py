from directory_crawler.models import ExtractedRecord
from directory_crawler.output_sink import CsvOutputSink


def test_header_written_once(tmp_path):
    path = tmp_path / "out" / "output.csv"
    sink = CsvOutputSink(str(path))

    sink.ensure_header_exists()
    sink.ensure_header_exists()

    assert path.read_text(encoding="utf-8") == "sourceurl,company_name,company_homepage_url\n"


def test_existing_rows_are_not_truncated(tmp_path):
    path = tmp_path / "output.csv"
    path.write_text('sourceurl,company_name,company_homepage_url\n"t","kept",""\n', encoding="utf-8")
    sink = CsvOutputSink(str(path))

    sink.ensure_header_exists()
    sink.append_record(ExtractedRecord("t", "new", "https://new.example"))

    assert sink.read_names() == ["kept", "new"]


def test_fields_are_quoted(tmp_path):
    path = tmp_path / "output.csv"
    sink = CsvOutputSink(str(path))
    sink.ensure_header_exists()

    sink.append_record(ExtractedRecord("https://directory.test/companies/a", 'Acme, "Global" Inc.', ""))

    lines = path.read_text(encoding="utf-8").splitlines()
    assert lines[1] == '"https://directory.test/companies/a","Acme, ""Global"" Inc.",""'
    assert sink.read_names() == ['Acme, "Global" Inc.']
