import pytest

from errors import ValidationError
from participants import load_participants_csv, parse_participants_csv


def test_parse_basic_csv():
    result = parse_participants_csv("name,id,email\nJohn Doe,user-123,john@example.com\nJane Roe,user-124,\n")
    assert result.errors == []
    assert [(p.id, p.name, p.email) for p in result.participants] == [
        ("user-123", "John Doe", "john@example.com"),
        ("user-124", "Jane Roe", None),
    ]


def test_headers_are_case_insensitive_with_aliases():
    result = parse_participants_csv("\ufeffFull_Name,User_ID\nAna Lima,a1\n")
    assert [(p.id, p.name) for p in result.participants] == [("a1", "Ana Lima")]


def test_bad_rows_are_reported_and_skipped():
    text = "name,id,email\nJohn Doe,u1,john@example.com\n,u2,\nJane,,jane@example\n\nBo Chen,u4,\n"
    result = parse_participants_csv(text)
    assert [p.id for p in result.participants] == ["u1", "u4"]
    assert result.errors == [
        "Row 3: name is required",
        "Row 4: id is required, invalid email 'jane@example'",
    ]


def test_missing_required_column_raises():
    with pytest.raises(ValidationError) as info:
        parse_participants_csv("email\nx@example.com\n")
    assert "name (or full_name)" in str(info.value)
    assert "id (or user_id)" in str(info.value)


def test_header_only_file():
    result = parse_participants_csv("name,id\n")
    assert result.participants == []
    assert result.errors == ["CSV has no data rows."]


def test_load_from_disk(tmp_path):
    path = tmp_path / "people.csv"
    path.write_text("name,id\nJosé Núñez,u1\n", encoding="utf-8-sig")
    result = load_participants_csv(path)
    assert result.participants[0].name == "José Núñez"
