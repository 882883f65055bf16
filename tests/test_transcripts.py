from __future__ import annotations

import json
from pathlib import Path

from associate.lines import LineBuffer, split_complete_lines
from associate.transcripts import IncrementalLogReader, ItemKind, parse_envelope


def user_line(index: int) -> str:
    return json.dumps({"type": "user", "message": {"role": "user", "content": f"message {index}"}})


def write_transcript(path: Path, count: int) -> None:
    path.write_text("".join(user_line(index) + "\n" for index in range(count)), encoding="utf-8")


def texts(result) -> list[str]:
    return [item.text for item in result.items()]


def test_parse_envelope_flattens_blocks() -> None:
    raw = json.dumps(
        {
            "type": "assistant",
            "timestamp": "2026-01-02T03:04:05Z",
            "message": {
                "role": "assistant",
                "content": [
                    {"type": "text", "text": "Looking at the file"},
                    {"type": "tool_use", "name": "Read", "input": {"file_path": "/src/app.py"}},
                    {"type": "tool_result", "content": [{"type": "text", "text": "def main(): ..."}]},
                    {"type": "thinking", "thinking": "hidden"},
                ],
            },
        }
    ).encode()

    envelope = parse_envelope(raw)

    assert envelope is not None
    assert envelope.timestamp is not None and envelope.timestamp.year == 2026
    items = envelope.items()
    assert [item.kind for item in items] == [ItemKind.ASSISTANT, ItemKind.TOOL_USE, ItemKind.TOOL_RESULT]
    assert items[1].text == "Read (file_path: /src/app.py)"
    assert items[2].text == "def main(): ..."


def test_parse_envelope_keeps_unknown_fields_and_kinds() -> None:
    envelope = parse_envelope(b'{"type": "file-history-snapshot", "snapshot": {"a": 1}, "timestamp": "bad"}')

    assert envelope is not None
    assert envelope.kind == "file-history-snapshot"
    assert envelope.timestamp is None
    assert envelope.extra["snapshot"] == {"a": 1}
    assert envelope.items() == []


def test_parse_envelope_rejects_malformed_lines() -> None:
    assert parse_envelope(b"{not json") is None
    assert parse_envelope(b"[1, 2]") is None
    assert parse_envelope(b'{"no_type": true}') is None
    assert parse_envelope(b"\xff\xfe") is None


def test_split_complete_lines_leaves_partial_tail() -> None:
    lines, consumed = split_complete_lines(b"one\r\ntwo\npart")

    assert lines == [b"one", b"two"]
    assert consumed == len(b"one\r\ntwo\n")
    assert split_complete_lines(b"partial") == ([], 0)


def test_line_buffer_joins_chunks() -> None:
    buffer = LineBuffer()

    assert buffer.feed(b'{"a": ') == []
    assert buffer.feed(b'1}\n{"b"') == [b'{"a": 1}']
    assert buffer.pending_bytes == 4
    assert buffer.flush() == b'{"b"'
    assert buffer.flush() is None


def test_open_reads_only_the_tail(tmp_path: Path) -> None:
    path = tmp_path / "s1.jsonl"
    write_transcript(path, 5000)
    reader = IncrementalLogReader(tail_lines=200)

    result = reader.open("s1", path)

    assert len(result.envelopes) == 200
    assert texts(result)[0] == "message 4800"
    assert texts(result)[-1] == "message 4999"
    assert result.cursor.byte_offset == path.stat().st_size
    assert "s1" not in reader
    assert reader.commit(result)
    assert reader.cursor("s1") == result.cursor


def test_open_small_file_reads_everything(tmp_path: Path) -> None:
    path = tmp_path / "s1.jsonl"
    write_transcript(path, 3)

    result = IncrementalLogReader(tail_lines=200).open("s1", path)

    assert texts(result) == ["message 0", "message 1", "message 2"]


def test_continue_returns_only_appended_lines(tmp_path: Path) -> None:
    path = tmp_path / "s1.jsonl"
    write_transcript(path, 10)
    reader = IncrementalLogReader(tail_lines=200)
    reader.commit(reader.open("s1", path))

    with path.open("a", encoding="utf-8") as fh:
        fh.write(user_line(10) + "\n" + user_line(11) + "\n")

    result = reader.continue_from(reader.cursor("s1"))

    assert texts(result) == ["message 10", "message 11"]
    assert reader.commit(result)
    assert reader.cursor("s1").byte_offset == path.stat().st_size


def test_continue_waits_for_line_terminator(tmp_path: Path) -> None:
    path = tmp_path / "s1.jsonl"
    write_transcript(path, 2)
    reader = IncrementalLogReader()
    reader.commit(reader.open("s1", path))
    line = user_line(2)

    with path.open("a", encoding="utf-8") as fh:
        fh.write(line[:20])
    partial = reader.continue_from(reader.cursor("s1"))
    assert partial.envelopes == ()
    assert reader.commit(partial)

    with path.open("a", encoding="utf-8") as fh:
        fh.write(line[20:] + "\n")
    completed = reader.continue_from(reader.cursor("s1"))

    assert texts(completed) == ["message 2"]
    assert completed.skipped == 0


def test_open_ignores_unterminated_last_line(tmp_path: Path) -> None:
    path = tmp_path / "s1.jsonl"
    write_transcript(path, 2)
    with path.open("a", encoding="utf-8") as fh:
        fh.write('{"type": "user", "mess')

    result = IncrementalLogReader().open("s1", path)

    assert len(result.envelopes) == 2
    assert result.cursor.byte_offset < path.stat().st_size


def test_continue_after_truncation_reloads(tmp_path: Path) -> None:
    path = tmp_path / "s1.jsonl"
    write_transcript(path, 50)
    reader = IncrementalLogReader()
    reader.commit(reader.open("s1", path))

    write_transcript(path, 2)
    result = reader.continue_from(reader.cursor("s1"))

    assert result.reset
    assert texts(result) == ["message 0", "message 1"]
    assert reader.commit(result)
    assert reader.cursor("s1").byte_offset == path.stat().st_size


def test_malformed_lines_are_counted_and_skipped(tmp_path: Path) -> None:
    path = tmp_path / "s1.jsonl"
    path.write_text(user_line(0) + "\n{broken\n\n" + user_line(1) + "\n", encoding="utf-8")

    result = IncrementalLogReader().open("s1", path)

    assert texts(result) == ["message 0", "message 1"]
    assert result.skipped == 1


def test_stale_continue_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "s1.jsonl"
    write_transcript(path, 2)
    reader = IncrementalLogReader()
    reader.commit(reader.open("s1", path))
    cursor = reader.cursor("s1")
    with path.open("a", encoding="utf-8") as fh:
        fh.write(user_line(2) + "\n")

    first = reader.continue_from(cursor)
    second = reader.continue_from(cursor)

    assert reader.commit(first)
    assert not reader.commit(second)

    reader.evict("s1")
    assert "s1" not in reader
    assert not reader.commit(reader.continue_from(cursor))
