"""Tests for the position store."""

import os

from log2gelf.models import PositionRecord
from log2gelf.position import load_position, read_inode, save_position


class TestPositionRecord:
    def test_format(self):
        record = PositionRecord(offset=1234, captured_at=1400000000, inode=5678)
        assert record.format() == "Offset 1234 Time 1400000000 Inode 5678\n"

    def test_parse(self):
        record = PositionRecord.parse("Offset 1234 Time 1400000000 Inode 5678\n")
        assert record == PositionRecord(offset=1234, captured_at=1400000000, inode=5678)

    def test_parse_rejects_other_shapes(self):
        for text in ("", "garbage", "Offset x Time 1 Inode 2\n", "Offset 1 Inode 2\n",
                     '{"offset": 1, "inode": 2}', "Offset 1 Time 2 Inode -3\n"):
            assert PositionRecord.parse(text) is None


class TestReadInode:
    def test_existing_file(self, tmp_path):
        f = tmp_path / "app.log"
        f.write_text("x\n")
        assert read_inode(str(f)) == os.stat(f).st_ino

    def test_missing_file(self, tmp_path):
        assert read_inode(str(tmp_path / "missing.log")) == 0


class TestLoadSave:
    def test_round_trip(self, tmp_path):
        state = str(tmp_path / "app.log.state")
        assert save_position(state, 42, 1000)
        assert load_position(state, 42) == 1000

    def test_file_format(self, tmp_path):
        state = tmp_path / "app.log.state"
        save_position(str(state), 42, 1000)
        text = state.read_text()
        assert text.startswith("Offset 1000 Time ")
        assert text.endswith(" Inode 42\n")

    def test_inode_mismatch_starts_fresh(self, tmp_path):
        state = str(tmp_path / "app.log.state")
        save_position(state, 42, 1000)
        assert load_position(state, 43) == 0

    def test_missing_state_file(self, tmp_path):
        assert load_position(str(tmp_path / "none.state"), 42) == 0

    def test_unparsable_state_file(self, tmp_path):
        state = tmp_path / "app.log.state"
        state.write_text("not a state file\n")
        assert load_position(str(state), 42) == 0

    def test_negative_offset_ignored(self, tmp_path):
        state = tmp_path / "app.log.state"
        state.write_text("Offset -5 Time 1 Inode 42\n")
        assert load_position(str(state), 42) == 0

    def test_last_writer_wins(self, tmp_path):
        state = str(tmp_path / "app.log.state")
        save_position(state, 42, 10)
        save_position(state, 42, 20)
        assert load_position(state, 42) == 20
        assert os.listdir(tmp_path) == ["app.log.state"]

    def test_write_failure_is_reported(self, tmp_path):
        state = str(tmp_path / "missing-dir" / "app.log.state")
        assert save_position(state, 42, 10) is False
