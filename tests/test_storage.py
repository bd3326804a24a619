"""
Tests for ledger file codecs and atomic file writes
"""

import json
import os
import stat
import pytest
from decimal import Decimal

from console_bank.accounts import Account
from console_bank.exceptions import FormatError
from console_bank.storage import (
    JsonLedgerCodec, TextLedgerCodec, get_codec, read_text, write_atomic
)


TS = "2024-02-29 08:00:00"


def sample_accounts():
    alice = Account(id=1, owner="Alice")
    alice.deposit(Decimal('100'), timestamp=TS)
    alice.transfer_out(Decimal('40'), timestamp=TS)
    bob = Account(id=2, owner="Bob")
    bob.transfer_in(Decimal('40'), timestamp=TS)
    return [alice, bob]


class TestTextLedgerCodec:
    """Test the line-oriented format"""

    def test_dumps(self):
        """Test concatenated account blocks"""
        text = TextLedgerCodec().dumps(sample_accounts(), next_id=3)
        assert text == (
            "1;Alice;60\n"
            "T:2024-02-29 08:00:00|DEPOSIT|100\n"
            "T:2024-02-29 08:00:00|TRANSFER_OUT|40\n"
            "END\n"
            "2;Bob;40\n"
            "T:2024-02-29 08:00:00|TRANSFER_IN|40\n"
            "END\n"
        )

    def test_loads_round_trip(self):
        """Test that loads reverses dumps"""
        codec = TextLedgerCodec()
        accounts = sample_accounts()
        snapshot = codec.loads(codec.dumps(accounts, next_id=3))

        assert snapshot.accounts == accounts
        assert snapshot.next_id == 3

    def test_loads_blank_lines_and_crlf(self):
        """Test that blank separator lines and CRLF endings are accepted"""
        text = "\r\n1;Alice;5\r\nT:2024-01-01 00:00:00|DEPOSIT|5\r\nEND\r\n\r\n\r\n7;Bob;0\r\nEND\r\n"
        snapshot = TextLedgerCodec().loads(text)

        assert [a.id for a in snapshot.accounts] == [1, 7]
        assert snapshot.accounts[0].balance == Decimal('5')
        assert snapshot.next_id == 8

    def test_loads_original_program_output(self):
        """Test a file in the layout written by the earlier console program"""
        text = (
            "1;Alice;60\n"
            "T:2023-11-05 14:02:09|DEPOSIT|100\n"
            "T:2023-11-05 14:03:10|TRANSFER_OUT|40\n"
            "END\n"
            "2;Bob;40\n"
            "T:2023-11-05 14:03:10|TRANSFER_IN|40\n"
            "END\n"
        )
        snapshot = TextLedgerCodec().loads(text)
        assert [a.owner for a in snapshot.accounts] == ["Alice", "Bob"]
        assert snapshot.accounts[1].history[0].timestamp == "2023-11-05 14:03:10"

    def test_loads_reports_line_number(self):
        """Test that errors point at the offending block"""
        text = "1;Alice;0\nEND\n\nx;Bob;0\nEND\n"
        with pytest.raises(FormatError) as exc_info:
            TextLedgerCodec().loads(text)
        assert exc_info.value.line_number == 4
        assert "line 4" in str(exc_info.value)

    def test_loads_truncated(self):
        """Test that a missing END is refused"""
        with pytest.raises(FormatError):
            TextLedgerCodec().loads("1;Alice;5\nT:2024-01-01 00:00:00|DEPOSIT|5\n")

    def test_loads_duplicate_ids(self):
        """Test that repeated ids are refused"""
        with pytest.raises(FormatError, match="Duplicate"):
            TextLedgerCodec().loads("1;Alice;0\nEND\n1;Bob;0\nEND\n")


class TestJsonLedgerCodec:
    """Test the structured format"""

    def test_round_trip(self):
        """Test that loads reverses dumps and keeps next_id"""
        codec = JsonLedgerCodec()
        accounts = sample_accounts()
        text = codec.dumps(accounts, next_id=10)

        assert json.loads(text)["next_id"] == 10
        snapshot = codec.loads(text)
        assert snapshot.accounts == accounts
        assert snapshot.next_id == 10

    def test_next_id_never_below_max_id(self):
        """Test that a stale next_id is raised past the loaded ids"""
        codec = JsonLedgerCodec()
        text = codec.dumps(sample_accounts(), next_id=1)
        assert codec.loads(text).next_id == 3

    def test_empty_text(self):
        """Test that an empty file is an empty ledger"""
        snapshot = JsonLedgerCodec().loads("")
        assert snapshot.accounts == []
        assert snapshot.next_id == 1

    @pytest.mark.parametrize("text", [
        "{not json",
        "[]",
        '{"accounts": {}}',
        '{"accounts": [1]}',
        '{"accounts": [], "next_id": "2"}',
    ])
    def test_malformed(self, text):
        """Test that malformed documents raise FormatError"""
        with pytest.raises(FormatError):
            JsonLedgerCodec().loads(text)


class TestCodecLookup:
    """Test codec selection by name"""

    def test_known_names(self):
        assert isinstance(get_codec("text"), TextLedgerCodec)
        assert isinstance(get_codec("JSON"), JsonLedgerCodec)

    def test_unknown_name(self):
        with pytest.raises(ValueError, match="Unknown storage format"):
            get_codec("xml")


class TestFileHelpers:
    """Test reading and atomic writing"""

    def test_read_missing(self, tmp_path):
        assert read_text(tmp_path / "missing.txt") is None

    def test_write_atomic_creates_and_replaces(self, tmp_path):
        """Test that the target is replaced and no temp files remain"""
        path = tmp_path / "data.txt"
        write_atomic(path, "first\n")
        write_atomic(path, "second\n")

        assert read_text(path) == "second\n"
        assert [p.name for p in tmp_path.iterdir()] == ["data.txt"]

    def test_read_non_utf8(self, tmp_path):
        """Test that undecodable files raise FormatError"""
        path = tmp_path / "data.txt"
        path.write_bytes(b"1;Al\xffce;0\nEND\n")
        with pytest.raises(FormatError, match="not valid UTF-8"):
            read_text(path)

    def test_write_atomic_keeps_permissions(self, tmp_path):
        """Test that replacing a file keeps its mode"""
        path = tmp_path / "data.txt"
        path.write_text("old\n")
        os.chmod(path, 0o640)

        write_atomic(path, "new\n")

        assert stat.S_IMODE(os.stat(path).st_mode) == 0o640
        assert read_text(path) == "new\n"

    def test_write_atomic_new_file_follows_umask(self, tmp_path):
        """Test that a new file gets the usual umask-based mode"""
        umask = os.umask(0o022)
        try:
            path = tmp_path / "data.txt"
            write_atomic(path, "x\n")
            assert stat.S_IMODE(os.stat(path).st_mode) == 0o644
        finally:
            os.umask(umask)

    def test_write_atomic_missing_directory(self, tmp_path):
        """Test that an unwritable location raises OSError"""
        with pytest.raises(OSError):
            write_atomic(tmp_path / "no" / "such" / "dir.txt", "x")
