import sys
import os

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from config import Config
from errors import ConfigError
from main import main


class TestConfig:
    def test_from_args(self):
        config = Config.from_args(["settlement-engine", "transactions.csv"])
        assert config.transactions_path == "transactions.csv"

    @pytest.mark.parametrize("argv", [["settlement-engine"], ["settlement-engine", "a.csv", "b.csv"]])
    def test_requires_exactly_one_path(self, argv):
        with pytest.raises(ConfigError):
            Config.from_args(argv)


class TestMain:
    def test_writes_snapshot_to_stdout(self, tmp_path, capsys):
        csv_file = tmp_path / "transactions.csv"
        csv_file.write_text('\n'.join([
            "type, client, tx, amount",
            "deposit, 1, 1, 1.0",
            "deposit, 2, 2, 2.0",
            "deposit, 1, 3, 2.0",
            "withdrawal, 1, 4, 1.5",
            "withdrawal, 2, 5, 3.0",
        ]))

        exit_code = main(["settlement-engine", str(csv_file)])

        assert exit_code == 0
        assert capsys.readouterr().out == (
            "client,available,held,total,locked\n"
            "1,1.5000,0.0000,1.5000,false\n"
            "2,2.0000,0.0000,2.0000,false\n"
        )

    def test_usage_error(self, capsys):
        exit_code = main(["settlement-engine"])

        assert exit_code == 1
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "Usage" in captured.err

    def test_missing_file_writes_nothing(self, tmp_path, capsys):
        exit_code = main(["settlement-engine", str(tmp_path / "missing.csv")])

        assert exit_code == 1
        assert capsys.readouterr().out == ""

    def test_utf8_file_with_byte_order_mark(self, tmp_path, capsys):
        csv_file = tmp_path / "transactions.csv"
        csv_file.write_bytes("type,client,tx,amount\ndeposit,1,1,5\n".encode("utf-8-sig"))

        exit_code = main(["settlement-engine", str(csv_file)])

        assert exit_code == 0
        assert capsys.readouterr().out.splitlines() == [
            "client,available,held,total,locked",
            "1,5.0000,0.0000,5.0000,false",
        ]

    def test_undecodable_input_writes_nothing(self, tmp_path, capsys):
        csv_file = tmp_path / "transactions.csv"
        csv_file.write_bytes(b"type,client,tx,amount\ndeposit,1,1,5\ndeposit,1,2,\xff\xfe\n")

        exit_code = main(["settlement-engine", str(csv_file)])

        assert exit_code == 1
        assert capsys.readouterr().out == ""

    def test_malformed_rows_do_not_abort(self, tmp_path, capsys):
        csv_file = tmp_path / "transactions.csv"
        csv_file.write_text('\n'.join([
            "type, client, tx, amount",
            "deposit, 1, 1, abc",
            "deposit, 1, 2, 5",
        ]))

        exit_code = main(["settlement-engine", str(csv_file)])

        assert exit_code == 0
        assert capsys.readouterr().out.splitlines()[1] == "1,5.0000,0.0000,5.0000,false"
