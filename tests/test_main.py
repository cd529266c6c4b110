import sys
import os

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import main


def write_csv(tmp_path, rows):
    csv_file = tmp_path / "input.csv"
    csv_file.write_text('\n'.join(rows))
    return str(csv_file)


class TestMain:
    def test_writes_accounts_to_stdout(self, tmp_path, capsys):
        csv_file = write_csv(tmp_path, [
            "type, client, tx, amount",
            "deposit, 2, 1, 2.0",
            "deposit, 1, 2, 1.5",
            "withdrawal, 2, 3, 5.0",
        ])

        assert main.main([csv_file]) == 0

        out = capsys.readouterr().out
        assert out.splitlines() == [
            "client,available,held,total,locked",
            "1,1.5,0.0,1.5,false",
            "2,2.0,0.0,2.0,false",
        ]

    def test_silent_writes_nothing(self, tmp_path, capsys):
        csv_file = write_csv(tmp_path, ["type, client, tx, amount", "deposit, 1, 1, 1.0"])

        assert main.main([csv_file, "--silent"]) == 0
        assert capsys.readouterr().out == ""

    def test_workers_option(self, tmp_path, capsys):
        csv_file = write_csv(tmp_path, [
            "type, client, tx, amount",
            "deposit, 1, 1, 10",
            "deposit, 2, 2, 20",
            "dispute, 1, 1",
            "chargeback, 1, 1",
        ])

        assert main.main([csv_file, "--workers", "3"]) == 0
        assert capsys.readouterr().out.splitlines()[1:] == [
            "1,0.0,0.0,0.0,true",
            "2,20.0,0.0,20.0,false",
        ]

    def test_bad_records_do_not_change_exit_code(self, tmp_path, capsys):
        csv_file = write_csv(tmp_path, [
            "type, client, tx, amount",
            "garbage, row",
            "withdrawal, 1, 1, 10",
        ])

        assert main.main([csv_file]) == 0
        assert capsys.readouterr().out.splitlines()[1:] == ["1,0.0,0.0,0.0,false"]

    def test_missing_file(self, tmp_path, capsys):
        assert main.main([str(tmp_path / "nope.csv")]) == 1
        assert "Unable to open input file" in capsys.readouterr().err

    def test_missing_header(self, tmp_path, capsys):
        csv_file = write_csv(tmp_path, ["deposit, 1, 1, 1.0"])

        assert main.main([csv_file]) == 1
        assert "missing header line" in capsys.readouterr().err

    def test_invalid_workers(self, tmp_path):
        csv_file = write_csv(tmp_path, ["type, client, tx, amount"])

        with pytest.raises(SystemExit) as excinfo:
            main.main([csv_file, "--workers", "0"])
        assert excinfo.value.code == 2

    def test_unknown_log_level_falls_back(self, tmp_path, capsys):
        csv_file = write_csv(tmp_path, ["type, client, tx, amount"])

        assert main.main([csv_file, "--log-level", "chatty"]) == 0
        assert "Unknown log level 'CHATTY'" in capsys.readouterr().err

    def test_log_level_from_environment(self, tmp_path, capsys, monkeypatch):
        monkeypatch.setenv(main.LOG_LEVEL_ENV, "bogus")
        csv_file = write_csv(tmp_path, ["type, client, tx, amount"])

        assert main.main([csv_file]) == 0
        assert "Unknown log level 'BOGUS'" in capsys.readouterr().err
