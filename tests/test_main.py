import os

import pytest

import main


class TestParseArgs:
    def test_defaults(self, monkeypatch):
        for name in ("IRV_CANDIDATES", "IRV_BALLOTS", "IRV_SEED", "IRV_REPORT_DIR", "IRV_LOG_LEVEL"):
            monkeypatch.delenv(name, raising=False)
        args = main.parse_args([])
        assert args.candidates == main.DEFAULT_CANDIDATES
        assert args.ballots == main.DEFAULT_BALLOTS
        assert args.seed is None
        assert args.report_dir is None
        assert args.log_level == "INFO"

    def test_environment(self, monkeypatch):
        monkeypatch.setenv("IRV_CANDIDATES", "4")
        monkeypatch.setenv("IRV_BALLOTS", "25")
        monkeypatch.setenv("IRV_SEED", "3")
        args = main.parse_args([])
        assert (args.candidates, args.ballots, args.seed) == (4, 25, 3)

    def test_flags_override_environment(self, monkeypatch):
        monkeypatch.setenv("IRV_CANDIDATES", "4")
        assert main.parse_args(["-c", "6"]).candidates == 6

    def test_bad_environment_value(self, monkeypatch):
        monkeypatch.setenv("IRV_BALLOTS", "many")
        with pytest.raises(RuntimeError, match="IRV_BALLOTS"):
            main.parse_args([])

    def test_flag_wins_over_bad_environment_value(self, monkeypatch):
        monkeypatch.setenv("IRV_BALLOTS", "many")
        monkeypatch.setenv("IRV_SEED", "x")
        args = main.parse_args(["-b", "5", "-s", "1"])
        assert (args.ballots, args.seed) == (5, 1)

    def test_needs_a_candidate(self):
        with pytest.raises(SystemExit):
            main.parse_args(["-c", "0"])

    def test_log_level_is_case_insensitive(self, monkeypatch):
        monkeypatch.delenv("IRV_LOG_LEVEL", raising=False)
        assert main.parse_args(["--log-level", "debug"]).log_level == "DEBUG"
        monkeypatch.setenv("IRV_LOG_LEVEL", "warning")
        assert main.parse_args([]).log_level == "WARNING"

    @pytest.mark.parametrize("argv, env", [(["--log-level", "loud"], None), ([], "loud")])
    def test_unknown_log_level(self, monkeypatch, capsys, argv, env):
        if env is None:
            monkeypatch.delenv("IRV_LOG_LEVEL", raising=False)
        else:
            monkeypatch.setenv("IRV_LOG_LEVEL", env)
        with pytest.raises(SystemExit):
            main.parse_args(argv)
        assert "--log-level must be one of" in capsys.readouterr().err


class TestMain:
    def test_demo_election(self, capsys):
        winner = main.main(["-c", "4", "-b", "50", "-s", "1"])
        out = capsys.readouterr().out
        assert winner in {f"Person {i}" for i in range(4)}
        assert out.count("Round ") == 4
        assert f"Election winner: {winner}!" in out

    def test_seed_makes_it_reproducible(self, capsys):
        first = main.main(["-c", "5", "-b", "40", "-s", "9"])
        out1 = capsys.readouterr().out
        second = main.main(["-c", "5", "-b", "40", "-s", "9"])
        out2 = capsys.readouterr().out
        assert first == second
        assert out1 == out2

    def test_writes_report(self, tmp_path):
        out = str(tmp_path / "report")
        main.main(["-c", "3", "-b", "10", "-s", "2", "-r", out])
        assert os.path.exists(os.path.join(out, "irv_rounds.csv"))
        assert os.path.exists(os.path.join(out, "03_round_matrix.png"))
