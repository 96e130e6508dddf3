from __future__ import annotations

import pytest

from angpau.cli import main


def test_simulate_prints_distribution(capsys: pytest.CaptureFixture[str]) -> None:
    main(["simulate", "--weights", "70,20,8,2", "--labels", "a,b,c,d", "--draws", "20000", "--seed", "7", "--no-color"])

    out = capsys.readouterr().out
    assert "20,000 draws" in out
    assert "70.00%" in out
    assert "max deviation" in out


def test_simulate_rejects_label_mismatch() -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["simulate", "--weights", "1,2", "--labels", "a", "--no-color"])
    assert excinfo.value.code == 2


def test_simulate_rejects_negative_weight() -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["simulate", "--weights", "1,-2", "--no-color"])
    assert excinfo.value.code == 2


def test_simulate_rejects_non_numeric_weights() -> None:
    with pytest.raises(SystemExit):
        main(["simulate", "--weights", "1,x"])
