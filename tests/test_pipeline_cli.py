import json
from pathlib import Path

import numpy as np
import pandas as pd
import pytest
import yaml

from spptest.cli.main import main
from spptest.core.pipeline import PipelineError, prepare_curve_set, run_test
from spptest.curves.curve_set import create_curve_set
from spptest.data.io import write_curve_set


def _write_toy(tmp_path: Path, obs_shift=0.0, analysis=None) -> Path:
    rng = np.random.default_rng(123)
    r = np.linspace(0.0, 2.0, 15)
    theo = np.pi * r**2
    sd = 0.1 + r
    sims = theo[:, None] + sd[:, None] * rng.standard_normal((15, 199))
    obs = theo + sd * rng.standard_normal(15) + obs_shift
    # the r = 0 estimate is undefined in typical estimators
    obs[0] = np.inf
    cs = create_curve_set({"r": r, "obs": obs, "sim_m": sims, "theo": theo}, allow_inf_values=True)
    manifest = {"summary_function": "K"}
    if analysis:
        manifest["analysis"] = analysis
    return write_curve_set(cs, tmp_path / "toy", manifest=manifest)


def test_envelope_run_writes_artifacts(tmp_path: Path):
    curves = _write_toy(tmp_path, analysis={"crop": {"r_min": 0.1}})
    out = tmp_path / "out"
    run = run_test(curves, out, kind="envelope", overrides={"envelope": {"method": "st"}})

    for name in ["config_resolved.yaml", "envelope.parquet", "envelope.png", "run_metadata.json", "result.json", "report.md"]:
        assert (out / name).exists(), name
    assert run.result.method == "st"
    assert run.metadata["n_r"] == 14
    assert run.metadata["n_sim"] == 199

    frame = pd.read_parquet(out / "envelope.parquet")
    assert len(frame) == 14
    payload = json.loads((out / "result.json").read_text(encoding="utf-8"))
    assert payload["result"]["method"] == "st"
    assert payload["result"]["n_sim"] == 199
    assert len(payload["measures"]["sim"]) == 199
    assert payload["reproducibility"]["input_hash"] == run.metadata["input_hash"]
    resolved = yaml.safe_load((out / "config_resolved.yaml").read_text(encoding="utf-8"))
    assert resolved["crop"]["r_min"] == 0.1
    assert "Global envelope test (st)" in (out / "report.md").read_text(encoding="utf-8")


def test_uncropped_infinite_values_are_rejected(tmp_path: Path):
    from spptest.curves.curve_set import ValidationError

    curves = _write_toy(tmp_path)
    with pytest.raises(ValidationError):
        run_test(curves, tmp_path / "out", make_figures=False)


def test_deviation_run_on_residuals(tmp_path: Path):
    curves = _write_toy(tmp_path, obs_shift=20.0)
    run = run_test(
        curves,
        tmp_path / "out",
        kind="deviation",
        overrides={"crop": {"r_min": 0.1}, "residual": {"enabled": True}, "deviation": {"measure": "int2"}},
    )
    assert run.result.measure == "int2"
    assert run.result.p == pytest.approx(1.0 / 200.0)
    assert not (tmp_path / "out" / "envelope.parquet").exists()


def test_unknown_test_kind(tmp_path: Path):
    with pytest.raises(PipelineError):
        run_test(_write_toy(tmp_path), tmp_path / "out", kind="mad")


def test_prepare_curve_set_crops_then_takes_residuals():
    cs = create_curve_set(
        {"r": [0.0, 1.0, 2.0], "obs": [np.nan, 1.0, 2.0], "sim_m": [[0.0], [1.0], [3.0]], "theo": [0.0, 1.0, 2.5]},
        allow_inf_values=True,
    )
    cfg = {"crop": {"r_min": 0.5, "r_max": None}, "residual": {"enabled": True, "reference": "theo"}}
    prepared = prepare_curve_set(cs, cfg)
    assert prepared.is_residual
    np.testing.assert_allclose(prepared.obs, [0.0, -0.5])
    np.testing.assert_allclose(prepared.sim_m[:, 0], [0.0, 0.5])


def test_cli_envelope_and_validate(tmp_path: Path, capsys):
    curves = _write_toy(tmp_path)
    out = tmp_path / "cli_out"
    code = main(["envelope", str(curves), "--out", str(out), "--r-min", "0.1", "--method", "rank", "--no-figures"])
    assert code == 0
    assert "rank envelope: p =" in capsys.readouterr().out
    assert (out / "result.json").exists()
    assert not (out / "envelope.png").exists()

    assert main(["validate", str(curves), "--allow-inf", "--json"]) == 0
    report = json.loads(capsys.readouterr().out)
    assert report["valid"] is True
    assert main(["validate", str(curves)]) == 2


def test_cli_deviation_and_plot(tmp_path: Path, capsys):
    curves = _write_toy(tmp_path)
    code = main(["deviation", str(curves), "--out", str(tmp_path / "dev"), "--r-min", "0.1", "--scaling", "st"])
    assert code == 0
    assert "scaling st" in capsys.readouterr().out

    fig = tmp_path / "curves.png"
    assert main(["plot", str(curves), "--out", str(fig), "--r-min", "0.1"]) == 0
    assert fig.exists()


def test_cli_errors_exit_with_two(tmp_path: Path):
    curves = _write_toy(tmp_path)
    assert main(["envelope", str(tmp_path / "missing"), "--out", str(tmp_path / "o1")]) == 2
    assert main(["envelope", str(curves), "--out", str(tmp_path / "o2"), "--method", "erl"]) == 2
    assert main(["envelope", str(curves), "--out", str(tmp_path / "o3"), "--r-min", "5", "--r-max", "6"]) == 2


def test_cli_without_command_and_schema(capsys):
    assert main([]) == 1
    capsys.readouterr()
    assert main(["schema"]) == 0
    template = yaml.safe_load(capsys.readouterr().out)
    assert template["columns"]["sim_prefix"] == "sim_"


def test_cli_normal_envelope_records_hashes(tmp_path: Path, capsys):
    curves = _write_toy(tmp_path)
    out = tmp_path / "normal"
    argv = ["envelope", str(curves), "--out", str(out), "--r-min", "0.1", "--method", "normal"]
    code = main(argv + ["--n-norm", "500", "--seed", "3", "--no-figures"])
    assert code == 0
    assert "normal envelope: p =" in capsys.readouterr().out

    payload = json.loads((out / "result.json").read_text(encoding="utf-8"))
    assert payload["result"]["method"] == "normal"
    assert payload["result"]["params"]["n_norm"] == 500
    assert "band_exact" in payload["result"]
    metadata = json.loads((out / "run_metadata.json").read_text(encoding="utf-8"))
    assert payload["reproducibility"]["curve_set_hash"] == metadata["curve_set_hash"]
    resolved = yaml.safe_load((out / "config_resolved.yaml").read_text(encoding="utf-8"))
    assert resolved["envelope"]["seed"] == 3
