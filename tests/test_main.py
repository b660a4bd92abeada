import json
import os
import subprocess
import sys

from confbench.main import main
from confbench.topology import separate
from confbench.values import make_value


def _store(tmp_path):
    return f"json://{tmp_path}/store.json"


def _samples(output):
    return [json.loads(line) for line in output.splitlines() if line.startswith("{")]


def test_print_params(capsys):
    assert main(["--print-params", "--structure", "separate", "--n-parameters", "2"]) == 0
    out = capsys.readouterr().out
    assert out.splitlines() == [
        f"/test/separate/key0,{make_value(0)}",
        f"/test/separate/key1,{make_value(1)}",
    ]


def test_missing_server_is_fatal(capsys):
    assert main(["--mon-uri", "stdout://"]) == 1
    assert capsys.readouterr().err.startswith("FATAL: Must specify server URI")


def test_put_then_get_round_trip(tmp_path, capsys):
    store = _store(tmp_path)
    assert main(["--server-uri", store, "--put", "--n-parameters", "3"]) == 0

    stored = json.loads((tmp_path / "store.json").read_text())
    assert stored["test"]["separate"]["key2"] == separate(3)["/test/separate/key2"]

    assert main(
        ["--server-uri", store, "--mon-uri", "stdout://", "--n-parameters", "3", "--skip-wait"]
    ) == 0
    samples = _samples(capsys.readouterr().out)
    assert [sample["metric"] for sample in samples] == ["time", "time"]
    assert samples[0]["tags"]["param.structure"] == "separate"


def test_direct_read_of_missing_key_exits_non_zero(tmp_path, capsys):
    store = _store(tmp_path)
    main(["--server-uri", store, "--put", "--n-parameters", "2"])

    code = main(
        ["--server-uri", store, "--mon-uri", "stdout://", "--n-parameters", "3", "--skip-wait"]
    )

    assert code == 1
    assert "FATAL: Failed to get key '/test/separate/key2'" in capsys.readouterr().err


def test_recursive_read_with_missing_key_still_succeeds(tmp_path, capsys):
    store = _store(tmp_path)
    main(["--server-uri", store, "--put", "--structure", "tree", "--n-parameters", "3"])
    path = tmp_path / "store.json"
    data = json.loads(path.read_text())
    del data["test"]["tree3"]["key1"]
    path.write_text(json.dumps(data))

    code = main(
        ["--server-uri", store, "--mon-uri", "stdout://", "--structure", "tree",
         "--n-parameters", "3", "--skip-wait"]
    )

    assert code == 0
    out = capsys.readouterr().out
    assert "Mismatches found: 1" in out
    assert _samples(out)[-1]["metric"] == "mismatches"


def test_malformed_option_exits_with_one(tmp_path, capsys):
    code = main(
        ["--server-uri", _store(tmp_path), "--mon-uri", "stdout://", "--n-processes", "abc"]
    )

    assert code == 1
    err = capsys.readouterr().err
    assert err.startswith("FATAL: argument --n-processes: invalid int value: 'abc'")
    assert len(err.splitlines()) == 1


def _run_cli(*args):
    return subprocess.run(
        [sys.executable, "-m", "confbench", *args],
        capture_output=True,
        text=True,
        timeout=120,
        env={**os.environ, "PYTHONUNBUFFERED": "1"},
    )


def test_forked_clients_each_report_samples(tmp_path):
    store = _store(tmp_path)
    put = _run_cli("--server-uri", store, "--put", "--structure", "tree", "--n-parameters", "20")
    assert put.returncode == 0, put.stderr

    run = _run_cli(
        "--server-uri", store, "--mon-uri", "stdout://", "--structure", "tree",
        "--n-parameters", "20", "--n-processes", "3", "--skip-wait",
    )

    assert run.returncode == 0, run.stderr
    samples = _samples(run.stdout)
    assert len(samples) == len(run.stdout.splitlines())
    assert [sample["metric"] for sample in samples] == ["time"] * 6
    assert len({sample["pid"] for sample in samples}) == 3
    assert {sample["tags"]["process.number"] for sample in samples} == {"3"}


def test_failed_clients_fail_the_run(tmp_path):
    run = _run_cli(
        "--server-uri", _store(tmp_path), "--mon-uri", "stdout://",
        "--n-parameters", "2", "--n-processes", "3", "--skip-wait",
    )

    assert run.returncode == 1
    fatal = [line for line in run.stderr.splitlines() if line.startswith("FATAL:")]
    assert len(fatal) == 3
    assert run.stdout == ""
