import logging
import shutil

import ujson

import main


def test_main_writes_metrics(tmp_path, setenvif_xml):
    """
    End-to-end run over a directory with one srcML file.
    """
    input_dir = tmp_path / "apache"
    input_dir.mkdir()
    shutil.copy(setenvif_xml, input_dir)
    output = tmp_path / "metrics.json"

    rc = main.main([str(input_dir), "-o", str(output), "--workers", "1", "--log-dir", str(tmp_path / "logs")])

    assert rc == 0, f"Expected exit code 0 but got {rc}"
    with open(output, encoding="utf-8") as f:
        solution = ujson.load(f)
    assert list(solution) == ["setenvif.c.xml"]
    assert (tmp_path / "logs" / "app.log").exists()
    assert (tmp_path / "logs" / "metrics_errors.log").exists()


def test_main_reports_failed_files(tmp_path):
    input_dir = tmp_path / "srcml"
    input_dir.mkdir()
    (input_dir / "broken.xml").write_text("<unit>", encoding="utf-8")
    log_dir = tmp_path / "logs"

    rc = main.main([str(input_dir), "-o", str(tmp_path / "m.json"), "--log-dir", str(log_dir)])

    assert rc == 1
    for h in logging.getLogger("metrics_error_logger").handlers:
        h.flush()
    assert "broken.xml" in (log_dir / "metrics_errors.log").read_text(encoding="utf-8")


def test_main_config_error(tmp_path):
    rc = main.main([str(tmp_path / "missing"), "--log-dir", str(tmp_path / "logs")])
    assert rc == 2
