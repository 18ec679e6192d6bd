from pathlib import Path

from intarvm.dirs import IntarDirs, generate_run_name


def test_generate_run_name():
    name = generate_run_name()
    assert name
    assert "-" in name


def test_run_name_shape():
    for _ in range(50):
        adjective, noun, suffix = generate_run_name().split("-")
        assert adjective.isalpha() and noun.isalpha()
        assert 1000 <= int(suffix) < 9999


def test_intar_dirs():
    dirs = IntarDirs.locate()
    assert "intar" in str(dirs.images_dir())
    assert "intar" in str(dirs.runs_dir())


def test_located_dirs_end_in_app_name():
    dirs = IntarDirs.locate()
    assert dirs.cache.name == "intar"
    assert dirs.state.name == "intar"
    assert dirs.config.name == "intar"


def test_layout_under_roots(tmp_path):
    dirs = IntarDirs(cache=tmp_path / "c", state=tmp_path / "s", config=tmp_path / "cfg")
    assert dirs.images_dir() == tmp_path / "c" / "images"
    assert dirs.runs_dir() == tmp_path / "s" / "runs"
    run = dirs.new_run_dir()
    assert run.parent == dirs.runs_dir()
    assert not run.exists()


def test_ensure_dirs_creates_everything(tmp_path):
    dirs = IntarDirs(cache=tmp_path / "c", state=tmp_path / "s", config=tmp_path / "cfg")
    dirs.ensure_dirs()
    dirs.ensure_dirs()
    assert dirs.images_dir().is_dir()
    assert dirs.runs_dir().is_dir()
    assert Path(dirs.config).is_dir()