from pathlib import Path
from calibtree.setup_directories import setup_output_directories


def test_setup_output_directories_creates_all(tmp_path):
    dirs = setup_output_directories(tmp_path)

    assert set(dirs.keys()) == {"base", "artifacts", "logs"}

    for path in dirs.values():
        assert isinstance(path, Path)
        assert path.exists()
        assert path.is_dir()

def test_setup_output_directories_is_idempotent(tmp_path):
    dirs1 = setup_output_directories(tmp_path)
    dirs2 = setup_output_directories(tmp_path)

    assert dirs1 == dirs2

def test_artifact_and_log_dirs_exist(tmp_path):
    dirs = setup_output_directories(tmp_path)

    assert (dirs["artifacts"]).exists()
    assert (dirs["logs"]).exists()
