import pytest

from listing_dedup.config import ProjectConfig


@pytest.fixture
def config(tmp_path):
    """Project configuration writing under a temporary directory, with inline collaborator calls."""
    return ProjectConfig(
        project_root=tmp_path,
        data_dir=tmp_path / "data",
        models_dir=tmp_path / "models",
        logs_dir=tmp_path / "logs",
        embedding_timeout=0,
        ai_timeout=0,
        repository_timeout=0,
    )
