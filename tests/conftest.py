from pathlib import Path
from typing import Dict

import pytest

from lazymd_brain.services import AppConfig, DocumentRegistry, ToolDispatcher

ROOT_MD = """# Intro
Welcome. See [[notes/alpha]] and [[Beta]].
## Setup
- [ ] install
- [x] configure
# Usage
Run it. Also [[missing-note]].
"""

WORKSPACE_FILES: Dict[str, str] = {
    "root.md": ROOT_MD,
    "notes/alpha.md": "# Alpha\nBack to [[root]].\n",
    "beta.md": "---\ntitle: Beta Note\n---\n# Beta body\nNo links here.\n",
    "lonely.md": "# Lonely\nNothing links here.\n",
}


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    for relative, text in WORKSPACE_FILES.items():
        file_path = tmp_path / relative
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(text, encoding="utf-8")
    return tmp_path


@pytest.fixture
def app_config(workspace: Path) -> AppConfig:
    return AppConfig(workspace_root=workspace)


@pytest.fixture
def registry(app_config: AppConfig) -> DocumentRegistry:
    return DocumentRegistry(config=app_config)


@pytest.fixture
def loaded_registry(registry: DocumentRegistry) -> DocumentRegistry:
    registry.load_all()
    return registry


@pytest.fixture
def dispatcher(registry: DocumentRegistry) -> ToolDispatcher:
    return ToolDispatcher(registry)
