"""
Test Configuration - Shared fixtures for pipeline and index tests.

Uses pytest fixtures to create isolated test environments. Poppler is
never required: tests either inject FakeToolchain as the tool runner or
point the config at small Python scripts that imitate pdfinfo/pdftotext.
"""

import json
import shutil
import sys
import tempfile
import textwrap
from pathlib import Path
from typing import Dict, Generator, List, Sequence, Union

import pytest

from pageindex.config import PipelineConfig, set_config
from pageindex.errors import ToolInvocationError
from pageindex.invoker import ToolResult


PageSpec = Union[str, Exception]
DocSpec = Union[List[PageSpec], Exception]


class FakeToolchain:
    """
    Stand-in for `invoke` that answers pdfinfo/pdftotext calls from a table.

    docs maps a file name to either a list of page texts (an Exception in
    the list makes that page fail) or an Exception (the page count fails).
    """

    def __init__(self, docs: Dict[str, DocSpec]):
        self.docs = docs
        self.calls: List[tuple] = []

    async def __call__(self, command: str, args: Sequence[str], timeout: float) -> ToolResult:
        self.calls.append((command, list(args), timeout))

        if command == "pdfinfo":
            spec = self.docs[Path(args[-1]).name]
            if isinstance(spec, Exception):
                raise spec
            report = f"Producer:       fake\nPages:          {len(spec)}\nEncrypted:      no\n"
            return ToolResult(stdout=report, stderr="")

        if command == "pdftotext":
            spec = self.docs[Path(args[-2]).name]
            page = int(args[list(args).index("-f") + 1])
            text = spec[page - 1]
            if isinstance(text, Exception):
                raise text
            return ToolResult(stdout=text, stderr="")

        raise ToolInvocationError(f"Cannot launch {command}", command=command)

    def documents_queried(self) -> List[str]:
        return [Path(args[-1]).name for cmd, args, _ in self.calls if cmd == "pdfinfo"]


def write_corpus(source_dir: Path, names: Sequence[str]) -> None:
    source_dir.mkdir(parents=True, exist_ok=True)
    for name in names:
        (source_dir / name).write_bytes(b"%PDF-1.4\n%fake\n")


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    tmp = tempfile.mkdtemp(prefix="pageindex_test_")
    # Resolve to handle macOS /var -> /private/var symlink
    resolved = Path(tmp).resolve()
    yield resolved
    shutil.rmtree(str(resolved), ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path) -> Generator[PipelineConfig, None, None]:
    """Create an isolated test configuration."""
    config = PipelineConfig(
        source_dir=temp_dir / "pdfs",
        build_dir=temp_dir / "build",
        index_dir=temp_dir / "index",
        info_timeout=5.0,
        page_timeout=5.0,
    )
    (temp_dir / "pdfs").mkdir()
    set_config(config)
    yield config
    set_config(None)


@pytest.fixture
def read_manifest(test_config: PipelineConfig):
    """Return a loader for the raw manifest JSON."""
    def _read() -> dict:
        return json.loads(test_config.manifest_path.read_text(encoding="utf-8"))
    return _read


FAKE_PDFINFO = textwrap.dedent('''
    import json, sys
    data = open(sys.argv[-1], encoding="utf-8").read()
    if data.startswith("BROKEN"):
        sys.stderr.write("Syntax Error: Couldn't find trailer dictionary\\n")
        sys.exit(1)
    print("Producer:       fake")
    print("Pages:          %d" % len(json.loads(data)["pages"]))
''')

FAKE_PDFTOTEXT = textwrap.dedent('''
    import json, sys
    args = sys.argv[1:]
    page = int(args[args.index("-f") + 1])
    text = json.loads(open(args[-2], encoding="utf-8").read())["pages"][page - 1]
    if text == "CRASH":
        sys.stderr.write("Internal Error\\n")
        sys.exit(3)
    sys.stdout.buffer.write(text.encode("utf-8"))
''')


@pytest.fixture
def script_toolchain(temp_dir: Path, test_config: PipelineConfig) -> PipelineConfig:
    """
    Point the config at Python scripts imitating pdfinfo/pdftotext.

    Fake PDFs are JSON files {"pages": [...]}; a file starting with BROKEN
    fails pdfinfo, a page reading CRASH fails pdftotext.
    """
    tools = temp_dir / "tools"
    tools.mkdir()
    (tools / "pdfinfo.py").write_text(FAKE_PDFINFO, encoding="utf-8")
    (tools / "pdftotext.py").write_text(FAKE_PDFTOTEXT, encoding="utf-8")

    test_config.pdfinfo_cmd = [sys.executable, str(tools / "pdfinfo.py")]
    test_config.pdftotext_cmd = [sys.executable, str(tools / "pdftotext.py")]
    return test_config


def write_json_pdf(path: Path, pages: List[str]) -> Path:
    path.write_text(json.dumps({"pages": pages}), encoding="utf-8")
    return path
