"""Locating Gherkin feature files and scenarios in a Git working tree."""

from pathlib import Path
from typing import Iterable, List, Optional, Union

import git
import structlog
from git import Repo

from taiti.models.scenario import ScenarioSet

logger = structlog.get_logger(__name__)

FEATURE_SUFFIX = ".feature"


class FeatureFileLocator:
    """Finds feature files tracked by the repository containing a path."""

    def __init__(self, path: Optional[Union[str, Path]] = None, scenarios_folder: Optional[str] = "features") -> None:
        """Initialize the locator.

        Args:
            path: Any path inside the working tree (default: current directory)
            scenarios_folder: Folder, relative to the root, that holds the
                feature files; None or "" searches the whole tree

        Raises:
            ValueError: If the path is not inside a Git working tree
        """
        start = Path(path) if path is not None else Path.cwd()
        if not start.exists():
            raise ValueError(f"Path does not exist: {start}")

        try:
            self.repo = Repo(start, search_parent_directories=True)
        except (git.exc.InvalidGitRepositoryError, git.exc.NoSuchPathError) as e:
            raise ValueError(f"Not inside a Git repository: {start}") from e

        if self.repo.working_tree_dir is None:
            raise ValueError(f"Repository has no working tree: {start}")

        self.scenarios_folder = (scenarios_folder or "").strip("/")

    @property
    def root(self) -> Path:
        return Path(self.repo.working_tree_dir)

    def feature_files(self) -> List[str]:
        """List tracked feature files, relative to the root, sorted."""
        args = ["--", self.scenarios_folder] if self.scenarios_folder else []
        output = self.repo.git.ls_files(*args)
        files = sorted(
            line.strip() for line in output.splitlines() if line.strip().endswith(FEATURE_SUFFIX)
        )
        logger.debug("feature_files_listed", folder=self.scenarios_folder or ".", count=len(files))
        return files

    def relative_path(self, path: Union[str, Path]) -> str:
        """Express a path relative to the working tree root, with forward slashes.

        Raises:
            ValueError: If the path lies outside the working tree
        """
        candidate = Path(path)
        if not candidate.is_absolute():
            return candidate.as_posix()
        try:
            return candidate.resolve().relative_to(self.root.resolve()).as_posix()
        except ValueError as e:
            raise ValueError(f"{path} is outside of {self.root}") from e

    def _read_lines(self, path: Union[str, Path]) -> List[str]:
        full = Path(path)
        if not full.is_absolute():
            full = self.root / full
        return full.read_text(encoding="utf-8").splitlines()

    def scenario_title(self, path: Union[str, Path], line: int) -> str:
        """Title of the scenario declared at a 1-based line of a feature file.

        Returns:
            The stripped line if it starts with "Scenario", otherwise
            "Scenario at line: N"
        """
        try:
            lines = self._read_lines(path)
        except OSError as e:
            logger.warning("feature_file_unreadable", path=str(path), error=str(e))
            return f"Scenario at line: {line}"

        if 1 <= line <= len(lines):
            text = lines[line - 1].strip()
            if text.lower().startswith("scenario"):
                return text
        return f"Scenario at line: {line}"

    def scenario_lines(self, path: Union[str, Path]) -> List[int]:
        """Lines of a feature file that declare a scenario or scenario outline."""
        return [
            number
            for number, text in enumerate(self._read_lines(path), start=1)
            if text.strip().lower().startswith("scenario")
        ]

    def build_scenario_set(self, references: Iterable[str]) -> ScenarioSet:
        """Build a scenario set from "file:line" strings.

        Paths are stored relative to the working tree root.

        Raises:
            ValueError: If a reference is not of the form "file:line" with a
                positive line
        """
        scenario_set = ScenarioSet()
        for reference in references:
            path, sep, line_text = reference.rpartition(":")
            if not sep or not path:
                raise ValueError(f"Expected file:line, got {reference!r}")
            try:
                line = int(line_text)
            except ValueError as e:
                raise ValueError(f"Invalid line number in {reference!r}") from e
            if line < 1:
                raise ValueError(f"Line numbers must be positive, got {reference!r}")
            scenario_set.add(self.relative_path(path), line)
        return scenario_set
