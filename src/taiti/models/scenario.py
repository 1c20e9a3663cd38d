"""Data models for scenario references selected for a task."""

from typing import Dict, Iterable, List, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


def check_file_path(path: str) -> str:
    """Validate a scenario file path so it survives the transfer file format.

    Raises:
        ValueError: If the path is empty, has surrounding whitespace or
            double quotes, or spans several lines
    """
    if not path or not path.strip():
        raise ValueError("Scenario file path must not be empty")
    if path != path.strip() or path.startswith("\ufeff"):
        raise ValueError(f"Scenario file path {path!r} has surrounding whitespace")
    if path.startswith('"') or path.endswith('"'):
        raise ValueError(f"Scenario file path {path!r} is wrapped in quotes")
    if "\n" in path or "\r" in path:
        raise ValueError(f"Scenario file path {path!r} contains a line break")
    return path


class ScenarioReference(BaseModel):
    """A single scenario: one line in one scenario file."""

    model_config = ConfigDict(frozen=True)

    file_path: str = Field(..., description="Absolute or project-relative path of the scenario file")
    line: int = Field(..., ge=1, description="1-based line number of the scenario")

    @field_validator("file_path")
    @classmethod
    def _check_file_path(cls, value: str) -> str:
        return check_file_path(value)

    def sort_key(self) -> Tuple[str, int]:
        return (self.file_path, self.line)

    def __lt__(self, other: "ScenarioReference") -> bool:
        return self.sort_key() < other.sort_key()

    def __str__(self) -> str:
        return f"{self.file_path}:{self.line}"


class ScenarioSet(BaseModel):
    """Scenario references of one task, grouped by file.

    File insertion order is preserved because it drives serialization order.
    A (file, line) pair is stored at most once. Two sets are equal when they
    hold the same references, regardless of order.
    """

    files: Dict[str, List[int]] = Field(
        default_factory=dict, description="Line numbers per scenario file, in insertion order"
    )

    @field_validator("files")
    @classmethod
    def _dedupe_lines(cls, value: Dict[str, List[int]]) -> Dict[str, List[int]]:
        cleaned: Dict[str, List[int]] = {}
        for path, lines in value.items():
            check_file_path(path)
            seen: List[int] = []
            for line in lines:
                if line < 1:
                    raise ValueError(f"Line numbers must be positive, got {line} for {path}")
                if line not in seen:
                    seen.append(line)
            if seen:
                cleaned[path] = seen
        return cleaned

    @classmethod
    def from_references(cls, references: Iterable[ScenarioReference]) -> "ScenarioSet":
        """Build a set from references, keeping first-seen order."""
        scenario_set = cls()
        for reference in references:
            scenario_set.add(reference.file_path, reference.line)
        return scenario_set

    def add(self, file_path: str, line: int) -> bool:
        """Add a reference.

        Returns:
            True if the reference was new, False if it was already present

        Raises:
            ValueError: If the path is not a valid scenario file path or the
                line is not positive
        """
        check_file_path(file_path)
        if line < 1:
            raise ValueError(f"Line numbers must be positive, got {line}")
        lines = self.files.setdefault(file_path, [])
        if line in lines:
            return False
        lines.append(line)
        return True

    def add_lines(self, file_path: str, lines: Iterable[int]) -> int:
        """Add several lines of one file and return how many were new."""
        return sum(1 for line in lines if self.add(file_path, line))

    def remove(self, file_path: str, line: int) -> bool:
        """Remove a reference, dropping the file entry once it has no lines."""
        lines = self.files.get(file_path)
        if not lines or line not in lines:
            return False
        lines.remove(line)
        if not lines:
            del self.files[file_path]
        return True

    def references(self) -> List[ScenarioReference]:
        """All references in file order, then line insertion order."""
        return [
            ScenarioReference(file_path=path, line=line)
            for path, lines in self.files.items()
            for line in lines
        ]

    def file_paths(self) -> List[str]:
        return list(self.files.keys())

    def lines_for(self, file_path: str) -> List[int]:
        return list(self.files.get(file_path, []))

    def is_empty(self) -> bool:
        return not self.files

    def shared_with(self, other: "ScenarioSet") -> "ScenarioSet":
        """References present in both sets, in this set's order."""
        shared = ScenarioSet()
        for path, lines in self.files.items():
            other_lines = other.files.get(path)
            if not other_lines:
                continue
            for line in lines:
                if line in other_lines:
                    shared.add(path, line)
        return shared

    def copy_set(self) -> "ScenarioSet":
        return ScenarioSet(files={path: list(lines) for path, lines in self.files.items()})

    def __contains__(self, reference: object) -> bool:
        if not isinstance(reference, ScenarioReference):
            return False
        return reference.line in self.files.get(reference.file_path, [])

    def __len__(self) -> int:
        return sum(len(lines) for lines in self.files.values())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ScenarioSet):
            return NotImplemented
        return set(self.references()) == set(other.references())

    __hash__ = None  # type: ignore[assignment]
