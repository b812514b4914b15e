"""Repository identifiers."""

from __future__ import annotations

from dataclasses import dataclass

from repo_agents.errors import RepositoryFormatError


@dataclass(frozen=True, slots=True)
class RepositoryRef:
    owner: str
    repo: str

    @classmethod
    def parse(cls, value: str) -> RepositoryRef:
        parts = value.strip().split("/")
        if len(parts) != 2 or not all(parts):
            raise RepositoryFormatError(
                f"Invalid repository format: {value}. Expected 'owner/repo'."
            )
        return cls(owner=parts[0], repo=parts[1])

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    def __str__(self) -> str:
        return self.full_name
