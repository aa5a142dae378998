"""Artifact Store: bookkeeping for artifacts produced and consumed by stages.

The store is scoped to one run. It resolves declared input kinds, persists
handler drafts with a content hash, and enforces the overwrite policy:

- within a run each artifact kind has a single producing stage; re-running
  that stage overwrites its own artifact, any other stage is rejected;
- a file written by a different run is never overwritten implicitly;
- writes are serialized per artifact kind.

ArtifactManager owns the on-disk naming convention and file format (YAML
front matter followed by the markdown body).
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import yaml

from featurepipe.core.errors import ArtifactConflictError, ArtifactOwnershipError
from featurepipe.core.models import Artifact, ArtifactKind, content_hash

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from pathlib import Path

    from featurepipe.core.models import ArtifactDraft

logger = logging.getLogger(__name__)

# Producing stage id recorded for the initiating specification
INPUT_STAGE_ID = "input"

SPEC_SUFFIX = "_specification"

KIND_SUFFIXES: dict[ArtifactKind, str] = {
    ArtifactKind.SPECIFICATION: "_specification.md",
    ArtifactKind.VERIFICATION_REPORT: "_verification_report.md",
    ArtifactKind.TEST_FILE: "_tests.md",
    ArtifactKind.IMPLEMENTATION_GUIDE: "_implementation_guide.md",
    ArtifactKind.CODE_CHANGE_SET: "_changes.md",
    ArtifactKind.REVIEW_REPORT: "_review_report.md",
}

_FRONT_MATTER_DELIMITER = "---"


def feature_name_from_spec(spec_path: Path) -> str:
    """Extract the feature name from a specification filename.

    Example: docs/todo/FEAT47_specification.md -> FEAT47
    """
    stem = spec_path.stem
    if stem.endswith(SPEC_SUFFIX) and len(stem) > len(SPEC_SUFFIX):
        return stem[: -len(SPEC_SUFFIX)]
    return stem


@dataclass(frozen=True)
class ArtifactManager:
    """Derives canonical artifact paths and reads/writes artifact files.

    Attributes:
        artifacts_dir: Directory holding the feature's artifacts.
        feature: Feature name extracted once from the initiating specification.
    """

    artifacts_dir: Path
    feature: str

    def path_for(self, kind: ArtifactKind) -> Path:
        return self.artifacts_dir / f"{self.feature}{KIND_SUFFIXES[kind]}"

    def render(self, artifact: Artifact) -> str:
        """Serialize an artifact as YAML front matter plus body."""
        header: dict[str, Any] = {
            "feature": artifact.feature,
            "kind": artifact.kind.value,
            "stage": artifact.producing_stage,
            "run_id": artifact.run_id,
            "content_hash": artifact.content_hash,
        }
        if artifact.references:
            header["references"] = list(artifact.references)
        front = yaml.safe_dump(header, sort_keys=False).strip()
        return (
            f"{_FRONT_MATTER_DELIMITER}\n{front}\n{_FRONT_MATTER_DELIMITER}\n\n"
            f"{artifact.body.rstrip()}\n"
        )

    def read_header(self, path: Path) -> dict[str, Any] | None:
        """Return the front matter of an artifact file, or None if absent."""
        try:
            text = path.read_text(encoding="utf-8")
        except OSError:
            return None
        if not text.startswith(_FRONT_MATTER_DELIMITER + "\n"):
            return None
        end = text.find(f"\n{_FRONT_MATTER_DELIMITER}\n", len(_FRONT_MATTER_DELIMITER))
        if end == -1:
            return None
        try:
            header = yaml.safe_load(text[len(_FRONT_MATTER_DELIMITER) + 1 : end])
        except yaml.YAMLError:
            return None
        return header if isinstance(header, dict) else None

    def write(self, artifact: Artifact) -> None:
        """Atomically write the artifact file."""
        artifact.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = artifact.path.with_suffix(artifact.path.suffix + ".tmp")
        tmp_path.write_text(self.render(artifact), encoding="utf-8")
        tmp_path.replace(artifact.path)


class ArtifactStore:
    """Run-scoped registry of artifacts keyed by kind.

    Usage:
        store = ArtifactStore(run_id, ArtifactManager(docs_dir, "FEAT47"))
        store.register_specification(spec_path)
        inputs, missing = store.resolve(stage.inputs)
        artifact = store.write("verification", draft)
    """

    def __init__(
        self,
        run_id: str,
        manager: ArtifactManager,
        allow_overwrite: bool = False,
        on_written: Callable[[Artifact], None] | None = None,
    ) -> None:
        self.run_id = run_id
        self.manager = manager
        self.allow_overwrite = allow_overwrite
        self._on_written = on_written
        self._artifacts: dict[ArtifactKind, Artifact] = {}
        self._locks: dict[ArtifactKind, threading.Lock] = {
            kind: threading.Lock() for kind in ArtifactKind
        }

    @property
    def feature(self) -> str:
        return self.manager.feature

    def register_specification(self, spec_path: Path) -> Artifact:
        """Record the initiating specification as this run's input artifact."""
        body = spec_path.read_text(encoding="utf-8")
        artifact = Artifact(
            kind=ArtifactKind.SPECIFICATION,
            feature=self.feature,
            producing_stage=INPUT_STAGE_ID,
            path=spec_path,
            content_hash=content_hash(body),
            body=body,
            run_id=self.run_id,
        )
        with self._locks[ArtifactKind.SPECIFICATION]:
            self._artifacts[ArtifactKind.SPECIFICATION] = artifact
        return artifact

    def get(self, kind: ArtifactKind) -> Artifact | None:
        return self._artifacts.get(kind)

    def has(self, kind: ArtifactKind) -> bool:
        return kind in self._artifacts

    def resolve(
        self, kinds: Iterable[ArtifactKind]
    ) -> tuple[list[Artifact], list[ArtifactKind]]:
        """Resolve declared kinds to artifacts.

        Returns:
            Tuple of (resolved artifacts in declared order, missing kinds).
        """
        resolved: list[Artifact] = []
        missing: list[ArtifactKind] = []
        for kind in kinds:
            artifact = self._artifacts.get(kind)
            if artifact is None:
                missing.append(kind)
            else:
                resolved.append(artifact)
        return resolved, missing

    def write(self, stage_id: str, draft: ArtifactDraft) -> Artifact:
        """Persist a draft produced by ``stage_id``.

        Raises:
            ArtifactOwnershipError: If another stage already produced this kind
                in the current run.
            ArtifactConflictError: If the target file belongs to another run
                and overwriting was not explicitly allowed.
        """
        kind = draft.kind
        with self._locks[kind]:
            existing = self._artifacts.get(kind)
            if existing is not None and existing.producing_stage != stage_id:
                raise ArtifactOwnershipError(stage_id, kind, existing.producing_stage)

            digest = content_hash(draft.body)
            if (
                existing is not None
                and existing.content_hash == digest
                and existing.references == draft.references
            ):
                logger.debug("Artifact %s unchanged; skipping write", existing.path)
                return existing

            path = self.manager.path_for(kind)
            artifact = Artifact(
                kind=kind,
                feature=self.feature,
                producing_stage=stage_id,
                path=path,
                content_hash=digest,
                body=draft.body,
                run_id=self.run_id,
                references=draft.references,
            )

            if existing is None and path.exists():
                header = self.manager.read_header(path) or {}
                if header.get("content_hash") == digest and header.get("stage") == stage_id:
                    # Identical content from an earlier run: nothing to overwrite
                    logger.debug("Artifact %s already up to date on disk", path)
                    self._artifacts[kind] = artifact
                    return artifact
                other_run = header.get("run_id")
                if other_run != self.run_id and not self.allow_overwrite:
                    raise ArtifactConflictError(path, other_run)

            self.manager.write(artifact)
            self._artifacts[kind] = artifact

        logger.info("Wrote %s artifact for stage %s: %s", kind.value, stage_id, path)
        if self._on_written is not None:
            self._on_written(artifact)
        return artifact
