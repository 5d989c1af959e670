"""FormCatalogStore — loads form definitions from ``forms/`` on disk.

The catalog directory holds a ``manifest.yaml`` and one YAML or JSON file
per form::

    forms:
      - name: consent
        type: consent
        file: consent.yaml
      - name: demographics
        type: module
        file: demographics.yaml
        study: connect          # optional; defaults to REGISTRY_EXTERNAL_ID

:func:`sync_catalog` pushes the loaded definitions into the database: a
form that does not exist yet is created at version 1, a form whose current
schema differs from the file is revised, and an identical one is left
alone.  Entries naming an unknown study are logged and skipped.

Usage::

    store = FormCatalogStore()     # defaults to forms/ relative to repo root
    store.load()
    results = await sync_catalog(db, store)
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from registry_db.models.enums import FormType
from registry_db.repository import DirectoryRepository, FormRepository

from registry_forms.constants import REGISTRY_EXTERNAL_ID
from registry_forms.models.schema import SurveySchema
from registry_forms.versioning import FormVersionResolver, validate_schema

logger = logging.getLogger(__name__)

MANIFEST_NAME = "manifest.yaml"


# ---------------------------------------------------------------------------
# File helpers
# ---------------------------------------------------------------------------

def find_repo_root(start: Optional[Path] = None) -> Path:
    """Walk upwards from *start* to the nearest dir with pyproject.toml or .git.

    Falls back to cwd if no marker is found.
    """
    p = (start or Path(__file__).resolve()).parent
    for parent in [p, *p.parents]:
        if (parent / "pyproject.toml").exists() or (parent / ".git").exists():
            return parent
    return Path.cwd()


def load_definition(path: Path | str) -> Any:
    """Load one YAML or JSON document (chosen by file suffix)."""
    if isinstance(path, str):
        path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Missing form definition: {path}")
    with path.open("r", encoding="utf-8") as f:
        if path.suffix.lower() == ".json":
            return json.load(f)
        return yaml.safe_load(f)


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

class CatalogEntry(BaseModel):
    """One manifest row."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    type: FormType = FormType.MODULE
    file: str
    external_study_id: str = Field(REGISTRY_EXTERNAL_ID, alias="study")


class CatalogForm(BaseModel):
    """A manifest entry together with its parsed definition."""

    entry: CatalogEntry
    definition: dict[str, Any]
    parsed: SurveySchema


class SyncResult(BaseModel):
    external_study_id: str
    name: str
    action: Literal["created", "revised", "unchanged", "skipped"]
    version: Optional[int] = None


# ---------------------------------------------------------------------------
# FormCatalogStore
# ---------------------------------------------------------------------------

class FormCatalogStore:
    """Loads the manifest and every form definition it lists."""

    def __init__(self, forms_dir: str | Path | None = None) -> None:
        if forms_dir is None:
            forms_dir = find_repo_root() / "forms"
        self._base = Path(forms_dir)
        # Keyed by (external_study_id, name); manifest order preserved
        self.forms: dict[tuple[str, str], CatalogForm] = {}

    @property
    def base_dir(self) -> Path:
        return self._base

    def load(self) -> None:
        """Parse the manifest and all listed definitions.

        Raises ``FileNotFoundError`` for missing files and ``ValueError``
        for a malformed manifest, duplicate entries, or invalid schemas.
        """
        manifest = load_definition(self._base / MANIFEST_NAME) or {}
        raw_entries = manifest.get("forms")
        if not isinstance(raw_entries, list):
            raise ValueError(f"{self._base / MANIFEST_NAME}: 'forms' must be a list")

        forms: dict[tuple[str, str], CatalogForm] = {}
        for raw in raw_entries:
            entry = CatalogEntry.model_validate(raw)
            key = (entry.external_study_id, entry.name)
            if key in forms:
                raise ValueError(f"Duplicate catalog entry: {key}")
            definition = load_definition(self._base / entry.file)
            if not isinstance(definition, dict):
                raise ValueError(f"{entry.file}: form definition must be a mapping")
            forms[key] = CatalogForm(
                entry=entry,
                definition=definition,
                parsed=validate_schema(definition),
            )

        self.forms = forms
        logger.info("FormCatalogStore loaded %d form(s) from %s", len(forms), self._base)

    def get(
        self, name: str, external_study_id: str = REGISTRY_EXTERNAL_ID
    ) -> CatalogForm | None:
        return self.forms.get((external_study_id, name))

    def __len__(self) -> int:
        return len(self.forms)

    def __iter__(self):
        return iter(self.forms.values())


# ---------------------------------------------------------------------------
# Database sync
# ---------------------------------------------------------------------------

async def sync_catalog(
    db: AsyncSession,
    store: FormCatalogStore,
    *,
    resolver: FormVersionResolver | None = None,
    forms: FormRepository | None = None,
    directory: DirectoryRepository | None = None,
    created_by: str | None = "catalog-sync",
) -> list[SyncResult]:
    """Create or revise database forms so they match the on-disk catalog."""
    if resolver is not None:
        forms = forms or resolver.forms
        directory = directory or resolver.directory
    forms = forms or FormRepository()
    directory = directory or DirectoryRepository()
    resolver = resolver or FormVersionResolver(forms=forms, directory=directory)

    results: list[SyncResult] = []
    for item in store:
        entry = item.entry
        study = await directory.get_study_by_external_id(db, entry.external_study_id)
        if study is None:
            logger.warning(
                "Skipping form %s: unknown study '%s'", entry.name, entry.external_study_id
            )
            results.append(
                SyncResult(
                    external_study_id=entry.external_study_id,
                    name=entry.name,
                    action="skipped",
                )
            )
            continue

        current = await forms.get_latest(db, study.id, entry.name)
        if current is None:
            info = await resolver.create_form(
                db,
                study_id=study.id,
                name=entry.name,
                form_type=entry.type,
                schema=item.definition,
                created_by=created_by,
            )
            action = "created"
        elif current.schema != item.definition or FormType(current.type) != entry.type:
            info = await resolver.revise_form(
                db,
                study_id=study.id,
                name=entry.name,
                schema=item.definition,
                created_by=created_by,
                form_type=entry.type,
            )
            action = "revised"
        else:
            logger.debug("Form %s unchanged at v%d", entry.name, current.version)
            results.append(
                SyncResult(
                    external_study_id=entry.external_study_id,
                    name=entry.name,
                    action="unchanged",
                    version=current.version,
                )
            )
            continue

        results.append(
            SyncResult(
                external_study_id=entry.external_study_id,
                name=entry.name,
                action=action,
                version=info.version,
            )
        )

    counts = {a: sum(r.action == a for r in results) for a in ("created", "revised", "unchanged", "skipped")}
    logger.info("Catalog sync: %s", counts)
    return results
