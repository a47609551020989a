from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from ..utils.event_log import EventLog, NullLog
from .schema import Template, TemplateError, default_seed, load_template_json, validate


_SEED_PATH = Path(__file__).resolve().parent / "seed_template.json"


@dataclass
class TemplateStore:
    root: Path
    log: EventLog = field(default_factory=NullLog, repr=False)

    @staticmethod
    def default(log: Optional[EventLog] = None) -> "TemplateStore":
        root = Path(__file__).resolve().parent.parent.parent / "config" / "templates"
        root.mkdir(parents=True, exist_ok=True)
        return TemplateStore(root=root, log=log or NullLog())

    def path_for(self, template_id: str) -> Path:
        safe = "".join(c for c in str(template_id) if c.isalnum() or c in "-_").strip()
        if not safe:
            raise TemplateError(f"Template id cannot be used as a file name: {template_id!r}")
        return self.root / f"{safe}.json"

    def exists(self, template_id: str) -> bool:
        return self.path_for(template_id).exists()

    def save(self, template: Template) -> Path:
        validated = validate(template)
        p = self.path_for(validated.id)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(validated.to_json(indent=2), encoding="utf-8")
        self.log.info(f"Template saved: {validated.id}", component="TemplateStore")
        return p

    def load(self, template_id: str) -> Template:
        p = self.path_for(template_id)
        if not p.exists():
            raise FileNotFoundError(f"Template not found: {p}")
        return load_template_json(p.read_text(encoding="utf-8"))

    def load_all(self) -> List[Template]:
        templates: List[Template] = []
        if not self.root.exists():
            return templates
        for path in sorted(self.root.glob("*.json")):
            try:
                templates.append(load_template_json(path.read_text(encoding="utf-8")))
            except (OSError, TemplateError) as exc:
                self.log.warning(f"Failed to load template from {path.name}: {exc}", component="TemplateStore")
                continue
        return templates

    def delete(self, template_id: str) -> bool:
        p = self.path_for(template_id)
        if not p.exists():
            self.log.warning(f"Template not deleted, missing: {template_id}", component="TemplateStore")
            return False
        p.unlink()
        self.log.info(f"Template deleted: {template_id}", component="TemplateStore")
        return True

    def load_seed(self) -> Template:
        if _SEED_PATH.exists():
            try:
                return load_template_json(_SEED_PATH.read_text(encoding="utf-8"))
            except TemplateError as exc:
                self.log.warning(f"Bundled seed template unreadable: {exc}", component="TemplateStore")
        self.log.info("Could not load seed template file, using default", component="TemplateStore")
        return default_seed()
