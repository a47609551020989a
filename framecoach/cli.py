from __future__ import annotations

import argparse
from pathlib import Path

import yaml

from .config import load_engine_config
from .simulate import format_outcome, load_script, run_script
from .templates.schema import TemplateError, load_template_json
from .templates.store import TemplateStore
from .utils.event_log import EventLog


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="framecoach",
        description="Template framing coach: lens selection and match scoring.",
    )
    p.add_argument("--config", default=None, help="Engine YAML config (default: config/engine.yaml).")
    p.add_argument("--log", default=None, help="Append log lines to this file.")
    p.add_argument("--verbose", action="store_true", help="Echo log lines to stdout.")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_tpl = sub.add_parser("template", help="Template management")
    p_tpl.add_argument("--root", default=None, help="Template directory (default: config/templates).")
    subt = p_tpl.add_subparsers(dest="action", required=True)

    subt.add_parser("seed", help="Save the bundled seed template to the store")
    subt.add_parser("list", help="List stored templates")

    p_show = subt.add_parser("show", help="Show a stored template")
    p_show.add_argument("--id", required=True, dest="template_id")

    p_validate = subt.add_parser("validate", help="Parse a template file and print its clamped form")
    p_validate.add_argument("path")
    p_validate.add_argument("--save", action="store_true", help="Also save it to the store.")

    p_del = subt.add_parser("delete", help="Delete a stored template")
    p_del.add_argument("--id", required=True, dest="template_id")

    p_sim = sub.add_parser("simulate", help="Replay a YAML/JSON frame script through the engine")
    p_sim.add_argument("script")

    return p


def _store(args: argparse.Namespace, log: EventLog) -> TemplateStore:
    if args.root:
        return TemplateStore(root=Path(args.root), log=log)
    return TemplateStore.default(log=log)


def main(argv: list[str] | None = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)

    log = EventLog(path=Path(args.log) if args.log else None, echo=args.verbose)
    config = load_engine_config(Path(args.config) if args.config else None)

    if args.cmd == "template":
        store = _store(args, log)
        if args.action == "seed":
            out = store.save(store.load_seed())
            print(f"Saved: {out}")
            return 0
        if args.action == "list":
            for tpl in store.load_all():
                print(f"{tpl.id}\ttarget_height={tpl.target_height:.2f}\tbones={len(tpl.key_bone_pairs)}")
            return 0
        if args.action == "show":
            try:
                tpl = store.load(args.template_id)
            except (FileNotFoundError, TemplateError) as e:
                print(f"[framecoach] {e}")
                return 1
            print(tpl.to_json(indent=2))
            return 0
        if args.action == "validate":
            try:
                tpl = load_template_json(Path(args.path).read_text(encoding="utf-8"))
            except (OSError, TemplateError) as e:
                print(f"[framecoach] {e}")
                return 1
            print(tpl.to_json(indent=2))
            if args.save:
                print(f"Saved: {store.save(tpl)}")
            return 0
        if args.action == "delete":
            return 0 if store.delete(args.template_id) else 1

    if args.cmd == "simulate":
        script_path = Path(args.script)
        try:
            script = load_script(script_path)
            outcomes = run_script(script, base_dir=script_path.parent, config=config, log=log)
        except (OSError, ValueError, yaml.YAMLError) as e:
            print(f"[framecoach] {e}")
            return 1
        for outcome in outcomes:
            print(format_outcome(outcome))
        return 0

    return 2
