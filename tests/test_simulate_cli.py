from __future__ import annotations

import contextlib
import io
import json
from pathlib import Path
import tempfile
import unittest

from framecoach.camera.lenses import PickReason
from framecoach.cli import main
from framecoach.simulate import format_outcome, load_script, run_script
from framecoach.templates.schema import default_seed
from framecoach.utils.event_log import EventLog


WALK_IN = Path(__file__).resolve().parent.parent / "examples" / "walk_in.yaml"


def _run_cli(argv: list[str]) -> tuple[int, str]:
    buf = io.StringIO()
    with contextlib.redirect_stdout(buf):
        code = main(argv)
    return code, buf.getvalue()


class SimulateTests(unittest.TestCase):
    def test_walk_in_script_switches_lenses(self) -> None:
        outcomes = run_script(load_script(WALK_IN), base_dir=WALK_IN.parent)
        self.assertEqual([o.frame_index for o in outcomes], [1, 2, 3, 4])

        first, second, third, fourth = outcomes
        assert first.lens is not None and first.lens.pick is not None
        self.assertEqual(first.lens.pick.lens.lens_id, "tele")
        self.assertEqual(first.lens.pick.reason, PickReason.SELECTED)

        assert second.lens is not None and second.lens.pick is not None
        self.assertEqual(second.lens.pick.reason, PickReason.DEBOUNCED)
        self.assertAlmostEqual(second.lens.pick.zoom_needed, 0.85)

        assert third.lens is not None and third.lens.pick is not None
        self.assertEqual(third.lens.pick.lens.lens_id, "wide")
        self.assertTrue(third.lens.switched)

        # On target: no lens work at all.
        self.assertIsNone(fourth.lens)
        self.assertEqual(fourth.match.framing_score, 1.0)

    def test_script_without_lenses_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            run_script({"frames": [{"height": 0.5}]})

    def test_inline_template_and_missing_heights(self) -> None:
        template = default_seed().to_dict()
        template["subject"]["targetBoxHeightPct"] = 0.5
        script = {
            "config": {"frame_interval": 1},
            "template": template,
            "lenses": [{"id": "wide", "kind": "wide", "max_zoom": 4.0}],
            "frames": [{"t": 0.0}, {"t": 0.1, "height": 0.25}],
        }
        outcomes = run_script(script)
        self.assertEqual(len(outcomes), 1)
        line = format_outcome(outcomes[0])
        self.assertIn("frame=2", line)
        self.assertIn("instruction=STEP_FORWARD", line)
        self.assertIn("lens=wide zoom=2.00 reason=selected", line)


    def test_null_probe_means_lens_not_measured(self) -> None:
        script = {
            "config": {"frame_interval": 1},
            "lenses": [{"id": "wide", "kind": "wide", "max_zoom": 4.0}, {"id": "tele", "kind": "tele", "max_zoom": 4.0}],
            "frames": [{"t": 0.0, "height": 0.34, "probes": {"wide": 0.34, "tele": None}}],
        }
        outcomes = run_script(script)
        lens = outcomes[0].lens
        assert lens is not None and lens.pick is not None
        self.assertEqual(lens.pick.lens.lens_id, "wide")

    def test_non_numeric_probe_is_a_value_error(self) -> None:
        script = {
            "lenses": [{"id": "wide", "kind": "wide", "max_zoom": 4.0}],
            "frames": [{"height": 0.3, "probes": {"wide": [0.3]}}],
        }
        with self.assertRaises(ValueError):
            run_script(script)

    def test_exposure_is_locked_from_device_section(self) -> None:
        log = EventLog(path=None)
        script = {
            "device": {"min_bias": -0.5, "max_bias": 0.5, "max_wb_gain": 2.0, "wb_gains": [3.0, 1.0, 1.2]},
            "lenses": [{"id": "wide", "kind": "wide", "max_zoom": 4.0}],
            "frames": [],
        }
        run_script(script, log=log)
        self.assertTrue(any("Exposure lock: ev=0.00 temp=5500K" in line for line in log.recent()))


class CliTests(unittest.TestCase):
    def test_seed_list_show_delete(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            code, out = _run_cli(["template", "--root", tmpdir, "seed"])
            self.assertEqual(code, 0)
            self.assertIn("seed_001.json", out)

            code, out = _run_cli(["template", "--root", tmpdir, "list"])
            self.assertEqual(code, 0)
            self.assertIn("seed_001\ttarget_height=0.68", out)

            code, out = _run_cli(["template", "--root", tmpdir, "show", "--id", "seed_001"])
            self.assertEqual(code, 0)
            self.assertEqual(json.loads(out)["id"], "seed_001")

            code, _ = _run_cli(["template", "--root", tmpdir, "delete", "--id", "seed_001"])
            self.assertEqual(code, 0)
            code, _ = _run_cli(["template", "--root", tmpdir, "show", "--id", "seed_001"])
            self.assertEqual(code, 1)

    def test_validate_prints_clamped_template(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            payload = default_seed().to_dict()
            payload["cameraTargets"]["tone"]["contrast"] = 9.0
            path = Path(tmpdir) / "loud.json"
            path.write_text(json.dumps(payload), encoding="utf-8")

            code, out = _run_cli(["template", "--root", tmpdir, "validate", str(path)])
            self.assertEqual(code, 0)
            self.assertEqual(json.loads(out)["cameraTargets"]["tone"]["contrast"], 1.3)

            path.write_text("{}", encoding="utf-8")
            code, out = _run_cli(["template", "--root", tmpdir, "validate", str(path)])
            self.assertEqual(code, 1)

    def test_simulate_command(self) -> None:
        code, out = _run_cli(["simulate", str(WALK_IN)])
        self.assertEqual(code, 0)
        lines = out.strip().splitlines()
        self.assertEqual(len(lines), 4)
        self.assertIn("lens=tele", lines[0])

    def test_simulate_null_probe_script(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "null.yaml"
            path.write_text(
                "config: {frame_interval: 1}\n"
                "lenses: [{id: w, kind: wide, max_zoom: 4.0}]\n"
                "frames: [{t: 0.0, height: 0.3, probes: {w: null}}]\n",
                encoding="utf-8",
            )
            code, out = _run_cli(["simulate", str(path)])
            self.assertEqual(code, 0)
            self.assertIn("lens=none", out)

            path.write_text(
                "lenses: [{id: w, kind: wide}]\n"
                "frames: [{height: 0.3, probes: {w: [1, 2]}}]\n",
                encoding="utf-8",
            )
            code, out = _run_cli(["simulate", str(path)])
            self.assertEqual(code, 1)
            self.assertIn("not a number", out)

    def test_simulate_missing_script(self) -> None:
        code, out = _run_cli(["simulate", "/nonexistent/script.yaml"])
        self.assertEqual(code, 1)
        self.assertTrue(out.startswith("[framecoach]"))


if __name__ == "__main__":
    unittest.main()
