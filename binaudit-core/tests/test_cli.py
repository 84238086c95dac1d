"""
Binary Audit CLI Test Suite
"""

import contextlib
import io
import json
import os
import tempfile
import unittest

from binaudit import digest
from binaudit.cli import main


class TestCLI(unittest.TestCase):
    """Command dispatch and output."""

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmpdir.cleanup)

    def _write(self, name, payload):
        path = os.path.join(self.tmpdir.name, name)
        with open(path, "wb") as f:
            f.write(payload)
        return path

    def _run(self, argv):
        out, err = io.StringIO(), io.StringIO()
        with contextlib.redirect_stdout(out), contextlib.redirect_stderr(err):
            code = main(argv)
        return code, out.getvalue(), err.getvalue()

    def test_hash(self):
        payload = b"\x00asm"
        path = self._write("module.wasm", payload)
        code, out, _ = self._run(["hash", "-f", path])

        self.assertEqual(code, 0)
        self.assertEqual(out.strip(), f"sha256: {digest(payload)}")

    def test_metrics(self):
        path = self._write("module.wasm", b"x" * 10)
        code, out, _ = self._run(["metrics", "-f", path])

        self.assertEqual(code, 0)
        self.assertEqual(json.loads(out), {
            "file_size_bytes": 10,
            "estimated_lines_of_code": 100,
            "function_count": 1,
            "complexity_score": 1,
        })

    def test_analyze_to_file(self):
        path = self._write("module.wasm", b"\x00" * 2_000_000)
        output = os.path.join(self.tmpdir.name, "report.json")

        code, out, err = self._run(["analyze", "-f", path, "-o", output])

        self.assertEqual(code, 0)
        self.assertIn("Report saved to", out)
        self.assertIn("Overall severity: Medium", err)
        with open(output) as f:
            report = json.load(f)
        self.assertEqual(report["overall_severity"], "Medium")
        self.assertEqual(len(report["static_analysis"]["findings"]), 4)

    def test_audit(self):
        path = self._write("module.wasm", b"x" * 10)
        code, out, err = self._run(["audit", "-f", path, "-r", "alice", "-t", "ledger"])

        self.assertEqual(code, 0)
        record = json.loads(out)
        self.assertEqual(record["status"], "Completed")
        self.assertEqual(record["requester"], "alice")
        self.assertEqual(record["target_id"], "ledger")
        self.assertIn("completed", err)

    def test_recommend(self):
        code, out, _ = self._run(["recommend", "finance and data storage"])

        self.assertEqual(code, 0)
        self.assertIn("Implement anti-reentrancy protection", out)
        self.assertIn("Encrypt sensitive data at rest", out)

    def test_demo(self):
        code, out, _ = self._run(["demo"])

        self.assertEqual(code, 0)
        self.assertIn("Binary Audit Demonstration", out)
        self.assertIn("Registry: total=3 completed=3", out)

    def test_no_command(self):
        code, _, _ = self._run([])
        self.assertEqual(code, 2)


if __name__ == "__main__":
    unittest.main(verbosity=2)
