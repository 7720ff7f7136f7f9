import json
import tempfile
import unittest
from pathlib import Path

from typer.testing import CliRunner

from src.webhook.cli import app

COMPLIANT_MANIFEST = """\
apiVersion: apps/v1
kind: Deployment
metadata:
  name: smf
  namespace: free5gc
spec:
  template:
    metadata:
      labels:
        project: free5gc
        app.kubernetes.io/part-of: free5gc
    spec:
      containers:
        - name: smf
          image: ghcr.io/free5gc/smf:v3.3.0
          resources:
            requests: {cpu: 100m, memory: 128Mi}
            limits: {cpu: 500m, memory: 512Mi}
          securityContext:
            allowPrivilegeEscalation: false
            capabilities: {drop: [ALL]}
            seccompProfile: {type: RuntimeDefault}
"""

PRIVILEGED_MANIFEST = """\
apiVersion: v1
kind: Pod
metadata:
  name: debug
spec:
  containers:
    - name: shell
      image: ghcr.io/acme/shell:2.1
      resources:
        requests: {cpu: 100m, memory: 128Mi}
        limits: {cpu: 500m, memory: 512Mi}
      securityContext:
        privileged: true
"""


class ReviewCliTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tmpdir = tempfile.TemporaryDirectory()
        base = Path(self.tmpdir.name)
        self.compliant = base / "smf.yaml"
        self.compliant.write_text(COMPLIANT_MANIFEST, encoding="utf-8")
        self.privileged = base / "debug.yaml"
        self.privileged.write_text(PRIVILEGED_MANIFEST, encoding="utf-8")
        self.runner = CliRunner()

    def tearDown(self) -> None:
        self.tmpdir.cleanup()

    def test_compliant_manifest_validates(self) -> None:
        result = self.runner.invoke(app, ["review", str(self.compliant)])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(json.loads(result.stdout), {"allowed": True})

    def test_compliant_manifest_needs_no_mutation(self) -> None:
        result = self.runner.invoke(app, ["review", str(self.compliant), "--intent", "mutate"])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(json.loads(result.stdout), {"allowed": True})

    def test_violations_exit_non_zero(self) -> None:
        result = self.runner.invoke(app, ["review", str(self.privileged), "--namespace", "lab"])
        self.assertEqual(result.exit_code, 1)
        payload = json.loads(result.stdout)
        self.assertFalse(payload["allowed"])
        self.assertEqual(
            payload["message"],
            "spec.containers[0].securityContext.privileged: Forbidden: privileged is forbidden",
        )
        self.assertEqual(payload["violations"][0]["field"], "spec.containers[0].securityContext.privileged")

    def test_mutation_prints_patch(self) -> None:
        result = self.runner.invoke(app, ["review", str(self.privileged), "--intent", "mutate", "-n", "lab"])
        self.assertEqual(result.exit_code, 0, result.output)
        payload = json.loads(result.stdout)
        self.assertEqual(payload["patchType"], "JSONPatch")
        self.assertEqual(
            [op["path"] for op in payload["patch"]],
            [
                "/metadata/labels",
                "/spec/containers/0/securityContext/allowPrivilegeEscalation",
                "/spec/containers/0/securityContext/capabilities",
                "/spec/containers/0/securityContext/seccompProfile",
            ],
        )

    def test_without_opt_in_nothing_happens(self) -> None:
        result = self.runner.invoke(app, ["review", str(self.privileged), "--no-opt-in"])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(json.loads(result.stdout), {"allowed": True})

    def test_namespace_labels_grant_capabilities(self) -> None:
        manifest = Path(self.tmpdir.name) / "capture.yaml"
        manifest.write_text(
            COMPLIANT_MANIFEST.replace("drop: [ALL]", "drop: [ALL], add: [NET_ADMIN]"), encoding="utf-8"
        )
        denied = self.runner.invoke(app, ["review", str(manifest)])
        self.assertEqual(denied.exit_code, 1)
        allowed = self.runner.invoke(app, ["review", str(manifest), "--ns-label", "allow-netadmin=true"])
        self.assertEqual(allowed.exit_code, 0, allowed.output)

    def test_bad_namespace_label(self) -> None:
        result = self.runner.invoke(app, ["review", str(self.compliant), "--ns-label", "novalue"])
        self.assertNotEqual(result.exit_code, 0)


if __name__ == "__main__":
    unittest.main()
