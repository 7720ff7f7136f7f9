import json
import unittest

from src.common.errors import DecodeError, UnsupportedKind
from src.common.kinds import WorkloadKind
from src.resource import decode, load_document
from src.resource.model import VolumeSource

POD_MANIFEST = """\
apiVersion: v1
kind: Pod
metadata:
  name: upf
  namespace: free5gc
  labels:
    nf: upf
  annotations:
    5g.kkarczmarek.dev/sst: "1"
spec:
  hostNetwork: false
  initContainers:
    - name: init
      image: ghcr.io/acme/init:1.0
  containers:
    - name: upf
      image: ghcr.io/free5gc/upf:v3.3.0
      ports:
        - name: pfcp
          containerPort: 8805
          protocol: udp
      resources:
        requests:
          cpu: 100m
        limits:
          memory: 1Gi
      securityContext:
        capabilities:
          add: ["NET_ADMIN"]
        seccompProfile: {}
  volumes:
    - name: config
      configMap:
        name: upf-config
    - name: host
      hostPath:
        path: /var/run
"""

DEPLOYMENT = {
    "apiVersion": "apps/v1",
    "kind": "Deployment",
    "metadata": {"name": "amf", "namespace": "free5gc"},
    "spec": {
        "template": {
            "metadata": {"labels": {"app": "amf"}},
            "spec": {"containers": [{"name": "amf", "image": "ghcr.io/free5gc/amf:v3.3.0"}]},
        }
    },
}

CRONJOB = {
    "apiVersion": "batch/v1",
    "kind": "CronJob",
    "metadata": {"name": "cleanup", "namespace": "ops"},
    "spec": {
        "jobTemplate": {
            "spec": {
                "template": {
                    "spec": {"containers": [{"name": "cleanup", "image": "docker.io/library/busybox:1.36"}]}
                }
            }
        }
    },
}


class DecodePodTests(unittest.TestCase):
    def setUp(self) -> None:
        self.view = decode(POD_MANIFEST, "Pod")

    def test_metadata(self) -> None:
        metadata = self.view.metadata
        self.assertTrue(metadata.present)
        self.assertEqual(metadata.name, "upf")
        self.assertEqual(metadata.namespace, "free5gc")
        self.assertEqual(metadata.label("nf"), "upf")
        self.assertEqual(metadata.annotation("5g.kkarczmarek.dev/sst"), "1")
        self.assertEqual(self.view.kind, WorkloadKind.POD)
        self.assertEqual(self.view.base.path, "")
        self.assertFalse(self.view.is_template)

    def test_containers(self) -> None:
        spec = self.view.pod_spec
        self.assertEqual([c.name for c in spec.containers], ["upf"])
        self.assertEqual([c.name for c in spec.init_containers], ["init"])
        container = spec.containers[0]
        self.assertTrue(container.declares_port(8805, "UDP"))
        self.assertFalse(container.declares_port(8805, "TCP"))
        self.assertIsNotNone(container.resources.request("cpu"))
        self.assertIsNone(container.resources.request("memory"))
        self.assertIsNone(container.resources.limit("cpu"))
        self.assertEqual(container.security.capabilities.add, ("NET_ADMIN",))
        self.assertTrue(container.security.seccomp_present)
        self.assertIsNone(container.security.seccomp_type)
        self.assertIsNone(container.security.allow_privilege_escalation)

    def test_volumes(self) -> None:
        volumes = self.view.pod_spec.volumes
        self.assertTrue(self.view.pod_spec.volumes_present)
        self.assertEqual([v.source for v in volumes], [VolumeSource.OTHER, VolumeSource.HOST_PATH])
        self.assertEqual(volumes[1].host_path, "/var/run")

    def test_json_bytes_decode_like_yaml(self) -> None:
        raw = json.dumps(load_document(POD_MANIFEST)).encode("utf-8")
        view = decode(raw, "Pod")
        self.assertEqual(view.pod_spec, self.view.pod_spec)


class DecodeTemplateTests(unittest.TestCase):
    def test_deployment_uses_pod_template(self) -> None:
        view = decode(DEPLOYMENT, "Deployment")
        self.assertEqual(view.base.path, "/spec/template")
        self.assertEqual(view.labels_address.path, "/spec/template/metadata/labels")
        self.assertEqual(view.spec_address.path, "/spec/template/spec")
        self.assertEqual(view.metadata.label("app"), "amf")
        # The template carries no namespace of its own.
        self.assertEqual(view.metadata.namespace, "free5gc")
        self.assertEqual(view.metadata.name, "amf")
        self.assertTrue(view.is_template)

    def test_cronjob_uses_job_template(self) -> None:
        view = decode(CRONJOB, WorkloadKind.CRON_JOB)
        self.assertEqual(view.base.path, "/spec/jobTemplate/spec/template")
        self.assertFalse(view.metadata.present)
        self.assertIsNone(view.metadata.labels)
        self.assertEqual(view.metadata.namespace, "ops")

    def test_source_is_a_copy(self) -> None:
        view = decode(DEPLOYMENT, "Deployment")
        view.source["spec"]["template"]["metadata"]["labels"]["app"] = "changed"
        self.assertEqual(DEPLOYMENT["spec"]["template"]["metadata"]["labels"]["app"], "amf")


class DecodeErrorTests(unittest.TestCase):
    def _pod(self, **spec):
        return {"apiVersion": "v1", "kind": "Pod", "metadata": {"name": "demo"}, "spec": spec}

    def test_unsupported_kind(self) -> None:
        with self.assertRaises(UnsupportedKind):
            decode({"kind": "Service"}, "Service")

    def test_kind_mismatch(self) -> None:
        with self.assertRaises(DecodeError):
            decode(DEPLOYMENT, "Pod")

    def test_structural_errors(self) -> None:
        cases = [
            self._pod(containers={"name": "app"}),
            self._pod(containers=[{"image": "nginx:1.25"}]),
            self._pod(containers=[{"name": "app"}, {"name": "app"}]),
            self._pod(containers=[{"name": "app", "ports": [{"containerPort": "80"}]}]),
            self._pod(containers=[{"name": "app", "resources": {"requests": {"cpu": "fast"}}}]),
            self._pod(hostNetwork="yes"),
            {"kind": "Pod", "metadata": {"labels": {"tier": 1}}},
        ]
        for document in cases:
            with self.assertRaises(DecodeError, msg=json.dumps(document)):
                decode(document, "Pod")

    def test_missing_pod_template(self) -> None:
        cases = [
            ("Deployment", {"kind": "Deployment", "spec": {}}, "spec.template is required"),
            ("StatefulSet", {"kind": "StatefulSet", "spec": {"template": None}}, "spec.template is required"),
            ("CronJob", {"kind": "CronJob", "spec": {}}, "spec.jobTemplate is required"),
            (
                "CronJob",
                {"kind": "CronJob", "spec": {"jobTemplate": {"spec": {}}}},
                "spec.jobTemplate.spec.template is required",
            ),
        ]
        for kind, document, message in cases:
            with self.assertRaises(DecodeError) as ctx:
                decode(document, kind)
            self.assertIn(message, str(ctx.exception))

    def test_missing_containers(self) -> None:
        for spec in ({}, {"containers": None}):
            with self.assertRaises(DecodeError) as ctx:
                decode(self._pod(**spec), "Pod")
            self.assertIn("spec.containers is required", str(ctx.exception))
        with self.assertRaises(DecodeError):
            decode({"kind": "Pod", "metadata": {"name": "bare"}}, "Pod")
        self.assertEqual(decode(self._pod(containers=[]), "Pod").pod_spec.containers, ())

    def test_native_sidecar_restart_policy(self) -> None:
        view = decode(
            self._pod(
                containers=[{"name": "app"}],
                initContainers=[{"name": "proxy", "restartPolicy": "Always"}, {"name": "setup"}],
            ),
            "Pod",
        )
        self.assertEqual([c.is_native_sidecar for c in view.pod_spec.init_containers], [True, False])

    def test_unparseable_text(self) -> None:
        for raw in (b"\xff\xfe", "{not: [valid", "", "- a\n- b\n", "a: 1\n---\nb: 2\n"):
            with self.assertRaises(DecodeError, msg=repr(raw)):
                load_document(raw)


if __name__ == "__main__":
    unittest.main()
