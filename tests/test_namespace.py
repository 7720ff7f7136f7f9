import tempfile
import unittest
from pathlib import Path

import httpx

from src.common.config import WebhookConfig
from src.common.errors import NamespaceLookupError
from src.namespace import KubeNamespaceClient, NamespaceClient, NamespaceGate, StaticNamespaceClient


def _namespace_body(name, labels):
    return {"apiVersion": "v1", "kind": "Namespace", "metadata": {"name": name, "labels": labels}}


class KubeNamespaceClientTests(unittest.TestCase):
    def test_fetches_labels_with_bearer_token(self) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json=_namespace_body("free5gc", {"allow-netadmin": "true"}))

        client = KubeNamespaceClient(
            "https://kube.test/", token="s3cret", transport=httpx.MockTransport(handler)
        )
        labels = client.get_namespace("free5gc")
        self.assertEqual(labels, {"allow-netadmin": "true"})
        self.assertEqual(seen["url"], "https://kube.test/api/v1/namespaces/free5gc")
        self.assertEqual(seen["auth"], "Bearer s3cret")

    def test_namespace_without_labels(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"metadata": {"name": "bare"}}))
        client = KubeNamespaceClient("https://kube.test", transport=transport)
        self.assertEqual(client.get_namespace("bare"), {})

    def test_not_found(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(404, json={"reason": "NotFound"}))
        client = KubeNamespaceClient("https://kube.test", transport=transport)
        with self.assertRaises(NamespaceLookupError) as ctx:
            client.get_namespace("ghost")
        self.assertIn('namespaces "ghost" not found', str(ctx.exception))

    def test_server_error(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(503, text="unavailable"))
        client = KubeNamespaceClient("https://kube.test", transport=transport)
        with self.assertRaises(NamespaceLookupError) as ctx:
            client.get_namespace("free5gc")
        self.assertIn("HTTP 503", str(ctx.exception))

    def test_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = KubeNamespaceClient("https://kube.test", transport=httpx.MockTransport(handler))
        with self.assertRaises(NamespaceLookupError):
            client.get_namespace("free5gc")

    def test_invalid_json(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>"))
        client = KubeNamespaceClient("https://kube.test", transport=transport)
        with self.assertRaises(NamespaceLookupError):
            client.get_namespace("free5gc")

    def test_in_cluster_reads_service_account_token(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            Path(tmpdir, "token").write_text("token-value\n", encoding="utf-8")
            client = KubeNamespaceClient.in_cluster(
                WebhookConfig(kubernetes_api_url="https://10.0.0.1:443"), service_account_dir=Path(tmpdir)
            )
        self.assertEqual(client.token, "token-value")
        self.assertEqual(client.base_url, "https://10.0.0.1:443")
        self.assertIs(client.verify, True)


class NamespaceGateTests(unittest.TestCase):
    def setUp(self) -> None:
        self.config = WebhookConfig()
        self.client = StaticNamespaceClient(
            {
                "free5gc": {
                    "5g.kkarczmarek.dev/admission": "true",
                    "allow-netadmin": "true",
                    "allow-hostpath": "false",
                },
                "default": {},
                "sloppy": {"5g.kkarczmarek.dev/admission": "True"},
            }
        )
        self.gate = NamespaceGate(self.client, self.config)

    def test_opted_in_namespace_flags(self) -> None:
        context = self.gate.resolve("free5gc")
        self.assertTrue(context.enabled)
        self.assertTrue(context.allow_net_admin)
        self.assertFalse(context.allow_host_path)

    def test_namespace_without_label_is_disabled(self) -> None:
        self.assertFalse(self.gate.resolve("default").enabled)

    def test_label_value_must_be_exactly_true(self) -> None:
        self.assertFalse(self.gate.resolve("sloppy").enabled)

    def test_unknown_namespace_raises(self) -> None:
        with self.assertRaises(NamespaceLookupError):
            self.gate.resolve("missing")

    def test_collaborator_failures_are_wrapped(self) -> None:
        class Broken(NamespaceClient):
            def get_namespace(self, name):
                raise RuntimeError("etcd is on fire")

        gate = NamespaceGate(Broken(), self.config)
        with self.assertRaises(NamespaceLookupError) as ctx:
            gate.resolve("free5gc")
        self.assertIn("etcd is on fire", str(ctx.exception))


if __name__ == "__main__":
    unittest.main()
