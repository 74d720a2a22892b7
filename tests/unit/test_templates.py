"""Unit tests for desired-state templates."""

import pytest
from ocsclient.templates import console, csi, monitoring
from ocsclient.utils.errors import UnsupportedVersionError
from tests.unit.conftest import NAMESPACE


class TestInitializeSidecars:
    """Tests for initialize_sidecars()."""

    def test_exact_minor(self):
        assert csi.initialize_sidecars("4.13.7") == csi.SIDECAR_IMAGES["4.13"]
        assert csi.initialize_sidecars("4.14.0") == csi.SIDECAR_IMAGES["4.14"]

    def test_prerelease(self):
        assert csi.initialize_sidecars("4.14.0-rc.3") == csi.SIDECAR_IMAGES["4.14"]

    def test_newer_minor_uses_latest_older(self):
        assert csi.initialize_sidecars("4.17.1") == csi.SIDECAR_IMAGES["4.14"]
        assert csi.initialize_sidecars("5.0.0") == csi.SIDECAR_IMAGES["4.14"]

    def test_older_than_every_entry(self):
        with pytest.raises(UnsupportedVersionError):
            csi.initialize_sidecars("4.12.9")

    @pytest.mark.parametrize("version", ["", "4.14", "latest"])
    def test_unparseable(self, version):
        with pytest.raises(UnsupportedVersionError):
            csi.initialize_sidecars(version)


class TestCsiTemplates:
    """Tests for the CSI workload and driver templates."""

    def test_driver_names_carry_namespace(self):
        assert csi.cephfs_driver_name(NAMESPACE) == f"{NAMESPACE}.cephfs.csi.ceph.com"
        assert csi.rbd_driver_name(NAMESPACE) == f"{NAMESPACE}.rbd.csi.ceph.com"
        assert csi.rbd_csi_driver(NAMESPACE)["metadata"] == {
            "name": f"{NAMESPACE}.rbd.csi.ceph.com"
        }

    def test_daemon_set_registers_driver(self):
        images = csi.SIDECAR_IMAGES["4.14"]
        body = csi.cephfs_daemon_set(NAMESPACE, images, "cephcsi:test")
        (registrar, plugin) = body["spec"]["template"]["spec"]["containers"]
        assert registrar["image"] == images.registrar
        assert (
            f"--kubelet-registration-path=/var/lib/kubelet/plugins/"
            f"{NAMESPACE}.cephfs.csi.ceph.com/csi.sock"
        ) in registrar["args"]
        assert plugin["image"] == "cephcsi:test"
        assert "--nodeserver=true" in plugin["args"]

    def test_selectors_match_pod_labels(self):
        images = csi.SIDECAR_IMAGES["4.14"]
        for template in (
            csi.cephfs_deployment,
            csi.cephfs_daemon_set,
            csi.rbd_deployment,
            csi.rbd_daemon_set,
        ):
            spec = template(NAMESPACE, images, "cephcsi:test")["spec"]
            pod_labels = spec["template"]["metadata"]["labels"]
            for key, value in spec["selector"]["matchLabels"].items():
                assert pod_labels[key] == value

    def test_templates_are_fresh_objects(self):
        images = csi.SIDECAR_IMAGES["4.14"]
        first = csi.rbd_deployment(NAMESPACE, images, "cephcsi:test")
        first["spec"]["replicas"] = 0
        assert csi.rbd_deployment(NAMESPACE, images, "cephcsi:test")["spec"]["replicas"] == 2

    def test_scc_grants_service_accounts(self):
        users = csi.security_context_constraints(NAMESPACE)["users"]
        assert f"system:serviceaccount:{NAMESPACE}:csi-provisioner" in users
        assert f"system:serviceaccount:{NAMESPACE}:csi-nodeplugin" in users


class TestConsoleTemplates:
    """Tests for the console templates."""

    def test_nginx_listens_on_port(self):
        conf = console.nginx_conf(9001)
        assert "listen 9001 ssl;" in conf
        assert "listen [::]:9001 ssl;" in conf

    def test_service_requests_serving_cert(self):
        body = console.service(9001, NAMESPACE)
        assert body["metadata"]["annotations"] == {
            "service.beta.openshift.io/serving-cert-secret-name": (
                console.SERVING_CERT_SECRET_NAME
            )
        }
        assert body["spec"]["selector"] == {"app": console.DEPLOYMENT_NAME}


class TestPrometheusRuleTemplate:
    """Tests for the PVC alerting rules."""

    def test_packaged_rules(self):
        rule = monitoring.load_pvc_rules()
        assert rule["kind"] == "PrometheusRule"
        assert rule["metadata"]["name"] == monitoring.PROMETHEUS_RULE_NAME
        alerts = [r["alert"] for group in rule["spec"]["groups"] for r in group["rules"]]
        assert len(alerts) == 2

    def test_labels_replaced(self):
        rule = monitoring.pvc_prometheus_rule(NAMESPACE, {"team": "storage"})
        assert rule["metadata"]["namespace"] == NAMESPACE
        assert rule["metadata"]["labels"] == {"team": "storage"}
