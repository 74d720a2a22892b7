"""Desired state of the ceph-csi drivers deployed by the operator.

Every function is pure: it returns a freshly built object body from a few
scalar parameters and never looks at the cluster.
"""
import logging
from typing import Any, Dict, List, NamedTuple
from ocsclient.common.models.labels import Labels
from ocsclient.common.models.version import Version
from ocsclient.resources.kinds import (
    CSI_DRIVER,
    DAEMON_SET,
    DEPLOYMENT,
    SECURITY_CONTEXT_CONSTRAINTS,
)
from ocsclient.utils.errors import UnsupportedVersionError

CEPHFS_DEPLOYMENT_NAME = "csi-cephfsplugin-provisioner"
CEPHFS_DAEMON_SET_NAME = "csi-cephfsplugin"
RBD_DEPLOYMENT_NAME = "csi-rbdplugin-provisioner"
RBD_DAEMON_SET_NAME = "csi-rbdplugin"

SCC_NAME = "ocs-client-operator-csi-scc"
SERVICE_ACCOUNT_PROVISIONER = "csi-provisioner"
SERVICE_ACCOUNT_NODE_PLUGIN = "csi-nodeplugin"

MON_CONFIG_MAP_NAME = "ceph-csi-configs"
ENCRYPTION_CONFIG_MAP_NAME = "ceph-csi-kms-config"

KUBELET_DIR = "/var/lib/kubelet"
CSI_SOCKET = "unix:///csi/csi.sock"
CSI_ADDONS_SOCKET = "unix:///csi/csi-addons.sock"

logger = logging.getLogger(__name__)


class SidecarImages(NamedTuple):
    provisioner: str
    attacher: str
    resizer: str
    snapshotter: str
    registrar: str
    csi_addons: str


#: Sidecar images qualified for each OpenShift minor release
SIDECAR_IMAGES: Dict[str, SidecarImages] = {
    "4.13": SidecarImages(
        provisioner="registry.k8s.io/sig-storage/csi-provisioner:v3.4.0",
        attacher="registry.k8s.io/sig-storage/csi-attacher:v4.2.0",
        resizer="registry.k8s.io/sig-storage/csi-resizer:v1.7.0",
        snapshotter="registry.k8s.io/sig-storage/csi-snapshotter:v6.2.1",
        registrar="registry.k8s.io/sig-storage/csi-node-driver-registrar:v2.7.0",
        csi_addons="quay.io/csiaddons/k8s-sidecar:v0.6.0",
    ),
    "4.14": SidecarImages(
        provisioner="registry.k8s.io/sig-storage/csi-provisioner:v3.5.0",
        attacher="registry.k8s.io/sig-storage/csi-attacher:v4.3.0",
        resizer="registry.k8s.io/sig-storage/csi-resizer:v1.8.0",
        snapshotter="registry.k8s.io/sig-storage/csi-snapshotter:v6.2.2",
        registrar="registry.k8s.io/sig-storage/csi-node-driver-registrar:v2.8.0",
        csi_addons="quay.io/csiaddons/k8s-sidecar:v0.7.0",
    ),
}


def initialize_sidecars(cluster_version: str) -> SidecarImages:
    """Select sidecar images for the cluster's desired OpenShift version.

    Releases newer than every entry in SIDECAR_IMAGES use the newest entry
    older than them. Unparseable versions and versions older than the oldest
    entry raise UnsupportedVersionError.
    """
    try:
        version = Version.from_str(cluster_version)
    except ValueError as ex:
        raise UnsupportedVersionError(
            f"unable to parse cluster version {cluster_version!r}"
        ) from ex
    if version.major_minor in SIDECAR_IMAGES:
        return SIDECAR_IMAGES[version.major_minor]

    wanted = (version.info.major, version.info.minor)
    candidates = sorted(
        (tuple(int(part) for part in key.split(".")), key) for key in SIDECAR_IMAGES
    )
    older = [key for parsed, key in candidates if parsed < wanted]
    if not older:
        raise UnsupportedVersionError(
            f"no csi sidecar images available for cluster version {cluster_version}"
        )
    logger.info(
        f"no csi sidecar images registered for {version.major_minor}, using {older[-1]}"
    )
    return SIDECAR_IMAGES[older[-1]]


def cephfs_driver_name(namespace: str) -> str:
    return f"{namespace}.cephfs.csi.ceph.com"


def rbd_driver_name(namespace: str) -> str:
    return f"{namespace}.rbd.csi.ceph.com"


# ---- building blocks ----


def _env(name: str, field_path: str = None, value: str = None) -> Dict[str, Any]:
    if field_path:
        return {"name": name, "valueFrom": {"fieldRef": {"fieldPath": field_path}}}
    return {"name": name, "value": value}


def _mount(name: str, path: str, **kwargs) -> Dict[str, Any]:
    return {"name": name, "mountPath": path, **kwargs}


def _host_path(name: str, path: str, type_: str = None) -> Dict[str, Any]:
    host_path = {"path": path}
    if type_:
        host_path["type"] = type_
    return {"name": name, "hostPath": host_path}


def _sidecar(name: str, image: str, args: List[str]) -> Dict[str, Any]:
    return {
        "name": name,
        "image": image,
        "imagePullPolicy": "IfNotPresent",
        "args": ["--csi-address=$(ADDRESS)", "--v=5", *args],
        "env": [_env("ADDRESS", value=CSI_SOCKET)],
        "volumeMounts": [_mount("socket-dir", "/csi")],
    }


def _config_volumes() -> List[Dict[str, Any]]:
    return [
        {
            "name": "ceph-csi-configs",
            "configMap": {
                "name": MON_CONFIG_MAP_NAME,
                "items": [{"key": "config.json", "path": "config.json"}],
            },
        },
        {
            "name": "ceph-csi-kms-config",
            "configMap": {
                "name": ENCRYPTION_CONFIG_MAP_NAME,
                "items": [{"key": "config.json", "path": "config.json"}],
                "optional": True,
            },
        },
        {"name": "keys-tmp-dir", "emptyDir": {"medium": "Memory"}},
    ]


def _config_mounts() -> List[Dict[str, Any]]:
    return [
        _mount("ceph-csi-configs", "/etc/ceph-csi-config/"),
        _mount("ceph-csi-kms-config", "/etc/ceph-csi-encryption-kms-config/"),
        _mount("keys-tmp-dir", "/tmp/csi/keys"),
    ]


def _plugin(
    name: str, image: str, driver_type: str, driver_name: str, nodeserver: bool
) -> Dict[str, Any]:
    """The cephcsi container, in controller or node server mode."""
    args = [
        f"--type={driver_type}",
        f"--drivername={driver_name}",
        "--endpoint=$(CSI_ENDPOINT)",
        "--nodeid=$(NODE_ID)",
        "--pidlimit=-1",
        "--v=5",
    ]
    if nodeserver:
        args.append("--nodeserver=true")
    else:
        args.append("--controllerserver=true")
    if driver_type == "rbd":
        args += ["--csi-addons-endpoint=$(CSIADDONS_ENDPOINT)"]

    container = {
        "name": name,
        "image": image,
        "imagePullPolicy": "IfNotPresent",
        "args": args,
        "env": [
            _env("NODE_ID", field_path="spec.nodeName"),
            _env("POD_IP", field_path="status.podIP"),
            _env("POD_NAMESPACE", field_path="metadata.namespace"),
            _env("CSI_ENDPOINT", value=CSI_SOCKET),
        ],
        "volumeMounts": [_mount("socket-dir", "/csi"), *_config_mounts()],
    }
    if driver_type == "rbd":
        container["env"].append(_env("CSIADDONS_ENDPOINT", value=CSI_ADDONS_SOCKET))
    if nodeserver:
        container["securityContext"] = {
            "privileged": True,
            "capabilities": {"add": ["SYS_ADMIN"]},
            "allowPrivilegeEscalation": True,
        }
        container["volumeMounts"] += [
            _mount("host-sys", "/sys"),
            _mount("lib-modules", "/lib/modules", readOnly=True),
            _mount("host-dev", "/dev"),
            _mount(
                "mountpoint-dir",
                f"{KUBELET_DIR}/pods",
                mountPropagation="Bidirectional",
            ),
            _mount(
                "plugin-dir",
                f"{KUBELET_DIR}/plugins",
                mountPropagation="Bidirectional",
            ),
        ]
    return container


def _csi_addons(image: str) -> Dict[str, Any]:
    return {
        "name": "csi-addons",
        "image": image,
        "imagePullPolicy": "IfNotPresent",
        "args": [
            "--node-id=$(NODE_ID)",
            "--v=5",
            "--csi-addons-address=$(CSIADDONS_ENDPOINT)",
            "--controller-port=9070",
            "--pod=$(POD_NAME)",
            "--namespace=$(POD_NAMESPACE)",
            "--pod-uid=$(POD_UID)",
            "--stagingpath=/var/lib/kubelet/plugins/kubernetes.io/csi/",
        ],
        "env": [
            _env("NODE_ID", field_path="spec.nodeName"),
            _env("POD_NAME", field_path="metadata.name"),
            _env("POD_NAMESPACE", field_path="metadata.namespace"),
            _env("POD_UID", field_path="metadata.uid"),
            _env("CSIADDONS_ENDPOINT", value=CSI_ADDONS_SOCKET),
        ],
        "ports": [{"name": "csi-addons", "containerPort": 9070}],
        "volumeMounts": [_mount("socket-dir", "/csi")],
    }


def _deployment(
    name: str, namespace: str, containers: List[Dict[str, Any]]
) -> Dict[str, Any]:
    labels = Labels.generate_default_labels(name, "csi-provisioner").as_dict()
    selector = Labels().include_app(name).as_dict()
    return {
        "apiVersion": DEPLOYMENT.api_version,
        "kind": DEPLOYMENT.kind,
        "metadata": {"name": name, "namespace": namespace, "labels": labels},
        "spec": {
            "replicas": 2,
            "selector": {"matchLabels": selector},
            "template": {
                "metadata": {"labels": labels},
                "spec": {
                    "serviceAccountName": SERVICE_ACCOUNT_PROVISIONER,
                    "priorityClassName": "system-cluster-critical",
                    "affinity": {
                        "podAntiAffinity": {
                            "requiredDuringSchedulingIgnoredDuringExecution": [
                                {
                                    "labelSelector": {"matchLabels": selector},
                                    "topologyKey": "kubernetes.io/hostname",
                                }
                            ]
                        }
                    },
                    "containers": containers,
                    "volumes": [
                        {"name": "socket-dir", "emptyDir": {"medium": "Memory"}},
                        *_config_volumes(),
                    ],
                },
            },
        },
    }


def _daemon_set(
    name: str,
    namespace: str,
    driver_name: str,
    containers: List[Dict[str, Any]],
) -> Dict[str, Any]:
    labels = Labels.generate_default_labels(name, "csi-nodeplugin").as_dict()
    selector = Labels().include_app(name).as_dict()
    plugin_dir = f"{KUBELET_DIR}/plugins/{driver_name}"
    return {
        "apiVersion": DAEMON_SET.api_version,
        "kind": DAEMON_SET.kind,
        "metadata": {"name": name, "namespace": namespace, "labels": labels},
        "spec": {
            "selector": {"matchLabels": selector},
            "updateStrategy": {
                "type": "RollingUpdate",
                "rollingUpdate": {"maxUnavailable": 1},
            },
            "template": {
                "metadata": {"labels": labels},
                "spec": {
                    "serviceAccountName": SERVICE_ACCOUNT_NODE_PLUGIN,
                    "priorityClassName": "system-node-critical",
                    "hostNetwork": True,
                    "hostPID": True,
                    "dnsPolicy": "ClusterFirstWithHostNet",
                    "containers": containers,
                    "volumes": [
                        _host_path("socket-dir", plugin_dir, "DirectoryOrCreate"),
                        _host_path(
                            "registration-dir",
                            f"{KUBELET_DIR}/plugins_registry/",
                            "Directory",
                        ),
                        _host_path(
                            "mountpoint-dir", f"{KUBELET_DIR}/pods", "DirectoryOrCreate"
                        ),
                        _host_path(
                            "plugin-dir", f"{KUBELET_DIR}/plugins", "Directory"
                        ),
                        _host_path("host-sys", "/sys"),
                        _host_path("lib-modules", "/lib/modules"),
                        _host_path("host-dev", "/dev"),
                        *_config_volumes(),
                    ],
                },
            },
        },
    }


def _registrar(image: str, driver_name: str) -> Dict[str, Any]:
    return {
        "name": "driver-registrar",
        "image": image,
        "imagePullPolicy": "IfNotPresent",
        "args": [
            "--v=5",
            "--csi-address=/csi/csi.sock",
            f"--kubelet-registration-path={KUBELET_DIR}/plugins/{driver_name}/csi.sock",
        ],
        "securityContext": {"privileged": True},
        "volumeMounts": [
            _mount("socket-dir", "/csi"),
            _mount("registration-dir", "/registration"),
        ],
    }


# ---- workloads ----


def cephfs_deployment(
    namespace: str, images: SidecarImages, csi_image: str
) -> Dict[str, Any]:
    driver_name = cephfs_driver_name(namespace)
    return _deployment(
        CEPHFS_DEPLOYMENT_NAME,
        namespace,
        [
            _sidecar(
                "csi-provisioner",
                images.provisioner,
                [
                    "--timeout=150s",
                    "--leader-election=true",
                    "--retry-interval-start=500ms",
                    "--extra-create-metadata=true",
                ],
            ),
            _sidecar(
                "csi-resizer",
                images.resizer,
                ["--timeout=150s", "--leader-election", "--handle-volume-inuse-error=false"],
            ),
            _sidecar(
                "csi-snapshotter",
                images.snapshotter,
                ["--timeout=150s", "--leader-election=true", "--extra-create-metadata=true"],
            ),
            _plugin("csi-cephfsplugin", csi_image, "cephfs", driver_name, nodeserver=False),
        ],
    )


def cephfs_daemon_set(
    namespace: str, images: SidecarImages, csi_image: str
) -> Dict[str, Any]:
    driver_name = cephfs_driver_name(namespace)
    return _daemon_set(
        CEPHFS_DAEMON_SET_NAME,
        namespace,
        driver_name,
        [
            _registrar(images.registrar, driver_name),
            _plugin("csi-cephfsplugin", csi_image, "cephfs", driver_name, nodeserver=True),
        ],
    )


def rbd_deployment(
    namespace: str, images: SidecarImages, csi_image: str
) -> Dict[str, Any]:
    driver_name = rbd_driver_name(namespace)
    return _deployment(
        RBD_DEPLOYMENT_NAME,
        namespace,
        [
            _sidecar(
                "csi-provisioner",
                images.provisioner,
                [
                    "--timeout=150s",
                    "--leader-election=true",
                    "--retry-interval-start=500ms",
                    "--default-fstype=ext4",
                    "--extra-create-metadata=true",
                ],
            ),
            _sidecar(
                "csi-resizer",
                images.resizer,
                ["--timeout=150s", "--leader-election", "--handle-volume-inuse-error=false"],
            ),
            _sidecar(
                "csi-attacher",
                images.attacher,
                ["--timeout=150s", "--leader-election=true"],
            ),
            _sidecar(
                "csi-snapshotter",
                images.snapshotter,
                ["--timeout=150s", "--leader-election=true", "--extra-create-metadata=true"],
            ),
            _plugin("csi-rbdplugin", csi_image, "rbd", driver_name, nodeserver=False),
            _csi_addons(images.csi_addons),
        ],
    )


def rbd_daemon_set(
    namespace: str, images: SidecarImages, csi_image: str
) -> Dict[str, Any]:
    driver_name = rbd_driver_name(namespace)
    return _daemon_set(
        RBD_DAEMON_SET_NAME,
        namespace,
        driver_name,
        [
            _registrar(images.registrar, driver_name),
            _plugin("csi-rbdplugin", csi_image, "rbd", driver_name, nodeserver=True),
            _csi_addons(images.csi_addons),
        ],
    )


# ---- cluster scoped ----


def cephfs_csi_driver(namespace: str) -> Dict[str, Any]:
    return _csi_driver(cephfs_driver_name(namespace))


def rbd_csi_driver(namespace: str) -> Dict[str, Any]:
    return _csi_driver(rbd_driver_name(namespace))


def _csi_driver(name: str) -> Dict[str, Any]:
    return {
        "apiVersion": CSI_DRIVER.api_version,
        "kind": CSI_DRIVER.kind,
        "metadata": {"name": name},
        "spec": {
            "attachRequired": True,
            "podInfoOnMount": False,
            "fsGroupPolicy": "File",
        },
    }


def write_once_config_map(name: str, namespace: str) -> Dict[str, Any]:
    """Initial content of the csi monitor and encryption config maps."""
    return {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": {"name": name, "namespace": namespace},
        "data": {"config.json": "[]"},
    }


def security_context_constraints(namespace: str) -> Dict[str, Any]:
    """Privileges the node plugins need, granted to the csi service accounts."""
    return {
        "apiVersion": SECURITY_CONTEXT_CONSTRAINTS.api_version,
        "kind": SECURITY_CONTEXT_CONSTRAINTS.kind,
        "metadata": {"name": SCC_NAME},
        "allowHostDirVolumePlugin": True,
        "allowHostIPC": True,
        "allowHostNetwork": True,
        "allowHostPID": True,
        "allowHostPorts": True,
        "allowPrivilegedContainer": True,
        "allowPrivilegeEscalation": True,
        "allowedCapabilities": ["SYS_ADMIN"],
        "readOnlyRootFilesystem": False,
        "requiredDropCapabilities": [],
        "defaultAddCapabilities": [],
        "fsGroup": {"type": "RunAsAny"},
        "runAsUser": {"type": "RunAsAny"},
        "seLinuxContext": {"type": "RunAsAny"},
        "supplementalGroups": {"type": "RunAsAny"},
        "volumes": ["configMap", "emptyDir", "hostPath", "projected", "secret"],
        "users": [
            f"system:serviceaccount:{namespace}:{SERVICE_ACCOUNT_PROVISIONER}",
            f"system:serviceaccount:{namespace}:{SERVICE_ACCOUNT_NODE_PLUGIN}",
        ],
    }
