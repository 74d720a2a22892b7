from typing import Any, Dict
from ocsclient.common.models.labels import Labels
from ocsclient.resources.kinds import CONFIG_MAP, CONSOLE_PLUGIN, SERVICE

DEPLOYMENT_NAME = "ocs-client-operator-console"
PLUGIN_NAME = "odf-client-console"
SERVICE_NAME = "ocs-client-operator-console-service"
NGINX_CONFIG_MAP_NAME = "ocs-client-operator-console-nginx-conf"
SERVING_CERT_SECRET_NAME = "ocs-client-operator-console-serving-cert"
DISPLAY_NAME = "Data Foundation Client"

NGINX_CONF_KEY = "nginx.conf"

_NGINX_CONF = """error_log /var/log/nginx/error.log;
events {
    worker_connections 1024;
}
http {
    include /etc/nginx/mime.types;
    default_type application/octet-stream;
    keepalive_timeout 65;
    server {
        listen {port} ssl;
        listen [::]:{port} ssl;
        ssl_certificate /var/serving-cert/tls.crt;
        ssl_certificate_key /var/serving-cert/tls.key;
        root /usr/share/nginx/html;
    }
}
"""


def nginx_conf(port: int) -> str:
    return _NGINX_CONF.replace("{port}", str(port))


def _labels() -> Dict[str, str]:
    return Labels().include_app(DEPLOYMENT_NAME).as_dict()


def nginx_config_map(port: int, namespace: str) -> Dict[str, Any]:
    return {
        "apiVersion": CONFIG_MAP.api_version,
        "kind": CONFIG_MAP.kind,
        "metadata": {"name": NGINX_CONFIG_MAP_NAME, "namespace": namespace},
        "data": {NGINX_CONF_KEY: nginx_conf(port)},
    }


def service(port: int, namespace: str) -> Dict[str, Any]:
    return {
        "apiVersion": SERVICE.api_version,
        "kind": SERVICE.kind,
        "metadata": {
            "name": SERVICE_NAME,
            "namespace": namespace,
            "annotations": {
                "service.beta.openshift.io/serving-cert-secret-name": SERVING_CERT_SECRET_NAME,
            },
            "labels": _labels(),
        },
        "spec": {
            "ports": [
                {
                    "name": "console-port",
                    "protocol": "TCP",
                    "port": port,
                    "targetPort": port,
                }
            ],
            "selector": _labels(),
            "type": "ClusterIP",
        },
    }


def console_plugin(port: int, namespace: str) -> Dict[str, Any]:
    return {
        "apiVersion": CONSOLE_PLUGIN.api_version,
        "kind": CONSOLE_PLUGIN.kind,
        "metadata": {"name": PLUGIN_NAME},
        "spec": {
            "displayName": DISPLAY_NAME,
            "backend": {
                "type": "Service",
                "service": {
                    "name": SERVICE_NAME,
                    "namespace": namespace,
                    "port": port,
                    "basePath": "/",
                },
            },
        },
    }
