from ocsclient.handlers import clusterversion, probes

__all__ = [
    "clusterversion",
    "probes",
]
