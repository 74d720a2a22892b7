import datetime
import kopf
from ocsclient.handlers.clusterversion import names_in_queue


# Liveness probe
@kopf.on.probe(id='now')
def get_current_timestamp(**kwargs):
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


@kopf.on.probe(id='queued')
def get_queued_reconciliations(**kwargs):
    return sorted(names_in_queue)
