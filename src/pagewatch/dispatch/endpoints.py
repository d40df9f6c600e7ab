DISCOVER_ENDPOINT = "/api/job/discover"
FETCH_ENDPOINT = "/api/job/fetch"
FINALIZE_ENDPOINT = "/api/job/finalize"

PHASE_ENDPOINTS = (DISCOVER_ENDPOINT, FETCH_ENDPOINT, FINALIZE_ENDPOINT)

LOCAL_DEV_HEADER = "x-local-dev"
SIGNATURE_HEADER = "Upstash-Signature"
