import time

import jwt
import pytest
from starlette.requests import Request

from pagewatch.dispatch.endpoints import DISCOVER_ENDPOINT
from pagewatch.dispatch.verification import RequestVerifier, body_digest
from pagewatch.main.exceptions import AuthenticationException
from tests.fixtures import CRON_SECRET, CURRENT_SIGNING_KEY, NEXT_SIGNING_KEY

BODY = b'{"jobId":"job-1","batchIndex":0}'
URL = f"https://tracker.example.com{DISCOVER_ENDPOINT}"


def make_request(headers=None, path=DISCOVER_ENDPOINT):
    return Request(
        {
            "type": "http",
            "method": "POST",
            "scheme": "http",
            "server": ("internal", 8123),
            "path": path,
            "query_string": b"",
            "headers": [(key.lower().encode(), value.encode()) for key, value in (headers or {}).items()],
        }
    )


def sign(key=CURRENT_SIGNING_KEY, signed_body=BODY, url=URL, expires_in=300, **claims):
    now = int(time.time())
    payload = {
        "iss": "Upstash",
        "sub": url,
        "body": body_digest(signed_body),
        "iat": now,
        "nbf": now,
        "exp": now + expires_in,
        **claims,
    }
    return jwt.encode(payload, key, algorithm="HS256")


@pytest.fixture
def verifier(test_settings):
    return RequestVerifier(test_settings)


def test_valid_signature_is_accepted(verifier):
    request = make_request({"Upstash-Signature": sign()})

    assert verifier.verify_phase_request(request, BODY) == "signature"


def test_signature_from_next_key_is_accepted(verifier):
    claims = verifier.verify_signature(sign(key=NEXT_SIGNING_KEY), BODY, URL)

    assert claims["sub"] == URL


def test_padded_body_claim_is_accepted(verifier):
    padded = sign(body=body_digest(BODY) + "=")

    assert verifier.verify_signature(padded, BODY, URL)["iss"] == "Upstash"


@pytest.mark.parametrize(
    "token",
    [
        pytest.param(sign(key="sig_unknown_00000000000000000000000000"), id="unknown-key"),
        pytest.param(sign(url="https://tracker.example.com/api/job/fetch"), id="other-url"),
        pytest.param(sign(signed_body=b'{"jobId":"job-2"}'), id="other-body"),
        pytest.param(sign(expires_in=-60), id="expired"),
        pytest.param(sign(iss="someone-else"), id="wrong-issuer"),
        pytest.param("not-a-jwt", id="garbage"),
    ],
)
def test_invalid_signatures_are_rejected(verifier, token):
    with pytest.raises(AuthenticationException):
        verifier.verify_signature(token, BODY, URL)


def test_missing_signature_is_rejected(verifier):
    with pytest.raises(AuthenticationException):
        verifier.verify_phase_request(make_request(), BODY)


def test_bearer_secret_is_accepted(verifier):
    request = make_request({"Authorization": f"Bearer {CRON_SECRET}"})

    assert verifier.verify_phase_request(request, BODY) == "secret"
    assert verifier.verify_secret(request) == "secret"


def test_wrong_secret_is_rejected(verifier):
    request = make_request({"Authorization": "Bearer nope"})

    with pytest.raises(AuthenticationException):
        verifier.verify_secret(request)
    with pytest.raises(AuthenticationException):
        verifier.verify_phase_request(request, BODY)


def test_local_dev_header_needs_dev_mode(verifier, test_settings):
    request = make_request({"x-local-dev": "true"})

    with pytest.raises(AuthenticationException):
        verifier.verify_phase_request(request, BODY)

    dev_verifier = RequestVerifier(test_settings.model_copy(update={"dev": True}))
    assert dev_verifier.verify_phase_request(request, BODY) == "local"


def test_dev_without_secrets_allows_everything(test_settings):
    settings = test_settings.model_copy(
        update={
            "dev": True,
            "cron_secret": None,
            "qstash_current_signing_key": None,
            "qstash_next_signing_key": None,
        }
    )
    verifier = RequestVerifier(settings)

    assert verifier.verify_phase_request(make_request(), BODY) == "dev"
    assert verifier.verify_secret(make_request()) == "dev"


def test_no_secret_outside_dev_rejects_operator_calls(test_settings):
    verifier = RequestVerifier(test_settings.model_copy(update={"cron_secret": None}))

    with pytest.raises(AuthenticationException):
        verifier.verify_secret(make_request({"Authorization": "Bearer "}))


def test_public_url_uses_base_url(verifier, test_settings):
    assert verifier.public_url(make_request()) == URL

    fallback = RequestVerifier(test_settings.model_copy(update={"base_url": None}))
    assert fallback.public_url(make_request()) == f"http://internal:8123{DISCOVER_ENDPOINT}"


def test_body_digest_is_unpadded_base64url():
    digest = body_digest(b"")

    assert digest == "47DEQpj8HBSa-_TImW-5JCeuQeRkm5NMpJWZG3hSuFU"
    assert "=" not in digest
