"""Tests for OSS HMAC-SHA1 request signing.

Tests cover:
- Canonicalized resource (sub-resource allow-list, ordering, bare names)
- Canonicalized x-oss-* headers
- The five-line string to sign
- Authorization header and signature determinism
- Presigned URL query strings
- POST policy documents
"""

import base64
import hashlib
import hmac
import json
import urllib.parse

import pytest

from conftest import ACCESS_KEY_ID, ACCESS_KEY_SECRET
from ossclient.errors import ErrorKind, SigningError
from ossclient.signing import (
    OssSigner,
    build_string_to_sign,
    canonicalize_headers,
    canonicalize_resource,
    compute_signature,
    normalize_headers,
)

PUT_DATE = "Wed, 28 Dec 2022 12:00:00 GMT"


def _hmac_b64(secret: str, message: str) -> str:
    digest = hmac.new(secret.encode(), message.encode(), hashlib.sha1).digest()
    return base64.b64encode(digest).decode()


class TestCanonicalizeResource:
    """Tests for the canonicalized resource."""

    def test_bucket_and_key(self):
        assert canonicalize_resource("test-bucket", "a/b.txt") == "/test-bucket/a/b.txt"

    def test_bucket_level_request(self):
        assert canonicalize_resource("test-bucket", "") == "/test-bucket/"

    def test_non_reserved_params_excluded(self):
        query = {"list-type": "2", "prefix": "photos/", "max-keys": "10"}
        assert canonicalize_resource("b", "", query) == "/b/"

    def test_only_reserved_params_kept_and_sorted(self):
        query = {
            "uploadId": "abc",
            "prefix": "ignored",
            "partNumber": 3,
            "acl": "",
        }
        assert canonicalize_resource("b", "k", query) == "/b/k?acl&partNumber=3&uploadId=abc"

    def test_empty_and_none_values_render_bare(self):
        assert canonicalize_resource("b", "k", {"uploads": ""}) == "/b/k?uploads"
        assert canonicalize_resource("b", "k", {"uploads": None}) == "/b/k?uploads"

    def test_allow_list_is_case_insensitive(self):
        query = {"UPLOADS": "", "PartNumber": "1"}
        assert canonicalize_resource("b", "k", query) == "/b/k?PartNumber=1&UPLOADS"

    def test_response_override_params_kept(self):
        query = {"response-content-type": "text/plain", "x": "y"}
        assert (
            canonicalize_resource("b", "k", query)
            == "/b/k?response-content-type=text/plain"
        )


class TestCanonicalizeHeaders:
    """Tests for the canonicalized x-oss-* headers."""

    def test_no_oss_headers_is_empty(self):
        assert canonicalize_headers({"Content-Type": "text/plain"}) == ""
        assert canonicalize_headers(None) == ""

    def test_lowercases_trims_and_terminates_lines(self):
        headers = {"X-OSS-Meta-Author": "  alice  "}
        assert canonicalize_headers(headers) == "x-oss-meta-author:alice\n"

    def test_insertion_order_does_not_matter(self):
        first = {"x-oss-meta-b": "2", "x-oss-meta-a": "1", "x-oss-copy-source": "/b/k"}
        second = {"x-oss-copy-source": "/b/k", "x-oss-meta-a": "1", "x-oss-meta-b": "2"}
        expected = "x-oss-copy-source:/b/k\nx-oss-meta-a:1\nx-oss-meta-b:2\n"
        assert canonicalize_headers(first) == expected
        assert canonicalize_headers(second) == expected

    def test_normalize_headers_lowercases_names(self):
        assert normalize_headers({"Content-MD5": "x", "DATE": "d"}) == {
            "content-md5": "x",
            "date": "d",
        }


class TestStringToSign:
    """Tests for the five-line string to sign."""

    def test_missing_fields_keep_their_lines(self):
        sts = build_string_to_sign("get", {}, "", "", "/b/k")
        assert sts == "GET\n\n\n\n/b/k"
        assert sts.count("\n") == 4

    def test_headers_precede_resource(self):
        headers = {"content-md5": "md5", "content-type": "text/plain"}
        sts = build_string_to_sign("PUT", headers, "date", "x-oss-meta-a:1\n", "/b/k")
        assert sts == "PUT\nmd5\ntext/plain\ndate\nx-oss-meta-a:1\n/b/k"

    def test_compute_signature_matches_hmac_sha1(self):
        assert compute_signature("secret", "message") == _hmac_b64("secret", "message")


class TestSignRequest:
    """Tests for OssSigner.sign_request and authorization."""

    def _put_headers(self):
        return {"date": PUT_DATE, "content-type": "application/octet-stream"}

    def test_put_example_is_stable(self, signer):
        first = signer.sign_request("PUT", "test-bucket", "test-key.txt", self._put_headers())
        second = signer.sign_request("PUT", "test-bucket", "test-key.txt", self._put_headers())
        assert first == second
        assert base64.b64decode(first)

    def test_put_example_signs_expected_string(self, signer):
        expected_sts = (
            "PUT\n\napplication/octet-stream\n" + PUT_DATE + "\n/test-bucket/test-key.txt"
        )
        signature = signer.sign_request(
            "PUT", "test-bucket", "test-key.txt", self._put_headers()
        )
        assert signature == _hmac_b64(ACCESS_KEY_SECRET, expected_sts)

    def test_header_name_case_does_not_change_signature(self, signer):
        lower = signer.sign_request("PUT", "b", "k", {"content-type": "a/b", "date": "d"})
        mixed = signer.sign_request("PUT", "b", "k", {"Content-Type": "a/b", "Date": "d"})
        assert lower == mixed

    def test_method_case_does_not_change_signature(self, signer):
        assert signer.sign_request("get", "b", "k") == signer.sign_request("GET", "b", "k")

    def test_non_reserved_query_does_not_change_signature(self, signer):
        plain = signer.sign_request("GET", "b", "", {"date": "d"})
        listed = signer.sign_request("GET", "b", "", {"date": "d"}, {"list-type": "2"})
        assert plain == listed

    def test_reserved_query_changes_signature(self, signer):
        plain = signer.sign_request("POST", "b", "k", {"date": "d"})
        uploads = signer.sign_request("POST", "b", "k", {"date": "d"}, {"uploads": ""})
        assert plain != uploads

    def test_different_secret_changes_signature(self, signer):
        other = OssSigner(ACCESS_KEY_ID, "another-secret")
        assert signer.sign_request("GET", "b", "k") != other.sign_request("GET", "b", "k")

    def test_authorization_format(self, signer):
        auth = signer.authorization("GET", "b", "k", {"date": "d"})
        scheme, credential = auth.split(" ")
        access_key_id, signature = credential.split(":")
        assert scheme == "OSS"
        assert access_key_id == ACCESS_KEY_ID
        assert signature == signer.sign_request("GET", "b", "k", {"date": "d"})

    def test_empty_method_rejected(self, signer):
        with pytest.raises(SigningError) as exc_info:
            signer.sign_request("", "b", "k")
        assert exc_info.value.kind is ErrorKind.SIGNING

    def test_empty_bucket_rejected(self, signer):
        with pytest.raises(SigningError):
            signer.sign_request("GET", "", "k")


class TestPresignedUrl:
    """Tests for OssSigner.generate_presigned_url."""

    EXPIRES = 1672228800 + 3600

    def test_contains_access_key_expires_and_signature(self, signer):
        query_string = signer.generate_presigned_url(
            "GET", "test-bucket", "test-key", self.EXPIRES
        )
        params = dict(urllib.parse.parse_qsl(query_string))
        assert params["OSSAccessKeyId"] == ACCESS_KEY_ID
        assert "AccessKeyId=" in query_string
        assert params["Expires"] == str(self.EXPIRES)
        assert base64.b64decode(params["Signature"], validate=True)

    def test_expiry_replaces_date_line(self, signer):
        query_string = signer.generate_presigned_url(
            "GET", "test-bucket", "test-key", self.EXPIRES, headers={"date": "ignored"}
        )
        params = dict(urllib.parse.parse_qsl(query_string))
        expected_sts = f"GET\n\n\n{self.EXPIRES}\n/test-bucket/test-key"
        assert params["Signature"] == _hmac_b64(ACCESS_KEY_SECRET, expected_sts)

    def test_pass_through_query_kept(self, signer):
        query_string = signer.generate_presigned_url(
            "GET",
            "b",
            "k",
            self.EXPIRES,
            query={"response-content-type": "text/plain"},
        )
        params = dict(urllib.parse.parse_qsl(query_string))
        assert params["response-content-type"] == "text/plain"
        expected_sts = (
            f"GET\n\n\n{self.EXPIRES}\n/b/k?response-content-type=text/plain"
        )
        assert params["Signature"] == _hmac_b64(ACCESS_KEY_SECRET, expected_sts)

    def test_signature_is_last_parameter(self, signer):
        query_string = signer.generate_presigned_url("GET", "b", "k", self.EXPIRES)
        assert query_string.split("&")[-1].startswith("Signature=")

    @pytest.mark.parametrize("expires", [0, -1])
    def test_non_positive_expiry_rejected(self, signer, expires):
        with pytest.raises(SigningError):
            signer.generate_presigned_url("GET", "b", "k", expires)


class TestPostPolicy:
    """Tests for OssSigner.generate_post_policy."""

    def _decode(self, policy):
        return json.loads(base64.b64decode(policy.policy))

    def test_policy_document_shape(self, signer):
        policy = signer.generate_post_policy("test-bucket", "uploads/", 1672228800)
        document = self._decode(policy)
        assert document["expiration"] == "2022-12-28T12:00:00.000Z"
        assert document["conditions"] == [
            {"bucket": "test-bucket"},
            ["starts-with", "$key", "uploads/"],
        ]

    def test_extra_conditions_appended(self, signer):
        extra = [["content-length-range", 0, 1048576]]
        policy = signer.generate_post_policy("b", "p/", 1672228800, extra)
        assert self._decode(policy)["conditions"][-1] == ["content-length-range", 0, 1048576]

    def test_signature_covers_base64_policy(self, signer):
        policy = signer.generate_post_policy("b", "p/", 1672228800)
        assert policy.signature == _hmac_b64(ACCESS_KEY_SECRET, policy.policy)
        assert policy.access_key_id == ACCESS_KEY_ID
        assert policy.expires == 1672228800
        assert policy.host == ""

    def test_non_serializable_condition_rejected(self, signer):
        with pytest.raises(SigningError):
            signer.generate_post_policy("b", "p/", 1672228800, [{"bad": object()}])

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_condition_rejected(self, signer, value):
        with pytest.raises(SigningError) as exc_info:
            signer.generate_post_policy("b", "p/", 1672228800, [["eq", "$x", value]])
        assert isinstance(exc_info.value.__cause__, ValueError)

    @pytest.mark.parametrize("expires", [0, -1, 10**12, 10**20])
    def test_out_of_range_expiry_rejected(self, signer, expires):
        with pytest.raises(SigningError):
            signer.generate_post_policy("b", "p/", expires)

    def test_empty_bucket_rejected(self, signer):
        with pytest.raises(SigningError):
            signer.generate_post_policy("", "p/", 1672228800)
